"""
Data model shared by the parsers and the exporter.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass(frozen=True)
class CourseInfo:
    """
    One registered course row from the timetable page.
    """

    course_title: str
    course_code: str
    course_type: str
    course_category: str
    room_no: str


@dataclass
class CourseSlot:
    """
    One slot of the weekly template on a given day order.

    is_class=False means nothing is registered in this slot; such slots
    never become calendar events.
    """

    slot: str
    time: str
    is_class: bool = False
    course_title: str = ""
    course_code: str = ""
    course_type: str = ""
    course_category: str = ""
    room_no: str = ""


@dataclass
class DaySchedule:
    day_order: str
    classes: List[CourseSlot] = field(default_factory=list)


@dataclass
class DayEvent:
    """
    One calendar day from the academic planner.

    date is "DD-MMM-YYYY"; day_order is "DayN", "Holiday" or empty.
    """

    date: str
    weekday: str
    event_label: str
    day_order: str


@dataclass
class ClassEvent:
    """
    One concrete class meeting: a planner day joined with a timetable slot.
    """

    uid: str
    summary: str
    start: datetime
    end: datetime
    course_code: str
    course_title: str
    course_type: str
    course_category: str
    room_no: str
    slot: str
    day_order: str
    date: str
    time: str
