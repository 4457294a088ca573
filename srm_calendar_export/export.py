"""
Join planner days with timetable slots and export to ICS, CSV, and JSON.
"""
from __future__ import annotations

import csv
import dataclasses
import hashlib
import json
import logging
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Dict, List, Sequence

import icalendar
import pytz

from .errors import SlotTimeError
from .model import ClassEvent, CourseSlot, DayEvent, DaySchedule

logger = logging.getLogger(__name__)

# Indian Standard Time for calendar
TZ_IST = "Asia/Kolkata"

PRODID = "-//SRM Calendar Export//EN"
UID_DOMAIN = "srm-calendar-export"

HOLIDAY = "Holiday"

# Tried in order before falling back to the hand-written parser
_CLOCK_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


# ──────────────────────────────────────────────────────────────────
#  Date / time parsing
# ──────────────────────────────────────────────────────────────────

def _parse_clock_manually(text: str) -> time:
    """'1:25 PM' → 13:25 without strptime (locale-independent AM/PM)."""
    clean = text.strip().upper()
    if clean.endswith("PM"):
        pm = True
    elif clean.endswith("AM"):
        pm = False
    else:
        raise ValueError("no AM/PM suffix")
    parts = clean[:-2].strip().split(":")
    if len(parts) != 2:
        raise ValueError("expected H:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if pm and hour != 12:
        hour += 12
    elif not pm and hour == 12:
        hour = 0
    return time(hour, minute)


def parse_clock(text: str) -> time:
    """
    Parse one clock time such as '9:00 AM', '09:00AM' or '13:30'.

    :raises SlotTimeError: listing why every strategy failed.
    """
    candidate = " ".join((text or "").split())
    attempts: List[str] = []
    for fmt in _CLOCK_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).time()
        except ValueError as e:
            attempts.append(f"{fmt}: {e}")
    try:
        return _parse_clock_manually(candidate)
    except ValueError as e:
        attempts.append(f"manual: {e}")
    raise SlotTimeError(text, attempts)


def parse_slot_times(text: str) -> tuple[time, time]:
    """
    Parse a slot range like '9:00 AM - 10:00 AM' into (start, end).

    Pure function; raises SlotTimeError on anything it cannot read.
    """
    parts = [p.strip() for p in (text or "").split("-")]
    if len(parts) != 2:
        raise SlotTimeError(text, ["expected exactly one '-' between start and end"])
    return parse_clock(parts[0]), parse_clock(parts[1])


def parse_event_date(text: str) -> date:
    """'01-Jan-2025' or '1-Jan-2025' → date(2025, 1, 1)."""
    return datetime.strptime(text.strip(), "%d-%b-%Y").date()


def event_uid(date_str: str, course_code: str, time_range: str) -> str:
    """Stable UID: same planner date, course and slot time → same UID."""
    digest = hashlib.sha256(f"{date_str}{course_code}{time_range}".encode("utf-8")).hexdigest()
    return f"{digest}@{UID_DOMAIN}"


# ──────────────────────────────────────────────────────────────────
#  Merge
# ──────────────────────────────────────────────────────────────────

def _class_event(slot: CourseSlot, day: DayEvent, tz) -> ClassEvent:
    event_date = parse_event_date(day.date)
    start_time, end_time = parse_slot_times(slot.time)
    return ClassEvent(
        uid=event_uid(day.date, slot.course_code, slot.time),
        summary=f"{slot.course_code} - {slot.course_title}",
        start=tz.localize(datetime.combine(event_date, start_time)),
        end=tz.localize(datetime.combine(event_date, end_time)),
        course_code=slot.course_code,
        course_title=slot.course_title,
        course_type=slot.course_type,
        course_category=slot.course_category,
        room_no=slot.room_no,
        slot=slot.slot,
        day_order=day.day_order,
        date=day.date,
        time=slot.time,
    )


def merge_schedule(
    timetable: Sequence[DaySchedule],
    planner: Sequence[DayEvent],
    tz_name: str = TZ_IST,
) -> List[ClassEvent]:
    """
    One ClassEvent per (planner day, registered slot of that day's day order).

    Days whose day order matches nothing (holidays, blanks, unknown orders)
    yield no events. A slot whose date or time cannot be parsed is logged
    and skipped; the rest of the calendar is still produced.
    """
    tz = pytz.timezone(tz_name)
    by_day_order: Dict[str, DaySchedule] = {d.day_order: d for d in timetable}
    logger.debug("Day orders available for matching: %s", sorted(by_day_order))

    events: List[ClassEvent] = []
    for day in planner:
        schedule = by_day_order.get(day.day_order)
        if schedule is None:
            if day.day_order and day.day_order.lower() != HOLIDAY.lower():
                logger.debug("No timetable for day order %r on %s", day.day_order, day.date)
            continue
        for slot in schedule.classes:
            if not slot.is_class:
                continue
            try:
                events.append(_class_event(slot, day, tz))
            except ValueError as e:
                logger.warning(
                    "Skipping %s on %s (slot %s, time %r): %s",
                    slot.course_code, day.date, slot.slot, slot.time, e,
                )

    logger.info("Generated %d class event(s)", len(events))
    return events


# ──────────────────────────────────────────────────────────────────
#  Export
# ──────────────────────────────────────────────────────────────────

def _description(ev: ClassEvent) -> str:
    lines = []
    if ev.course_type:
        lines.append(f"Type: {ev.course_type}")
    if ev.course_category:
        lines.append(f"Category: {ev.course_category}")
    lines.append(f"Slot: {ev.slot}")
    lines.append(f"Day order: {ev.day_order}")
    return "\n".join(lines)


def build_calendar(events: Sequence[ClassEvent], tz_name: str = TZ_IST) -> icalendar.Calendar:
    cal = icalendar.Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", "SRM Timetable")
    cal.add("x-wr-timezone", tz_name)

    for ev in events:
        event = icalendar.Event()
        event.add("uid", ev.uid)
        event.add("summary", ev.summary)
        event.add("dtstart", ev.start)
        event.add("dtend", ev.end)
        event.add("dtstamp", datetime.now(timezone.utc))
        if ev.room_no:
            event.add("location", ev.room_no)
        event.add("description", _description(ev))
        cal.add_component(event)
    return cal


def generate_ics(
    timetable: Sequence[DaySchedule],
    planner: Sequence[DayEvent],
    tz_name: str = TZ_IST,
) -> str:
    """Timetable + planner → iCalendar text."""
    events = merge_schedule(timetable, planner, tz_name)
    return build_calendar(events, tz_name).to_ical().decode("utf-8")


def _record(ev: ClassEvent) -> dict:
    data = dataclasses.asdict(ev)
    data["start"] = ev.start.isoformat()
    data["end"] = ev.end.isoformat()
    return data


def export_ics(events: Sequence[ClassEvent], out_path: str | Path, tz_name: str = TZ_IST) -> None:
    """Export class events to iCalendar (.ics) for Apple/Google calendar."""
    Path(out_path).write_text(build_calendar(events, tz_name).to_ical().decode("utf-8"), encoding="utf-8")


def export_csv(events: Sequence[ClassEvent], out_path: str | Path) -> None:
    """Export class events to CSV."""
    if not events:
        Path(out_path).write_text("", encoding="utf-8")
        return
    rows = [_record(ev) for ev in events]
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)


def export_json(events: Sequence[ClassEvent], out_path: str | Path) -> None:
    """Export class events to JSON."""
    Path(out_path).write_text(
        json.dumps([_record(ev) for ev in events], indent=2, ensure_ascii=False), encoding="utf-8"
    )


def export(events: Sequence[ClassEvent], out_path: str | Path, fmt: str, tz_name: str = TZ_IST) -> None:
    """Export to the given format: ics, csv, or json."""
    fmt = fmt.lower()
    if fmt == "ics":
        export_ics(events, out_path, tz_name)
    elif fmt == "csv":
        export_csv(events, out_path)
    elif fmt == "json":
        export_json(events, out_path)
    else:
        raise ValueError(f"Unsupported format: {fmt}. Use ics, csv, or json.")
