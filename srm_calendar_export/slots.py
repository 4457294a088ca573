"""
Weekly slot templates per batch.

The timetable page only says which slot codes (A, B, P6, ...) a student is
registered for. Which slot runs at what time on which day order is fixed per
batch and is not published on the page, so it is kept here.
"""
from __future__ import annotations

from typing import Dict, List, NamedTuple


class DayDefinition(NamedTuple):
    day_order: str
    slots: List[str]
    times: List[str]


# Ten periods per day, identical for both batches
PERIOD_TIMES = [
    "08:00 AM - 08:50 AM",
    "08:50 AM - 09:40 AM",
    "09:45 AM - 10:35 AM",
    "10:40 AM - 11:30 AM",
    "11:35 AM - 12:25 PM",
    "12:30 PM - 01:20 PM",
    "01:25 PM - 02:15 PM",
    "02:20 PM - 03:10 PM",
    "03:10 PM - 04:00 PM",
    "04:00 PM - 04:50 PM",
]

# Published grids mark some periods as alternates ("A/X", "P12/X"). The "/X"
# marker is dropped on purpose: the period is kept and counts as its base slot,
# so a course registered for A also meets in the "A/X" period.
_BATCH_1_PERIODS = [
    ["A", "A", "F", "F", "G", "P6", "P7", "P8", "P9", "P10"],
    ["P11", "P12", "P13", "P14", "P15", "B", "B", "G", "G", "A"],
    ["C", "C", "A", "D", "B", "P26", "P27", "P28", "P29", "P30"],
    ["P31", "P32", "P33", "P34", "P35", "D", "D", "B", "E", "C"],
    ["E", "E", "C", "F", "D", "P46", "P47", "P48", "P49", "P50"],
]

_BATCH_2_PERIODS = [
    ["P1", "P2", "P3", "P4", "P5", "A", "A", "F", "F", "G"],
    ["B", "B", "G", "G", "A", "P16", "P17", "P18", "P19", "P20"],
    ["P21", "P22", "P23", "P24", "P25", "C", "C", "A", "D", "B"],
    ["D", "D", "B", "E", "C", "P36", "P37", "P38", "P39", "P40"],
    ["P41", "P42", "P43", "P44", "P45", "E", "E", "C", "F", "D"],
]


def _days(periods: List[List[str]]) -> List[DayDefinition]:
    return [
        DayDefinition(f"Day {i}", list(slots), list(PERIOD_TIMES))
        for i, slots in enumerate(periods, start=1)
    ]


BATCH_SLOTS: Dict[int, List[DayDefinition]] = {
    1: _days(_BATCH_1_PERIODS),
    2: _days(_BATCH_2_PERIODS),
}

DEFAULT_BATCH = 1

