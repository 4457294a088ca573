"""
Parse the SRM Academia "My Time Table" page.

The real HTML structure:
- The page body is not served as markup. It is a JavaScript string literal
  passed to pageSanitizer.sanitize('...'), with most bytes hex-escaped
  (\\x3C for '<') and quotes backslash-escaped.
- Once decoded, a small table holds "Batch:" | "<n>/<batch>"; the batch is
  the part after "/".
- The course table (class course_tbl) has 11 columns per course row:
    S.No | Code | Title | Credit | Regn. Type | Category | Type |
    Faculty | Slot | Room | Academic Year
  Its markup is irregular (cells and rows are not reliably closed), so it is
  parsed with lxml, which closes them the way a browser does. Cells are read
  in document order and re-chunked by column count instead of walking <tr>.
- Slot looks like "A" or "P6-P7-" (hyphen separated).

The slot → course map is then laid over the batch's weekly template
(slots.py) to produce one DaySchedule per day order.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Tuple
from urllib.parse import unquote

from bs4 import BeautifulSoup, Tag  # type: ignore[import]

from .errors import ParseWarning
from .model import CourseInfo, CourseSlot, DaySchedule
from .slots import BATCH_SLOTS, DEFAULT_BATCH, DayDefinition

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Course table layout
# ──────────────────────────────────────────────────────────────────

COURSE_TABLE_SELECTOR = ".course_tbl td"
COURSE_ROW_WIDTH = 11
COL_CODE = 1
COL_TITLE = 2
COL_CATEGORY = 5
COL_TYPE = 6
COL_SLOT = 8
COL_ROOM = 9

BATCH_LABEL = "Batch:"

# Closes unterminated <td>/<tr> like a browser; html.parser nests them
HTML_PARSER = "lxml"

_SANITIZE_RE = re.compile(r"pageSanitizer\.sanitize\('(.*)'\);", re.DOTALL)
_HEX_ESCAPE_RE = re.compile(r"\\x([0-9A-Fa-f]{2})")


# ──────────────────────────────────────────────────────────────────
#  Decoding
# ──────────────────────────────────────────────────────────────────

def extract_sanitized_html(raw_html: str) -> str:
    """
    Pull the string literal out of pageSanitizer.sanitize('...') and decode
    it into real HTML. Returns "" when the call is not on the page.
    """
    m = _SANITIZE_RE.search(raw_html or "")
    if not m:
        logger.warning("pageSanitizer.sanitize(...) not found on timetable page")
        return ""
    encoded = m.group(1)
    partially = _HEX_ESCAPE_RE.sub(r"%\1", encoded)
    partially = partially.replace("\\'", "'").replace('\\"', '"')
    return unquote(partially, encoding="utf-8")


# ──────────────────────────────────────────────────────────────────
#  Batch
# ──────────────────────────────────────────────────────────────────

def _parse_batch_number(text: str) -> int:
    """'2/2' → 2, '1' → 1. Raises ParseWarning otherwise."""
    value = (text or "").strip().split("/")[-1].strip()
    if not value.isdigit():
        raise ParseWarning(f"Unparsable batch value {text!r}")
    return int(value)


def _cell_text(cell: Tag) -> str:
    """Visible text with inner tags and line breaks collapsed to single spaces."""
    return " ".join(cell.get_text(" ", strip=True).split())


def _find_label_value(soup: BeautifulSoup, label: str) -> str | None:
    """Text of the cell right after the innermost cell containing label."""
    for td in soup.find_all("td"):
        if td.find("td") is not None:
            continue
        if label in td.get_text():
            sibling = td.find_next_sibling("td")
            return _cell_text(sibling) if sibling else None
    return None


def _extract_batch(soup: BeautifulSoup) -> int:
    text = _find_label_value(soup, BATCH_LABEL)
    if text is None:
        logger.warning("No '%s' cell on timetable page; assuming batch %d", BATCH_LABEL, DEFAULT_BATCH)
        return DEFAULT_BATCH
    try:
        return _parse_batch_number(text)
    except ParseWarning as e:
        logger.warning("%s; assuming batch %d", e, DEFAULT_BATCH)
        return DEFAULT_BATCH


# ──────────────────────────────────────────────────────────────────
#  Course table
# ──────────────────────────────────────────────────────────────────

def _course_info(cols: List[Tag]) -> CourseInfo:
    def text(i: int) -> str:
        return _cell_text(cols[i])

    return CourseInfo(
        course_title=text(COL_TITLE),
        course_code=text(COL_CODE),
        course_type=text(COL_TYPE),
        course_category=text(COL_CATEGORY),
        room_no=text(COL_ROOM),
    )


def _split_slots(text: str) -> List[str]:
    """'P6-P7-' → ['P6', 'P7']."""
    return [s.strip() for s in text.split("-") if s.strip()]


def _extract_slot_map(soup: BeautifulSoup) -> Dict[str, CourseInfo]:
    cells = soup.select(COURSE_TABLE_SELECTOR)
    slot_map: Dict[str, CourseInfo] = {}
    # First chunk is the header row
    for i in range(COURSE_ROW_WIDTH, len(cells), COURSE_ROW_WIDTH):
        cols = cells[i:i + COURSE_ROW_WIDTH]
        if len(cols) < COURSE_ROW_WIDTH:
            continue
        info = _course_info(cols)
        for slot in _split_slots(_cell_text(cols[COL_SLOT])):
            slot_map[slot] = info
    return slot_map


# ──────────────────────────────────────────────────────────────────
#  Public API
# ──────────────────────────────────────────────────────────────────

def parse_timetable_html(raw_html: str) -> Tuple[int, Dict[str, CourseInfo]]:
    """
    Parse the raw timetable page into (batch number, slot → course).

    Never raises on odd markup: a missing batch falls back to batch 1 and a
    missing course table gives an empty map.
    """
    soup = BeautifulSoup(extract_sanitized_html(raw_html), HTML_PARSER)
    batch = _extract_batch(soup)
    slot_map = _extract_slot_map(soup)
    logger.info("Timetable: batch %d, %d registered slot(s)", batch, len(slot_map))
    return batch, slot_map


def build_day_schedules(
    batch: int,
    slot_map: Dict[str, CourseInfo],
    template: Dict[int, List[DayDefinition]] | None = None,
) -> List[DaySchedule]:
    """
    Lay the slot map over the batch's weekly template: one DaySchedule per
    day order, one CourseSlot per template slot.
    """
    table = BATCH_SLOTS if template is None else template
    days = table.get(batch)
    if not days:
        logger.warning("No slot template for batch %d; using batch %d", batch, DEFAULT_BATCH)
        days = table[DEFAULT_BATCH]

    schedules: List[DaySchedule] = []
    for day in days:
        classes: List[CourseSlot] = []
        for slot_name, time_range in zip(day.slots, day.times):
            info = slot_map.get(slot_name)
            if info is None:
                classes.append(CourseSlot(slot=slot_name, time=time_range))
                continue
            classes.append(CourseSlot(
                slot=slot_name,
                time=time_range,
                is_class=True,
                course_title=info.course_title,
                course_code=info.course_code,
                course_type=info.course_type,
                course_category=info.course_category,
                room_no=info.room_no,
            ))
        schedules.append(DaySchedule(day_order=re.sub(r"\s+", "", day.day_order), classes=classes))
    return schedules


def parse_timetable(raw_html: str) -> List[DaySchedule]:
    """Raw timetable page → weekly DaySchedules for the student's batch."""
    batch, slot_map = parse_timetable_html(raw_html)
    return build_day_schedules(batch, slot_map)
