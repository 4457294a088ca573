"""
Parse the SRM Academia "Academic Planner" page into calendar days.

The real HTML structure:
- <div class="zc-pb-embed-placeholder-content" zmlvalue="..."> carries the
  actual planner as an HTML document inside the zmlvalue attribute.
- Inside it, the planner table is the one with bgcolor="#FAFCFE".
- First row: month headers, one every 5 cells, each with
  <strong>September '25</strong> (or "September 2025").
- Every later row holds, per month, 5 cells:
    Date | Day | <strong>Event</strong> | Day order | (spacer)
  Date is blank for rows past the end of a short month.
"""
from __future__ import annotations

import logging
import re
from typing import List

from bs4 import BeautifulSoup, Tag  # type: ignore[import]

from .errors import ParseWarning
from .model import DayEvent

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Planner table layout
# ──────────────────────────────────────────────────────────────────

EMBED_SELECTOR = "div.zc-pb-embed-placeholder-content"
EMBED_ATTR = "zmlvalue"
PLANNER_TABLE_SELECTOR = "table[bgcolor='#FAFCFE']"

MONTH_GROUP_WIDTH = 5
COL_DATE = 0
COL_WEEKDAY = 1
COL_EVENT = 2
COL_DAY_ORDER = 3

_MONTH_ABBRS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_MONTH_LABEL_RE = re.compile(r"^([A-Za-z]+)\.?\s*['’]?\s*(\d{2}|\d{4})$")


# ──────────────────────────────────────────────────────────────────
#  Helpers
# ──────────────────────────────────────────────────────────────────

def _parse_month_label(label: str) -> tuple[str, str]:
    """
    "September '25" → ('Sep', '2025'); "Sep 2025" → ('Sep', '2025').
    Raises ParseWarning for anything else.
    """
    m = _MONTH_LABEL_RE.match(label.strip())
    if not m:
        raise ParseWarning(f"Unrecognised month header {label!r}")
    abbr = m.group(1)[:3].title()
    if abbr not in _MONTH_ABBRS:
        raise ParseWarning(f"Unrecognised month name in {label!r}")
    year = m.group(2)
    if len(year) == 2:
        year = "20" + year
    return abbr, year


def _month_headers(header_row: Tag) -> List[tuple[str, str]]:
    """(abbr, year) per month column group, left to right."""
    cells = header_row.find_all(["td", "th"])
    months: List[tuple[str, str]] = []
    for i in range(0, len(cells), MONTH_GROUP_WIDTH):
        strong = cells[i].find("strong")
        label = _cell_text(strong) if strong else ""
        if not label:
            break
        try:
            months.append(_parse_month_label(label))
        except ParseWarning as e:
            logger.warning("%s; ignoring this and later months", e)
            break
    return months


def normalize_day_order(text: str) -> str:
    """'Day 1' → 'Day1', '3' → 'Day3', ' Holiday ' → 'Holiday'."""
    value = re.sub(r"\s+", "", text or "")
    if value.isdigit():
        return f"Day{value}"
    return value


def _cell_text(cell: Tag) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())


def _event_label(cell: Tag) -> str:
    strong = cell.find("strong")
    return _cell_text(strong) if strong else ""


# ──────────────────────────────────────────────────────────────────
#  Public API
# ──────────────────────────────────────────────────────────────────

def parse_planner_html(html: str) -> List[DayEvent]:
    """
    Parse the academic planner page into DayEvents in table order: row by
    row, months left to right. Returns [] (with a warning) when the planner
    is not on the page, which is normal between semesters.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    embed = soup.select_one(EMBED_SELECTOR)
    if embed is None or not embed.get(EMBED_ATTR):
        logger.warning("Academic planner embed (%s) not found", EMBED_SELECTOR)
        return []

    inner = BeautifulSoup(embed[EMBED_ATTR], "html.parser")
    table = inner.select_one(PLANNER_TABLE_SELECTOR)
    if table is None:
        logger.warning("Academic planner table (%s) not found", PLANNER_TABLE_SELECTOR)
        return []

    rows = table.find_all("tr")
    if not rows:
        return []
    months = _month_headers(rows[0])
    if not months:
        logger.warning("Academic planner has no month headers")
        return []

    days: List[DayEvent] = []
    for row in rows[1:]:
        tds = row.find_all("td")
        for index, (abbr, year) in enumerate(months):
            base = index * MONTH_GROUP_WIDTH
            if base + COL_DAY_ORDER >= len(tds):
                continue
            day = _cell_text(tds[base + COL_DATE])
            if not day.isdecimal():
                continue
            days.append(DayEvent(
                date=f"{int(day):02d}-{abbr}-{year}",
                weekday=_cell_text(tds[base + COL_WEEKDAY]),
                event_label=_event_label(tds[base + COL_EVENT]),
                day_order=normalize_day_order(tds[base + COL_DAY_ORDER].get_text()),
            ))

    logger.info("Academic planner: %d day(s) across %d month(s)", len(days), len(months))
    return days
