import pytest

from sample_pages import planner_page
from srm_calendar_export.errors import ParseWarning
from srm_calendar_export.model import DayEvent
from srm_calendar_export.page_fetch import PLANNER_PLACEHOLDER_HTML
from srm_calendar_export.planner_html import (
    _parse_month_label,
    normalize_day_order,
    parse_planner_html,
)


def test_parse_month_label():
    assert _parse_month_label("September '25") == ("Sep", "2025")
    assert _parse_month_label("Oct ’25") == ("Oct", "2025")
    assert _parse_month_label("Jan 2026") == ("Jan", "2026")
    assert _parse_month_label("dec.'26") == ("Dec", "2026")

    with pytest.raises(ParseWarning):
        _parse_month_label("Semester Begins")
    with pytest.raises(ParseWarning):
        _parse_month_label("Foo '25")


def test_normalize_day_order():
    assert normalize_day_order("Day 1") == "Day1"
    assert normalize_day_order("3") == "Day3"
    assert normalize_day_order(" Holiday ") == "Holiday"
    assert normalize_day_order("-") == "-"
    assert normalize_day_order("") == ""
    assert normalize_day_order(None) == ""


def test_parse_single_month():
    html = planner_page(["Oct '25"], [
        [("1", "Wed", "", "1")],
        [("2", "Thu", "Gandhi Jayanti", "Holiday")],
        [("3", "Fri", "", "2")],
    ])

    assert parse_planner_html(html) == [
        DayEvent(date="01-Oct-2025", weekday="Wed", event_label="", day_order="Day1"),
        DayEvent(date="02-Oct-2025", weekday="Thu", event_label="Gandhi Jayanti", day_order="Holiday"),
        DayEvent(date="03-Oct-2025", weekday="Fri", event_label="", day_order="Day2"),
    ]


def test_parse_multiple_months_row_by_row():
    html = planner_page(["Jan '26", "Feb '26"], [
        [("1", "Thu", "New Year", "-"), ("1", "Sun", "", "-")],
        [("2", "Fri", "", "1"), ("2", "Mon", "", "4")],
    ])
    days = parse_planner_html(html)

    assert [d.date for d in days] == ["01-Jan-2026", "01-Feb-2026", "02-Jan-2026", "02-Feb-2026"]
    assert [d.day_order for d in days] == ["-", "-", "Day1", "Day4"]


def test_blank_dates_are_skipped():
    # Row 31 exists for October but not for November
    html = planner_page(["Oct '25", "Nov '25"], [
        [("30", "Thu", "", "5"), ("30", "Sun", "", "-")],
        [("31", "Fri", "", "1"), None],
    ])
    days = parse_planner_html(html)

    assert [d.date for d in days] == ["30-Oct-2025", "30-Nov-2025", "31-Oct-2025"]


def test_bad_month_header_stops_at_that_month(caplog):
    html = planner_page(["Oct '25", "Notes"], [
        [("1", "Wed", "", "1"), ("x", "y", "z", "w")],
    ])
    days = parse_planner_html(html)

    assert [d.date for d in days] == ["01-Oct-2025"]
    assert "Unrecognised month header" in caplog.text


def test_missing_planner_gives_empty_list(caplog):
    assert parse_planner_html(PLANNER_PLACEHOLDER_HTML) == []
    assert parse_planner_html("") == []
    assert "embed" in caplog.text


def test_missing_table_gives_empty_list():
    html = (
        "<div class='zc-pb-embed-placeholder-content' "
        "zmlvalue=\"&lt;p&gt;Planner coming soon&lt;/p&gt;\"></div>"
    )
    assert parse_planner_html(html) == []


def test_cell_markup_keeps_words_apart():
    html = planner_page(["<span>Oct</span> '25"], [
        [("<b>2</b>", "Thu", "Gandhi<br>Jayanti", "Holi<span>day</span>")],
        [("3", "Fri", "Enrichment <span>Day</span>  Celebrations", "2")],
    ])

    assert parse_planner_html(html) == [
        DayEvent(date="02-Oct-2025", weekday="Thu", event_label="Gandhi Jayanti", day_order="Holiday"),
        DayEvent(date="03-Oct-2025", weekday="Fri", event_label="Enrichment Day Celebrations", day_order="Day2"),
    ]
