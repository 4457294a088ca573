"""
Fetch the timetable and academic planner pages under a signed-in session.

Both page names carry an academic-year token derived from today's date, e.g.
  My_Time_Table_2023_24
  Academic_Planner_2025_26_ODD
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable

import requests

from .config import PortalConfig
from .errors import UpstreamUnavailable
from .session_fetch import SessionBundle, browser_headers

logger = logging.getLogger(__name__)

# Returned instead of the planner page when the portal has none (between
# semesters). Parses to zero planner days.
PLANNER_PLACEHOLDER_HTML = "<html><body></body></html>"


def _academic_year_token(start_year: int) -> str:
    """2025 → '2025_26'."""
    return f"{start_year}_{str(start_year + 1)[2:]}"


def timetable_url(config: PortalConfig, today: date) -> str:
    start_year = today.year - config.timetable_year_offset
    return f"{config.page_base_url}/My_Time_Table_{_academic_year_token(start_year)}"


def semester_for(config: PortalConfig, today: date) -> tuple[int, str]:
    """
    (academic-year start, 'ODD' | 'EVEN') for a date.

    EVEN months belong to the academic year that started the previous
    calendar year; ODD months start a new one.
    """
    if today.month in config.even_semester_months:
        return today.year - 1, "EVEN"
    return today.year, "ODD"


def planner_url(config: PortalConfig, today: date) -> str:
    start_year, semester = semester_for(config, today)
    return f"{config.page_base_url}/Academic_Planner_{_academic_year_token(start_year)}_{semester}"


class PageFetcher:
    """
    :param config: Portal endpoints and tunables.
    :param http: Object with a requests-style get (default: the requests module).
    :param today: Returns the date the page URLs are derived from.
    """

    def __init__(
        self,
        config: PortalConfig | None = None,
        http=None,
        today: Callable[[], date] | None = None,
    ):
        self.config = config or PortalConfig()
        self.http = http if http is not None else requests
        self._today = today or date.today

    def _get(self, url: str, session: SessionBundle):
        logger.info("Fetching %s", url)
        headers = browser_headers(self.config)
        headers["Cookie"] = session.cookie_header
        headers["Referer"] = f"{self.config.base_url}/"
        try:
            return self.http.get(url, headers=headers, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"GET {url} failed: {e}") from e

    def fetch_timetable(self, session: SessionBundle) -> str:
        """Raw timetable page HTML. Any failure, 404 included, is fatal."""
        url = timetable_url(self.config, self._today())
        resp = self._get(url, session)
        if resp.status_code == 404:
            raise UpstreamUnavailable(f"Timetable page not found at {url}")
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"Timetable page returned status {resp.status_code}")
        return resp.text

    def fetch_academic_planner(self, session: SessionBundle) -> str:
        """
        Raw academic planner HTML, or PLANNER_PLACEHOLDER_HTML when the
        portal has no planner for the current semester yet.
        """
        url = planner_url(self.config, self._today())
        resp = self._get(url, session)
        if resp.status_code == 404:
            logger.warning("Academic planner not found at %s; continuing without it", url)
            return PLANNER_PLACEHOLDER_HTML
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"Academic planner returned status {resp.status_code}")
        return resp.text
