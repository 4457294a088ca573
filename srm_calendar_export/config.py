"""
Portal endpoints and tunables.

Everything that silently goes stale when the portal or the academic year rolls
over lives here, so it can be reviewed and overridden from the environment or
the command line instead of being buried in the fetch code.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping

DEFAULT_BASE_URL = "https://academia.srmist.edu.in"

# Identity provider account id used in the sign-in URLs
DEFAULT_PORTAL_ID = "10002227248"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class PortalConfig:
    base_url: str = DEFAULT_BASE_URL
    portal_id: str = DEFAULT_PORTAL_ID
    service_name: str = "ZohoCreator"
    # My_Time_Table_<Y>_<yy> is named after the entering batch's academic
    # year: Y = current year - timetable_year_offset.
    timetable_year_offset: int = 2
    # Months that belong to the EVEN semester; the rest are ODD.
    even_semester_months: tuple[int, ...] = (1, 2, 3, 4, 5, 6)
    timezone: str = "Asia/Kolkata"
    # Seconds per HTTP call
    timeout: float = 20.0
    # (min, max) seconds of random pause between login steps
    step_delay: tuple[float, float] = (0.3, 0.9)
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def service_url(self) -> str:
        return f"{self.base_url}/portal/academia-academic-services/redirectFromLogin"

    @property
    def login_page_url(self) -> str:
        return (
            f"{self.base_url}/accounts/p/{self.portal_id}/signin"
            f"?hide_fp=true&servicename={self.service_name}&service_language=en"
            f"&css_url=/49910842/academia-academic-services/downloadPortalCustomCss/login"
            f"&dcc=true&serviceurl={self.service_url}"
        )

    def lookup_url(self, username: str) -> str:
        return f"{self.base_url}/accounts/p/40-{self.portal_id}/signin/v2/lookup/{username}"

    def password_url(self, identifier: str) -> str:
        return f"{self.base_url}/accounts/p/40-{self.portal_id}/signin/v2/primary/{identifier}/password"

    @property
    def logout_url(self) -> str:
        return (
            f"{self.base_url}/accounts/p/{self.portal_id}/logout"
            f"?servicename={self.service_name}&serviceurl={self.base_url}"
        )

    @property
    def page_base_url(self) -> str:
        return f"{self.base_url}/srm_university/academia-academic-services/page"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PortalConfig":
        """Build a config, overriding defaults with SRM_* environment variables."""
        env = os.environ if environ is None else environ
        cfg = cls()
        if env.get("SRM_BASE_URL"):
            cfg = replace(cfg, base_url=env["SRM_BASE_URL"].rstrip("/"))
        if env.get("SRM_TIMETABLE_YEAR_OFFSET"):
            cfg = replace(cfg, timetable_year_offset=int(env["SRM_TIMETABLE_YEAR_OFFSET"]))
        if env.get("SRM_TIMEZONE"):
            cfg = replace(cfg, timezone=env["SRM_TIMEZONE"])
        if env.get("SRM_HTTP_TIMEOUT"):
            cfg = replace(cfg, timeout=float(env["SRM_HTTP_TIMEOUT"]))
        return cfg
