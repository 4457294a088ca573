"""
Log in to SRM Academia over plain HTTP, the way a browser would.

Workflow:
1. GET the sign-in page → session cookies + CSRF token (cookie "iamcsr")
2. POST the username to the lookup endpoint → identifier + digest
3. POST the password to the identifier/digest endpoint → authenticated cookies

Every step hands back a new SessionBundle; nothing is mutated in place, and no
requests.Session cookie jar is involved, so the Cookie header sent is exactly
the bundle's.
"""
from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Tuple

import requests

from .config import PortalConfig
from .errors import (
    AutomationBlocked,
    InvalidCredentials,
    ProtocolError,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Constants
# ──────────────────────────────────────────────────────────────────

CSRF_COOKIE = "iamcsr"
CSRF_HEADER = "x-zcsrf-token"
CSRF_HEADER_PREFIX = "iamcsrcoo="

# Password step: a 2xx body containing one of these is still a failure.
# The automation marker is checked first so it is never reported as a plain
# wrong password.
NON_TRUSTED_MARKERS = ("non-trusted", "non_trusted", "nontrusted")
ERROR_MARKER = "error"

_CSRF_RE = re.compile(rf"(?:^|;\s*){CSRF_COOKIE}=([^;]+)")


def browser_headers(config: PortalConfig) -> dict[str, str]:
    """Header set of a desktop Chrome visiting the sign-in page."""
    return {
        "User-Agent": config.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": '"Not/A)Brand";v="8", "Chromium";v="126", "Google Chrome";v="126"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "Sec-Fetch-Site": "same-origin",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Dest": "document",
        "Upgrade-Insecure-Requests": "1",
    }


# ──────────────────────────────────────────────────────────────────
#  Session bundle
# ──────────────────────────────────────────────────────────────────

def _cookie_pair(set_cookie: str) -> tuple[str, str] | None:
    """'name=value; Path=/; Secure' → ('name', 'value')."""
    first = set_cookie.split(";", 1)[0].strip()
    if "=" not in first:
        return None
    name, value = first.split("=", 1)
    name = name.strip()
    if not name:
        return None
    return name, value.strip()


@dataclass(frozen=True)
class SessionBundle:
    """
    Cookie state plus the CSRF token derived from it.

    Lives for one authenticate → fetch → logout cycle and is never stored.
    """

    cookies: Tuple[Tuple[str, str], ...] = ()
    csrf_token: str = ""

    @property
    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies)

    def merged(self, set_cookies: Iterable[str]) -> "SessionBundle":
        """
        New bundle with Set-Cookie values applied: last value wins per name,
        names already present keep their position, new names are appended.
        The CSRF token is re-derived since the portal may rotate it.
        """
        jar = dict(self.cookies)
        for raw in set_cookies:
            pair = _cookie_pair(raw)
            if pair:
                jar[pair[0]] = pair[1]
        cookies = tuple(jar.items())
        header = "; ".join(f"{n}={v}" for n, v in cookies)
        return SessionBundle(cookies, extract_csrf_token(header) or "")

    def __str__(self) -> str:
        return self.cookie_header


def extract_csrf_token(cookie_header: str) -> str | None:
    m = _CSRF_RE.search(cookie_header)
    return m.group(1) if m else None


def set_cookie_values(resp) -> list[str]:
    """All Set-Cookie header values of a response, unjoined."""
    raw_headers = getattr(getattr(resp, "raw", None), "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    value = resp.headers.get("Set-Cookie")
    return [value] if value else []


# ──────────────────────────────────────────────────────────────────
#  Authenticator
# ──────────────────────────────────────────────────────────────────

class SessionAuthenticator:
    """
    Runs the three-step sign-in and the best-effort sign-out.

    :param config: Portal endpoints and tunables.
    :param http: Object with requests-style get/post (default: the requests module).
    :param sleep: Called with the delay between steps (default: time.sleep).
    :param rng: Random source for the delays.
    """

    def __init__(
        self,
        config: PortalConfig | None = None,
        http=None,
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or PortalConfig()
        self.http = http if http is not None else requests
        self._sleep = sleep or time.sleep
        self._rng = rng or random.Random()

    def _pause(self) -> None:
        low, high = self.config.step_delay
        if high <= 0:
            return
        self._sleep(self._rng.uniform(low, high))

    def _request(self, method: str, url: str, **kwargs):
        try:
            return getattr(self.http, method)(url, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"{method.upper()} {url} failed: {e}") from e

    def _auth_headers(self, bundle: SessionBundle) -> dict[str, str]:
        headers = browser_headers(self.config)
        headers.update({
            "Cookie": bundle.cookie_header,
            CSRF_HEADER: CSRF_HEADER_PREFIX + bundle.csrf_token,
            "Origin": self.config.base_url,
            "Referer": self.config.login_page_url,
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Dest": "empty",
        })
        return headers

    # ── Step 1 ────────────────────────────────────────────────────

    def _open_login_page(self) -> SessionBundle:
        url = self.config.login_page_url
        logger.debug("Step 1: fetching sign-in page %s", url)
        resp = self._request("get", url, headers=browser_headers(self.config))
        if not 200 <= resp.status_code < 300:
            raise UpstreamUnavailable(f"Sign-in page returned status {resp.status_code}")

        bundle = SessionBundle().merged(set_cookie_values(resp))
        if not bundle.csrf_token:
            raise ProtocolError(f"Sign-in page did not set the '{CSRF_COOKIE}' cookie")
        return bundle

    # ── Step 2 ────────────────────────────────────────────────────

    def _lookup_user(self, username: str, bundle: SessionBundle) -> tuple[str, str, SessionBundle]:
        logger.debug("Step 2: user lookup for %s", username)
        form = {
            "mode": "primary",
            "cli_time": str(int(time.time() * 1000)),
            "servicename": self.config.service_name,
            "service_language": "en",
            "serviceurl": self.config.service_url,
        }
        headers = self._auth_headers(bundle)
        headers["Content-Type"] = "application/x-www-form-urlencoded;charset=UTF-8"
        resp = self._request("post", self.config.lookup_url(username), data=form, headers=headers)
        if resp.status_code >= 500:
            raise UpstreamUnavailable(f"User lookup returned status {resp.status_code}")

        bundle = bundle.merged(set_cookie_values(resp))
        if not bundle.csrf_token:
            raise ProtocolError(f"'{CSRF_COOKIE}' cookie disappeared after user lookup")

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        lookup = payload.get("lookup") if isinstance(payload, dict) else None
        identifier = lookup.get("identifier") if isinstance(lookup, dict) else None
        digest = lookup.get("digest") if isinstance(lookup, dict) else None
        if not identifier or not digest:
            logger.debug("User lookup rejected, status %s", resp.status_code)
            raise InvalidCredentials("User lookup failed. Invalid username.")
        return identifier, digest, bundle

    # ── Step 3 ────────────────────────────────────────────────────

    def _submit_password(
        self, password: str, identifier: str, digest: str, bundle: SessionBundle
    ) -> SessionBundle:
        logger.debug("Step 3: password for identifier %s", identifier)
        params = {
            "digest": digest,
            "cli_time": str(int(time.time() * 1000)),
            "servicename": self.config.service_name,
            "service_language": "en",
            "serviceurl": self.config.service_url,
        }
        headers = self._auth_headers(bundle)
        headers["Content-Type"] = "application/json;charset=UTF-8"
        resp = self._request(
            "post",
            self.config.password_url(identifier),
            params=params,
            json={"passwordauth": {"password": password}},
            headers=headers,
        )
        if resp.status_code >= 500:
            raise UpstreamUnavailable(f"Password step returned status {resp.status_code}")

        body = resp.text or ""
        logger.debug("Password step status %s, body starts %r", resp.status_code, body[:200])
        lowered = body.lower()
        if any(marker in lowered for marker in NON_TRUSTED_MARKERS):
            raise AutomationBlocked(
                "The portal blocked this sign-in as coming from a non-trusted client."
            )
        if ERROR_MARKER in body:
            raise InvalidCredentials("Invalid username or password.")
        if not 200 <= resp.status_code < 300:
            raise InvalidCredentials(f"Sign-in failed with status {resp.status_code}")

        return bundle.merged(set_cookie_values(resp))

    # ── Public API ────────────────────────────────────────────────

    def authenticate(self, username: str, password: str) -> SessionBundle:
        """
        Sign in and return the session bundle.

        :raises InvalidCredentials: bad username/password (AutomationBlocked
            when the portal flags the client).
        :raises ProtocolError: an expected cookie was missing.
        :raises UpstreamUnavailable: network failure, timeout or bad status.
        """
        bundle = self._open_login_page()
        self._pause()
        identifier, digest, bundle = self._lookup_user(username, bundle)
        self._pause()
        bundle = self._submit_password(password, identifier, digest, bundle)
        logger.info("Signed in as %s", username)
        return bundle

    def logout(self, bundle: SessionBundle) -> None:
        """Best-effort sign-out. Never raises."""
        try:
            headers = browser_headers(self.config)
            headers["Cookie"] = bundle.cookie_header
            resp = self.http.get(self.config.logout_url, headers=headers, timeout=self.config.timeout)
            logger.debug("Sign-out returned status %s", getattr(resp, "status_code", "N/A"))
        except Exception as e:
            logger.warning("Sign-out failed: %s", e)
