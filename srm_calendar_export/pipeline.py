"""
End-to-end calendar generation: sign in, fetch, parse, merge, sign out.

Every call performs its own sign-in and sign-out; sessions are never cached
or shared between calls.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Protocol, Tuple, TypeVar

from .config import PortalConfig
from .errors import (
    CalendarExportError,
    GenerationFailure,
    InvalidCredentials,
    ProtocolError,
    UpstreamUnavailable,
)
from .export import generate_ics, merge_schedule
from .model import ClassEvent, DayEvent, DaySchedule
from .page_fetch import PageFetcher
from .planner_html import parse_planner_html
from .session_fetch import SessionAuthenticator, SessionBundle
from .timetable_html import parse_timetable

logger = logging.getLogger(__name__)

# Raised unchanged; everything else is wrapped in GenerationFailure.
_PASS_THROUGH = (InvalidCredentials, ProtocolError, UpstreamUnavailable, GenerationFailure)

T = TypeVar("T")


class CredentialStore(Protocol):
    def lookup_credential_by_token(self, token: str) -> Tuple[str, str]:
        """(username, encrypted password) for a subscription token."""


class PasswordCipher(Protocol):
    def decrypt(self, encrypted_password: str) -> str:
        ...


def validate_credentials(
    username: str,
    password: str,
    config: PortalConfig | None = None,
    *,
    authenticator: SessionAuthenticator | None = None,
) -> None:
    """
    Sign in and immediately sign out. Returns None on success.

    :raises InvalidCredentials, ProtocolError, UpstreamUnavailable:
    """
    auth = authenticator or SessionAuthenticator(config)
    session = auth.authenticate(username, password)
    auth.logout(session)
    logger.info("Credentials for %s are valid", username)


def _run(
    username: str,
    password: str,
    config: PortalConfig,
    auth: SessionAuthenticator,
    pages: PageFetcher,
    build: Callable[[List[DaySchedule], List[DayEvent]], T],
) -> T:
    session: SessionBundle | None = None
    try:
        session = auth.authenticate(username, password)
        timetable_html = pages.fetch_timetable(session)
        planner_html = pages.fetch_academic_planner(session)

        timetable = parse_timetable(timetable_html)
        planner = parse_planner_html(planner_html)
        if not planner:
            logger.warning("Academic planner is empty; the calendar will have no events")

        return build(timetable, planner)
    except _PASS_THROUGH:
        raise
    except Exception as e:
        logger.exception("Calendar generation failed for %s", username)
        raise GenerationFailure("Failed to generate calendar. See logs for details.") from e
    finally:
        if session is not None:
            auth.logout(session)


def generate_calendar(
    username: str,
    password: str,
    config: PortalConfig | None = None,
    *,
    authenticator: SessionAuthenticator | None = None,
    fetcher: PageFetcher | None = None,
) -> str:
    """
    Produce the iCalendar feed for one student.

    Sign-in and timetable errors propagate as is; an unreachable planner
    gives an empty calendar; anything unexpected becomes GenerationFailure
    with the original exception as __cause__. Sign-out is attempted whenever
    a session was obtained.
    """
    config = config or PortalConfig()
    return _run(
        username, password, config,
        authenticator or SessionAuthenticator(config),
        fetcher or PageFetcher(config),
        lambda timetable, planner: generate_ics(timetable, planner, config.timezone),
    )


def collect_class_events(
    username: str,
    password: str,
    config: PortalConfig | None = None,
    *,
    authenticator: SessionAuthenticator | None = None,
    fetcher: PageFetcher | None = None,
) -> List[ClassEvent]:
    """Same pipeline as generate_calendar, returning the merged events instead."""
    config = config or PortalConfig()
    return _run(
        username, password, config,
        authenticator or SessionAuthenticator(config),
        fetcher or PageFetcher(config),
        lambda timetable, planner: merge_schedule(timetable, planner, config.timezone),
    )


def generate_for_token(
    token: str,
    store: CredentialStore,
    cipher: PasswordCipher,
    config: PortalConfig | None = None,
    **kwargs,
) -> str:
    """Look up and decrypt the stored credentials for token, then generate."""
    try:
        username, encrypted = store.lookup_credential_by_token(token)
        password = cipher.decrypt(encrypted)
    except CalendarExportError:
        raise
    except Exception as e:
        logger.exception("Could not load credentials for subscription token")
        raise GenerationFailure("Subscription token not found or invalid.") from e
    return generate_calendar(username, password, config, **kwargs)
