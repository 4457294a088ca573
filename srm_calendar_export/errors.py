"""
Exceptions raised while logging in, fetching, parsing and exporting.
"""
from __future__ import annotations


class CalendarExportError(Exception):
    """Base class for everything this package raises on purpose."""


class InvalidCredentials(CalendarExportError):
    """The portal rejected the username or password."""


class AutomationBlocked(InvalidCredentials):
    """The portal flagged the login as coming from a non-trusted client."""


class ProtocolError(CalendarExportError):
    """An expected cookie or token was missing: the login flow changed shape."""


class UpstreamUnavailable(CalendarExportError):
    """Network failure, timeout or unexpected HTTP status from the portal."""


class ParseWarning(CalendarExportError):
    """Recoverable parse anomaly. Callers log it and carry on with less data."""


class SlotTimeError(ParseWarning, ValueError):
    """A slot time range could not be parsed by any strategy."""

    def __init__(self, text: str, attempts: list[str]):
        self.text = text
        self.attempts = attempts
        super().__init__(f"Could not parse time {text!r}: " + "; ".join(attempts))


class GenerationFailure(CalendarExportError):
    """Unexpected failure during calendar generation. See __cause__."""
