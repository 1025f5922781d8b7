"""
Error taxonomy for the browser automation core.

Only ``SessionLossError`` is ever retried (by ``ResilienceWrapper``); every
other error is terminal for the operation that raised it.
"""

from collections.abc import Sequence


class CourtbotError(Exception):
    """Base class for all automation errors."""


class AuthError(CourtbotError):
    """The login ritual failed or the site rejected the credentials."""


class SelectorNotFoundError(CourtbotError):
    """None of the candidate selectors matched; the site markup has probably drifted."""

    def __init__(self, selectors: Sequence[str], message: str | None = None) -> None:
        self.selectors = tuple(selectors)
        super().__init__(message or f"No element matched any of: {', '.join(self.selectors)}")


class DateNotFoundError(CourtbotError):
    """The target day is not present in the rendered calendar."""


class SessionLossError(CourtbotError):
    """The browser connection or context died mid-operation."""


class ResourceConstraintError(CourtbotError):
    """No automation engine could be acquired."""


class DriverError(CourtbotError):
    """Any other failure reported by the underlying automation engine."""


class AccountNotConfiguredError(CourtbotError):
    """The requested account id has no configured credentials."""


SESSION_LOSS_MARKERS = (
    "target page, context or browser has been closed",
    "browser has been closed",
    "connection closed",
    "protocol error",
    "invalid session id",
    "session deleted",
    "no such window",
    "chrome not reachable",
    "disconnected",
)

RESOURCE_CONSTRAINT_MARKERS = (
    "resource temporarily unavailable",
    "pthread_create",
    "fork",
    "eagain",
    "spawn",
    "failed to launch the browser process",
)


def is_session_loss(error: BaseException) -> bool:
    """Return True if ``error`` means the automation session itself is gone."""
    if isinstance(error, SessionLossError):
        return True
    if isinstance(error, CourtbotError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in SESSION_LOSS_MARKERS)


def is_resource_constraint(error: BaseException) -> bool:
    """Return True if a launch failure looks like host resource exhaustion."""
    if isinstance(error, ResourceConstraintError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in RESOURCE_CONSTRAINT_MARKERS)
