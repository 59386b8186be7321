"""
Application-level exceptions.

Policy violations are not exceptions: they are evaluation outcomes handled by
the escalation state machine. Exceptions here cover configuration problems,
collaborators that cannot supply a reading, and report delivery failures.
"""

from __future__ import annotations


class GuardError(Exception):
    """Base class for all attendance_guard errors."""


class ConfigError(GuardError, ValueError):
    """Invalid or missing configuration value."""


class SignalUnavailableError(GuardError):
    """A collaborator could not supply a reading.

    Callers map this to the documented default for the check (default-trust
    for most checks, default-deny for root detection).
    """

    def __init__(self, signal: str, reason: str = "") -> None:
        self.signal = signal
        self.reason = reason
        message = f"Signal unavailable: {signal}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class TransientIOError(GuardError):
    """Report or alert submission failed; the payload should be retried later."""
