"""
Core utilities — error taxonomy and cross-cutting concerns shared by the
analysis engine, escalation, scheduler and adapters.
"""

from attendance_guard.core.exceptions import (
    ConfigError,
    GuardError,
    SignalUnavailableError,
    TransientIOError,
)

__all__ = [
    "ConfigError",
    "GuardError",
    "SignalUnavailableError",
    "TransientIOError",
]
