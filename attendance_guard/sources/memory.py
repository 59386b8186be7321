"""
In-process collaborators: a state store that keeps gates in memory and a
reporter that only writes structured logs. Used by the runtime when no
backend is configured, and by tests.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping

from attendance_guard.alerts.violations import ViolationEvent
from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)


class InMemoryAppStateStore:
    """AppStateStore holding the last written gate values; records every call."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.app_blocked = False
        self.app_block_reason: str | None = None
        self.attendance_blocked = False
        self.attendance_block_reason: str | None = None
        self.enhanced_monitoring = False
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def set_app_blocked(self, blocked: bool, reason: str | None) -> None:
        with self._lock:
            self.app_blocked = blocked
            self.app_block_reason = reason
            self.calls.append(("set_app_blocked", (blocked, reason)))
        logger.info("app_state_app_blocked", blocked=blocked, reason=reason)

    def set_attendance_blocked(self, blocked: bool, reason: str | None) -> None:
        with self._lock:
            self.attendance_blocked = blocked
            self.attendance_block_reason = reason
            self.calls.append(("set_attendance_blocked", (blocked, reason)))
        logger.info("app_state_attendance_blocked", blocked=blocked, reason=reason)

    def set_enhanced_monitoring(self, enabled: bool) -> None:
        with self._lock:
            self.enhanced_monitoring = enabled
            self.calls.append(("set_enhanced_monitoring", (enabled,)))
        logger.info("app_state_enhanced_monitoring", enabled=enabled)


class LoggingViolationReporter:
    """ViolationReporter that writes one log event per report/alert."""

    def report(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        logger.info(
            "violation_reported",
            violation_type=event.type.value,
            severity=event.severity.value,
            detail=event.detail_message,
            **_log_context(context),
        )

    def immediate_alert(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        logger.critical(
            "critical_violation_alert",
            violation_type=event.type.value,
            severity=event.severity.value,
            detail=event.detail_message,
            **_log_context(context),
        )


def _log_context(context: Mapping[str, Any]) -> dict[str, Any]:
    out = {k: v for k, v in context.items() if k not in ("event", "location")}
    location = context.get("location")
    if isinstance(location, Mapping):
        out["latitude"] = location.get("latitude")
        out["longitude"] = location.get("longitude")
    return out
