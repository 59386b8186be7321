"""
ViolationReporter that formats wire payloads and queues them when the
backend is unreachable.

Payloads that fail with TransientIOError go to a bounded pending queue and are
retried in order by flush_pending(). The queue never drops silently: overflow
evicts the oldest payload with a warning log.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from attendance_guard.alerts.violations import ViolationEvent
from attendance_guard.core.exceptions import TransientIOError
from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_PENDING = 500
ALERT_TYPE_CRITICAL = "critical_security_violation"

KIND_REPORT = "report"
KIND_ALERT = "alert"


class ReportTransport(Protocol):
    def send_report(self, payload: dict[str, Any]) -> None: ...

    def send_alert(self, payload: dict[str, Any]) -> None: ...


@dataclass
class PendingPayload:
    kind: str
    payload: dict[str, Any]
    attempts: int = 1


def build_report_payload(
    event: ViolationEvent,
    context: Mapping[str, Any],
    device_info: str,
) -> dict[str, Any]:
    """
    Wire format for one violation.

    type is the upper-case name lowercased (e.g. "mock_location"); timestamp
    is milliseconds since the epoch.
    """
    return {
        "type": event.type.name.lower(),
        "severity": event.severity.value,
        "description": f"{event.description}: {event.detail_message}",
        "timestamp": int(event.observed_at * 1000),
        "device_info": device_info,
        "additional_data": dict(context),
    }


def build_alert_payload(
    event: ViolationEvent,
    context: Mapping[str, Any],
    device_info: str,
) -> dict[str, Any]:
    payload = build_report_payload(event, context, device_info)
    payload["alert_type"] = ALERT_TYPE_CRITICAL
    payload["requires_immediate_attention"] = True
    return payload


class QueueingViolationReporter:
    def __init__(
        self,
        transport: ReportTransport,
        *,
        context_defaults: Mapping[str, Any] | None = None,
        device_info: str = "unknown device",
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self.transport = transport
        self.context_defaults = dict(context_defaults or {})
        self.device_info = device_info
        self.max_pending = max(1, max_pending)
        self._pending: deque[PendingPayload] = deque()
        self._lock = threading.Lock()
        self.sent_count = 0
        self.dropped_count = 0

    def report(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        payload = build_report_payload(event, {**self.context_defaults, **context}, self.device_info)
        self._send(KIND_REPORT, payload)

    def immediate_alert(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        payload = build_alert_payload(event, {**self.context_defaults, **context}, self.device_info)
        self._send(KIND_ALERT, payload)

    def _deliver(self, kind: str, payload: dict[str, Any]) -> None:
        if kind == KIND_ALERT:
            self.transport.send_alert(payload)
        else:
            self.transport.send_report(payload)

    def _send(self, kind: str, payload: dict[str, Any]) -> None:
        try:
            self._deliver(kind, payload)
        except TransientIOError as e:
            logger.warning("report_queued", kind=kind, violation_type=payload.get("type"), error=str(e))
            self._enqueue(PendingPayload(kind=kind, payload=payload))
            return
        self.sent_count += 1

    def _enqueue(self, item: PendingPayload) -> None:
        with self._lock:
            if len(self._pending) >= self.max_pending:
                dropped = self._pending.popleft()
                self.dropped_count += 1
                logger.warning(
                    "pending_report_dropped",
                    kind=dropped.kind,
                    violation_type=dropped.payload.get("type"),
                    max_pending=self.max_pending,
                )
            self._pending.append(item)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending(self) -> list[PendingPayload]:
        with self._lock:
            return list(self._pending)

    def flush_pending(self) -> int:
        """
        Retry queued payloads oldest first; stop at the first failure.

        Returns the number delivered.
        """
        delivered = 0
        while True:
            with self._lock:
                if not self._pending:
                    break
                item = self._pending[0]
            try:
                self._deliver(item.kind, item.payload)
            except TransientIOError as e:
                item.attempts += 1
                logger.info(
                    "pending_flush_stopped",
                    delivered=delivered,
                    remaining=self.pending_count(),
                    attempts=item.attempts,
                    error=str(e),
                )
                break
            with self._lock:
                if self._pending and self._pending[0] is item:
                    self._pending.popleft()
            delivered += 1
            self.sent_count += 1
        if delivered:
            logger.info("pending_flushed", delivered=delivered, remaining=self.pending_count())
        return delivered
