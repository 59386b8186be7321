"""
Violation escalation: per-session trust state machine.

Every raised violation is logged and counted, then escalated by its tier:
- critical (mock location, root access): app blocked + immediate alert.
- high (spoofing, VPN, geofence, impossible movement, instrumentation):
  attendance blocked, app stays usable.
- medium (debugging, network mismatch, emulator): enhanced monitoring.
- low (unknown sources, unknown): counted only.
Regardless of tier, once the session's count exceeds max_violations the app
is blocked ("many small issues equal one big issue").

Gates are sticky: only reset() (an explicit admin action) clears them.
Mutation is atomic per raise under a lock. State-store writes are serialized
with the mutation that produced them, so the store always ends in the same
gate state as the machine. Reporting runs after both locks are released.
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from attendance_guard.alerts.violations import Severity, ViolationEvent
from attendance_guard.analysis_engine.models import LocationSample
from attendance_guard.guard_logging import get_logger

if TYPE_CHECKING:
    from attendance_guard.sources.interfaces import AppStateStore, ViolationReporter

logger = get_logger(__name__)

DEFAULT_MAX_VIOLATIONS = 5
# Violation log keeps the most recent entries; violation_count stays exact
DEFAULT_MAX_LOG_ENTRIES = 1_000

REASON_CRITICAL = "Critical security violation: {description}"
REASON_HIGH = "Security violation: {description}"
REASON_EXCESSIVE = "Excessive security violations detected"


@dataclass
class EscalationConfig:
    """Escalation thresholds."""

    max_violations: int = DEFAULT_MAX_VIOLATIONS
    """Block the app once violation_count exceeds this within a session."""
    max_log_entries: int = DEFAULT_MAX_LOG_ENTRIES


@dataclass
class TrustState:
    """
    Session-scoped blocking flags and violation history.

    Owned exclusively by ViolationSeverityStateMachine; readers get copies
    via snapshot().
    """

    violation_count: int = 0
    app_blocked: bool = False
    app_block_reason: str | None = None
    attendance_blocked: bool = False
    attendance_block_reason: str | None = None
    enhanced_monitoring: bool = False
    last_location_sample: LocationSample | None = None
    violations: deque[ViolationEvent] = field(default_factory=deque)

    def to_dict(self) -> dict[str, Any]:
        return {
            "violation_count": self.violation_count,
            "app_blocked": self.app_blocked,
            "app_block_reason": self.app_block_reason,
            "attendance_blocked": self.attendance_blocked,
            "attendance_block_reason": self.attendance_block_reason,
            "enhanced_monitoring": self.enhanced_monitoring,
            "violations": [v.to_dict() for v in self.violations],
        }


@dataclass
class EscalationOutcome:
    """What a single raise changed; gates listed here were newly set by it."""

    event: ViolationEvent
    violation_count: int
    app_blocked: bool = False
    attendance_blocked: bool = False
    enhanced_monitoring: bool = False
    excessive: bool = False
    immediate_alert: bool = False
    app_block_reason: str | None = None
    attendance_block_reason: str | None = None


def _set_app_block(state: TrustState, outcome: EscalationOutcome, reason: str) -> None:
    if state.app_blocked:
        return
    state.app_blocked = True
    state.app_block_reason = reason
    outcome.app_blocked = True
    outcome.app_block_reason = reason


def _escalate_critical(state: TrustState, outcome: EscalationOutcome) -> None:
    _set_app_block(state, outcome, REASON_CRITICAL.format(description=outcome.event.description))
    outcome.immediate_alert = True


def _escalate_high(state: TrustState, outcome: EscalationOutcome) -> None:
    if state.attendance_blocked:
        return
    reason = REASON_HIGH.format(description=outcome.event.description)
    state.attendance_blocked = True
    state.attendance_block_reason = reason
    outcome.attendance_blocked = True
    outcome.attendance_block_reason = reason


def _escalate_medium(state: TrustState, outcome: EscalationOutcome) -> None:
    if state.enhanced_monitoring:
        return
    state.enhanced_monitoring = True
    outcome.enhanced_monitoring = True


def _escalate_low(state: TrustState, outcome: EscalationOutcome) -> None:
    return None


TIER_ACTIONS: dict[Severity, Callable[[TrustState, EscalationOutcome], None]] = {
    Severity.CRITICAL: _escalate_critical,
    Severity.HIGH: _escalate_high,
    Severity.MEDIUM: _escalate_medium,
    Severity.LOW: _escalate_low,
}


class ViolationSeverityStateMachine:
    """
    Process-wide trust state for one monitoring session.

    store/reporter are optional collaborators; without them the machine
    still tracks state (useful for gating decisions in-process).
    """

    def __init__(
        self,
        store: AppStateStore | None = None,
        reporter: ViolationReporter | None = None,
        config: EscalationConfig | None = None,
        *,
        report_context: Mapping[str, Any] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.config = config or EscalationConfig()
        self.session_id = session_id or uuid.uuid4().hex
        self._store = store
        self._reporter = reporter
        self._report_context = dict(report_context or {})
        self._lock = threading.Lock()
        # Held across a mutation and its store writes; taken before _lock
        self._store_lock = threading.Lock()
        self._state = self._fresh_state()

    def _fresh_state(self) -> TrustState:
        return TrustState(violations=deque(maxlen=self.config.max_log_entries))

    # -- mutation ---------------------------------------------------------

    def raise_violation(
        self,
        event: ViolationEvent,
        *,
        sample: LocationSample | None = None,
    ) -> EscalationOutcome:
        """
        Record a violation and escalate it by tier; returns what changed.

        sample is the fix that triggered the violation; reports carry it,
        falling back to the last retained fix when it is omitted.
        """
        with self._store_lock:
            with self._lock:
                state = self._state
                state.violations.append(event)
                state.violation_count += 1
                outcome = EscalationOutcome(event=event, violation_count=state.violation_count)
                TIER_ACTIONS[event.type.severity](state, outcome)
                if state.violation_count > self.config.max_violations:
                    was_blocked = state.app_blocked
                    _set_app_block(state, outcome, REASON_EXCESSIVE)
                    outcome.excessive = not was_blocked
                if sample is None:
                    sample = state.last_location_sample
            self._write_store(outcome)

        logger.info(
            "violation_raised",
            session_id=self.session_id,
            violation_type=event.type.value,
            severity=event.severity.value,
            detail=event.detail_message,
            violation_count=outcome.violation_count,
            app_blocked=outcome.app_blocked,
            attendance_blocked=outcome.attendance_blocked,
            enhanced_monitoring=outcome.enhanced_monitoring,
        )
        if outcome.excessive:
            logger.warning(
                "excessive_violations",
                session_id=self.session_id,
                violation_count=outcome.violation_count,
                max_violations=self.config.max_violations,
            )
        self._report(outcome, sample)
        return outcome

    def _write_store(self, outcome: EscalationOutcome) -> None:
        if self._store is None:
            return
        if outcome.app_blocked:
            self._call_collaborator(
                "store_set_app_blocked", self._store.set_app_blocked, True, outcome.app_block_reason
            )
        if outcome.attendance_blocked:
            self._call_collaborator(
                "store_set_attendance_blocked",
                self._store.set_attendance_blocked,
                True,
                outcome.attendance_block_reason,
            )
        if outcome.enhanced_monitoring:
            self._call_collaborator(
                "store_set_enhanced_monitoring", self._store.set_enhanced_monitoring, True
            )

    def _report(self, outcome: EscalationOutcome, sample: LocationSample | None) -> None:
        context: dict[str, Any] = {
            **self._report_context,
            "session_id": self.session_id,
            "violation_count": outcome.violation_count,
        }
        if sample is not None:
            context["location"] = {
                "latitude": sample.latitude,
                "longitude": sample.longitude,
                "accuracy_meters": sample.accuracy_meters,
            }

        if self._reporter is not None:
            self._call_collaborator("violation_report", self._reporter.report, outcome.event, context)
            if outcome.immediate_alert:
                self._call_collaborator(
                    "violation_immediate_alert", self._reporter.immediate_alert, outcome.event, context
                )

    def _call_collaborator(self, name: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.warning(
                f"{name}_failed",
                session_id=self.session_id,
                error=str(e),
                exc_info=True,
            )

    def record_location_sample(self, sample: LocationSample) -> None:
        """Retain sample as the reference for the next movement check."""
        with self._lock:
            self._state.last_location_sample = sample

    def reset(self, actor: str) -> None:
        """
        Explicit external reset (e.g. admin override): fresh state, gates cleared.

        This is the only path that clears a block.
        """
        with self._store_lock:
            with self._lock:
                previous = self._state
                self._state = self._fresh_state()
            if self._store is not None:
                self._call_collaborator("store_set_app_blocked", self._store.set_app_blocked, False, None)
                self._call_collaborator(
                    "store_set_attendance_blocked", self._store.set_attendance_blocked, False, None
                )
                self._call_collaborator(
                    "store_set_enhanced_monitoring", self._store.set_enhanced_monitoring, False
                )
        logger.warning(
            "trust_state_reset",
            session_id=self.session_id,
            actor=actor,
            previous_violation_count=previous.violation_count,
            previous_app_blocked=previous.app_blocked,
            previous_attendance_blocked=previous.attendance_blocked,
        )

    # -- reads ------------------------------------------------------------

    def is_app_blocked(self) -> bool:
        with self._lock:
            return self._state.app_blocked

    def is_attendance_blocked(self) -> bool:
        with self._lock:
            return self._state.attendance_blocked

    def is_enhanced_monitoring(self) -> bool:
        with self._lock:
            return self._state.enhanced_monitoring

    def blocking_reason(self) -> str | None:
        """App block reason if the app is blocked, else the attendance block reason."""
        with self._lock:
            if self._state.app_blocked:
                return self._state.app_block_reason
            if self._state.attendance_blocked:
                return self._state.attendance_block_reason
            return None

    @property
    def violation_count(self) -> int:
        with self._lock:
            return self._state.violation_count

    def violations(self) -> list[ViolationEvent]:
        with self._lock:
            return list(self._state.violations)

    def last_location_sample(self) -> LocationSample | None:
        with self._lock:
            return self._state.last_location_sample

    def snapshot(self) -> TrustState:
        """Detached copy of the current state."""
        with self._lock:
            return dataclasses.replace(
                self._state,
                violations=deque(self._state.violations, maxlen=self._state.violations.maxlen),
            )
