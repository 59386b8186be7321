"""
Tests for violation escalation (ViolationSeverityStateMachine).

Severity dispatch, sticky gates, the violation ceiling, atomic concurrent
raises, explicit reset and collaborator-failure isolation.
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from attendance_guard.alerts.escalation import (
    REASON_EXCESSIVE,
    EscalationConfig,
    ViolationSeverityStateMachine,
)
from attendance_guard.alerts.violations import Severity, ViolationEvent, ViolationType
from attendance_guard.sources.memory import InMemoryAppStateStore
from tests.conftest import RecordingReporter, make_sample


def event(violation_type: ViolationType, detail: str = "test") -> ViolationEvent:
    return ViolationEvent(type=violation_type, detail_message=detail, observed_at=1_000.0)


# --- taxonomy -------------------------------------------------------------


@pytest.mark.parametrize(
    "violation_type,severity",
    [
        (ViolationType.MOCK_LOCATION, Severity.CRITICAL),
        (ViolationType.ROOT_ACCESS, Severity.CRITICAL),
        (ViolationType.GPS_SPOOFING, Severity.HIGH),
        (ViolationType.VPN_DETECTED, Severity.HIGH),
        (ViolationType.LOCATION_OUTSIDE_GEOFENCE, Severity.HIGH),
        (ViolationType.IMPOSSIBLE_MOVEMENT, Severity.HIGH),
        (ViolationType.INSTRUMENTATION_FRAMEWORK, Severity.HIGH),
        (ViolationType.DEBUGGING_ENABLED, Severity.MEDIUM),
        (ViolationType.NETWORK_MISMATCH, Severity.MEDIUM),
        (ViolationType.EMULATOR_DETECTED, Severity.MEDIUM),
        (ViolationType.UNKNOWN_SOURCES, Severity.LOW),
        (ViolationType.UNKNOWN, Severity.LOW),
    ],
)
def test_violation_type_severity(violation_type, severity):
    assert violation_type.severity is severity


def test_violation_type_from_code():
    """Wire codes round-trip; unrecognised codes map to UNKNOWN."""
    assert ViolationType.from_code("MOCK_LOCATION") is ViolationType.MOCK_LOCATION
    assert ViolationType.from_code("not_a_violation") is ViolationType.UNKNOWN


def test_severity_rank_order():
    assert Severity.LOW.rank < Severity.MEDIUM.rank < Severity.HIGH.rank < Severity.CRITICAL.rank


# --- dispatch -------------------------------------------------------------


def test_critical_blocks_app_and_alerts(machine, store, reporter):
    """Critical → app blocked, immediate alert, reason names the violation."""
    outcome = machine.raise_violation(event(ViolationType.MOCK_LOCATION))
    assert outcome.app_blocked is True
    assert outcome.immediate_alert is True
    assert machine.is_app_blocked() is True
    assert machine.is_attendance_blocked() is False
    assert machine.blocking_reason() == "Critical security violation: Mock location detected"
    assert store.app_blocked is True
    assert len(reporter.reports) == 1
    assert len(reporter.alerts) == 1


def test_high_blocks_attendance_only(machine, store, reporter):
    """High → attendance blocked, app still usable, no alert."""
    machine.raise_violation(event(ViolationType.VPN_DETECTED))
    assert machine.is_attendance_blocked() is True
    assert machine.is_app_blocked() is False
    assert machine.blocking_reason() == "Security violation: VPN/Proxy connection detected"
    assert store.attendance_blocked is True
    assert reporter.alerts == []


def test_medium_enables_enhanced_monitoring(machine, store):
    machine.raise_violation(event(ViolationType.DEBUGGING_ENABLED))
    assert machine.is_enhanced_monitoring() is True
    assert machine.is_app_blocked() is False
    assert machine.is_attendance_blocked() is False
    assert store.enhanced_monitoring is True


def test_low_only_counts(machine, store, reporter):
    machine.raise_violation(event(ViolationType.UNKNOWN_SOURCES))
    assert machine.violation_count == 1
    assert machine.is_app_blocked() is False
    assert machine.is_attendance_blocked() is False
    assert machine.is_enhanced_monitoring() is False
    assert store.calls == []
    assert len(reporter.reports) == 1


def test_every_raise_is_counted_logged_and_reported(machine, reporter):
    for vt in (ViolationType.UNKNOWN, ViolationType.NETWORK_MISMATCH, ViolationType.GPS_SPOOFING):
        machine.raise_violation(event(vt))
    assert machine.violation_count == 3
    assert [e.type for e in machine.violations()] == [
        ViolationType.UNKNOWN,
        ViolationType.NETWORK_MISMATCH,
        ViolationType.GPS_SPOOFING,
    ]
    assert len(reporter.reports) == 3


# --- stickiness and ceiling ----------------------------------------------


def test_blocks_are_sticky(machine):
    """A later low-severity raise never clears earlier gates."""
    machine.raise_violation(event(ViolationType.ROOT_ACCESS))
    machine.raise_violation(event(ViolationType.IMPOSSIBLE_MOVEMENT))
    machine.raise_violation(event(ViolationType.UNKNOWN))
    assert machine.is_app_blocked() is True
    assert machine.is_attendance_blocked() is True
    assert machine.blocking_reason() == "Critical security violation: Root access detected"


def test_first_reason_is_kept(machine):
    """Second high raise does not overwrite the attendance block reason."""
    machine.raise_violation(event(ViolationType.VPN_DETECTED))
    outcome = machine.raise_violation(event(ViolationType.GPS_SPOOFING))
    assert outcome.attendance_blocked is False
    assert machine.blocking_reason() == "Security violation: VPN/Proxy connection detected"


def test_ceiling_blocks_app_after_six_low_raises(machine, store):
    """Five low raises stay under the ceiling; the sixth blocks the app."""
    for _ in range(5):
        machine.raise_violation(event(ViolationType.UNKNOWN_SOURCES))
    assert machine.is_app_blocked() is False
    outcome = machine.raise_violation(event(ViolationType.UNKNOWN_SOURCES))
    assert outcome.excessive is True
    assert machine.is_app_blocked() is True
    assert machine.blocking_reason() == REASON_EXCESSIVE
    assert store.app_block_reason == REASON_EXCESSIVE


def test_ceiling_is_configurable(store, reporter):
    machine = ViolationSeverityStateMachine(store, reporter, EscalationConfig(max_violations=1))
    machine.raise_violation(event(ViolationType.UNKNOWN))
    assert machine.is_app_blocked() is False
    machine.raise_violation(event(ViolationType.UNKNOWN))
    assert machine.is_app_blocked() is True


def test_violation_log_bounded_count_exact(store, reporter):
    """The log keeps the most recent entries; the count stays exact."""
    machine = ViolationSeverityStateMachine(
        store, reporter, EscalationConfig(max_violations=1_000, max_log_entries=3)
    )
    for i in range(10):
        machine.raise_violation(event(ViolationType.UNKNOWN, detail=str(i)))
    assert machine.violation_count == 10
    assert [e.detail_message for e in machine.violations()] == ["7", "8", "9"]


# --- concurrency ----------------------------------------------------------


def test_concurrent_raises_lose_no_counts():
    """N threads raising concurrently → count == N, app blocked once."""
    store = MagicMock()
    machine = ViolationSeverityStateMachine(store=store, config=EscalationConfig(max_violations=5))
    threads_count = 16
    per_thread = 50
    barrier = threading.Barrier(threads_count)

    def worker():
        barrier.wait()
        for _ in range(per_thread):
            machine.raise_violation(event(ViolationType.UNKNOWN))

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert machine.violation_count == threads_count * per_thread
    assert machine.is_app_blocked() is True
    store.set_app_blocked.assert_called_once_with(True, REASON_EXCESSIVE)


# --- reset ----------------------------------------------------------------


def test_reset_clears_state_and_store(machine, store):
    """Reset is the only path that clears gates."""
    machine.raise_violation(event(ViolationType.MOCK_LOCATION))
    machine.raise_violation(event(ViolationType.VPN_DETECTED))
    machine.raise_violation(event(ViolationType.DEBUGGING_ENABLED))
    machine.record_location_sample(make_sample())
    machine.reset(actor="admin@example.com")
    assert machine.violation_count == 0
    assert machine.is_app_blocked() is False
    assert machine.is_attendance_blocked() is False
    assert machine.is_enhanced_monitoring() is False
    assert machine.blocking_reason() is None
    assert machine.last_location_sample() is None
    assert store.app_blocked is False
    assert store.attendance_blocked is False
    assert store.enhanced_monitoring is False


def test_reset_store_write_cannot_overwrite_a_concurrent_block():
    """A critical raise during reset's store writes leaves the store blocked, like the machine."""
    unblock_started = threading.Event()
    release_unblock = threading.Event()

    class SlowUnblockStore(InMemoryAppStateStore):
        def set_app_blocked(self, blocked, reason):
            if not blocked:
                unblock_started.set()
                release_unblock.wait(timeout=5)
            super().set_app_blocked(blocked, reason)

    store = SlowUnblockStore()
    machine = ViolationSeverityStateMachine(store=store)
    resetter = threading.Thread(target=machine.reset, args=("admin@example.com",))
    resetter.start()
    assert unblock_started.wait(timeout=5)

    raiser = threading.Thread(target=machine.raise_violation, args=(event(ViolationType.MOCK_LOCATION),))
    raiser.start()
    raiser.join(timeout=0.2)
    assert raiser.is_alive()

    release_unblock.set()
    resetter.join(timeout=5)
    raiser.join(timeout=5)
    assert machine.is_app_blocked() is True
    assert store.app_blocked is True
    assert store.calls[-1][0] == "set_app_blocked"


def test_explicit_sample_overrides_retained_fix_in_report(reporter):
    machine = ViolationSeverityStateMachine(reporter=reporter)
    machine.record_location_sample(make_sample(accuracy=12.0))
    machine.raise_violation(event(ViolationType.GPS_SPOOFING), sample=make_sample(accuracy=0.3))
    _, context = reporter.reports[0]
    assert context["location"]["accuracy_meters"] == 0.3


# --- collaborators --------------------------------------------------------


def test_reporter_failure_does_not_break_state(store):
    """A failing reporter is logged; the block still applies."""
    machine = ViolationSeverityStateMachine(store=store, reporter=RecordingReporter(error=RuntimeError("down")))
    outcome = machine.raise_violation(event(ViolationType.ROOT_ACCESS))
    assert outcome.app_blocked is True
    assert machine.is_app_blocked() is True
    assert store.app_blocked is True


def test_store_failure_does_not_break_state(reporter):
    store = MagicMock()
    store.set_attendance_blocked.side_effect = OSError("disk full")
    machine = ViolationSeverityStateMachine(store=store, reporter=reporter)
    machine.raise_violation(event(ViolationType.GPS_SPOOFING))
    assert machine.is_attendance_blocked() is True
    assert len(reporter.reports) == 1


def test_report_context_carries_session_and_location(reporter):
    machine = ViolationSeverityStateMachine(
        reporter=reporter, report_context={"device_info": "Pixel 7"}, session_id="s-1"
    )
    machine.record_location_sample(make_sample(accuracy=12.0))
    machine.raise_violation(event(ViolationType.NETWORK_MISMATCH))
    _, context = reporter.reports[0]
    assert context["session_id"] == "s-1"
    assert context["device_info"] == "Pixel 7"
    assert context["violation_count"] == 1
    assert context["location"]["accuracy_meters"] == 12.0


def test_snapshot_is_detached(machine):
    machine.raise_violation(event(ViolationType.UNKNOWN))
    snap = machine.snapshot()
    machine.raise_violation(event(ViolationType.UNKNOWN))
    assert snap.violation_count == 1
    assert len(snap.violations) == 1
    assert snap.to_dict()["violation_count"] == 1
