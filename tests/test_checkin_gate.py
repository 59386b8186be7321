"""
Tests for the check-in gate (run_startup_checks, precheck_attendance).

Outcome is blocked only when the app is blocked; attendance-only blocks,
poor accuracy and geofence failures are warnings.
"""

from __future__ import annotations

import pytest

from attendance_guard.alerts.violations import ViolationEvent, ViolationType
from attendance_guard.analysis_engine.location import LocationAuthenticityEvaluator
from attendance_guard.analysis_engine.models import GeofenceZone, IntegritySignals
from attendance_guard.checkin.gate import (
    REASON_LOW_ACCURACY,
    REASON_NO_LOCATION,
    GateOutcome,
    precheck_attendance,
    run_startup_checks,
    run_startup_checks_from_sources,
)
from tests.conftest import OFFICE_LAT, OFFICE_LON, FakeIntegritySource, FakeNetworkSource, make_sample


@pytest.fixture
def evaluator():
    return LocationAuthenticityEvaluator()


@pytest.fixture
def zone():
    return GeofenceZone(OFFICE_LAT, OFFICE_LON, 200.0)


# --- startup --------------------------------------------------------------


def test_startup_clean_device_passes(machine):
    result = run_startup_checks(IntegritySignals(), False, machine)
    assert result.passed is True
    assert result.security_score == 100
    assert machine.violation_count == 0


def test_startup_raises_every_failing_check(machine):
    """Root, developer options, mock app and VPN are all raised, in that order."""
    signals = IntegritySignals(rooted=True, developer_options_enabled=True, mock_location_app_present=True)
    result = run_startup_checks(signals, True, machine)
    assert result.passed is False
    assert result.violations == [
        ViolationType.ROOT_ACCESS,
        ViolationType.DEBUGGING_ENABLED,
        ViolationType.MOCK_LOCATION,
        ViolationType.VPN_DETECTED,
    ]
    assert machine.violation_count == 4
    assert machine.is_app_blocked() is True


def test_startup_vpn_only_blocks_attendance(machine):
    result = run_startup_checks(IntegritySignals(), True, machine)
    assert result.passed is False
    assert machine.is_attendance_blocked() is True
    assert machine.is_app_blocked() is False


def test_startup_from_sources(machine):
    result = run_startup_checks_from_sources(
        FakeIntegritySource(IntegritySignals(developer_options_enabled=True)),
        FakeNetworkSource(False),
        machine,
    )
    assert result.violations == [ViolationType.DEBUGGING_ENABLED]
    assert result.security_score == 85


def test_startup_source_failure_raises_unknown(machine):
    """A check that cannot run fails closed with an UNKNOWN violation."""
    result = run_startup_checks_from_sources(FakeIntegritySource(error=OSError("adb offline")), None, machine)
    assert result.passed is False
    assert result.violations == [ViolationType.UNKNOWN]
    assert machine.violations()[0].detail_message == "Security check failed: adb offline"


# --- pre-attendance -------------------------------------------------------


def test_precheck_allowed(machine, evaluator, zone):
    result = precheck_attendance(make_sample(), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.ALLOWED
    assert result.allowed is True


def test_precheck_app_blocked_is_blocked(machine, evaluator, zone):
    machine.raise_violation(ViolationEvent(type=ViolationType.ROOT_ACCESS, detail_message="su"))
    result = precheck_attendance(make_sample(), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.BLOCKED
    assert result.reason == "Critical security violation: Root access detected"


def test_precheck_attendance_blocked_is_warning(machine, evaluator, zone):
    machine.raise_violation(ViolationEvent(type=ViolationType.VPN_DETECTED, detail_message="tun0"))
    result = precheck_attendance(make_sample(), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.WARNING
    assert result.reason == "Security violation: VPN/Proxy connection detected"


def test_precheck_no_location_is_warning(machine, evaluator, zone):
    result = precheck_attendance(None, machine, evaluator, zone)
    assert result.outcome is GateOutcome.WARNING
    assert result.reason == REASON_NO_LOCATION
    assert machine.violation_count == 0


def test_precheck_low_accuracy_is_warning_without_violation(machine, evaluator, zone):
    result = precheck_attendance(make_sample(accuracy=65.0), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.WARNING
    assert result.reason == REASON_LOW_ACCURACY
    assert machine.violation_count == 0


def test_precheck_mock_location_blocks(machine, evaluator, zone, reporter):
    result = precheck_attendance(make_sample(is_flagged_mock=True), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.BLOCKED
    assert result.violation is ViolationType.MOCK_LOCATION
    assert len(reporter.alerts) == 1


def test_precheck_outside_geofence_is_warning(machine, evaluator, zone):
    outside = make_sample(OFFICE_LAT + 0.003)
    result = precheck_attendance(outside, machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.WARNING
    assert result.violation is ViolationType.LOCATION_OUTSIDE_GEOFENCE
    assert machine.is_attendance_blocked() is True
    assert result.to_dict()["violation"] == "location_outside_geofence"


def test_precheck_spoofing_is_warning(machine, evaluator, zone):
    """A high-severity verdict blocks attendance only."""
    result = precheck_attendance(make_sample(accuracy=0.2), machine, evaluator, zone, now=1_000.0)
    assert result.outcome is GateOutcome.WARNING
    assert result.violation is ViolationType.GPS_SPOOFING
