"""
Check-in gate: startup security checks and the pre-attendance check.

Outcome rules (user-visible):
- blocked: the app is blocked; no attendance action possible.
- warning: attendance refused for now (attendance block, poor accuracy,
  geofence); the app stays usable.
- allowed: check-in may proceed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from attendance_guard.alerts.escalation import ViolationSeverityStateMachine
from attendance_guard.alerts.violations import ViolationEvent, ViolationType
from attendance_guard.analysis_engine.location import LocationAuthenticityEvaluator
from attendance_guard.analysis_engine.models import (
    AuthenticityContext,
    GeofenceZone,
    IntegritySignals,
    LocationSample,
)
from attendance_guard.analysis_engine.scorer import compute_security_score
from attendance_guard.guard_logging import get_logger
from attendance_guard.sources.interfaces import IntegritySource, NetworkSource

logger = get_logger(__name__)

DEFAULT_CHECKIN_MAX_ACCURACY_M = 50.0

REASON_LOW_ACCURACY = "GPS accuracy too low. Please ensure clear GPS signal."
REASON_NO_LOCATION = "Unable to get current location"
REASON_OUTSIDE_GEOFENCE = "Location is outside allowed area"


class GateOutcome(str, Enum):
    ALLOWED = "allowed"
    WARNING = "warning"
    BLOCKED = "blocked"


@dataclass
class GateResult:
    outcome: GateOutcome
    reason: str | None = None
    violation: ViolationType | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GateOutcome.ALLOWED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "violation": self.violation.value if self.violation else None,
        }


@dataclass
class StartupCheckResult:
    passed: bool
    security_score: int
    violations: list[ViolationType] = field(default_factory=list)


# (signal attribute, violation, user-facing detail)
STARTUP_CHECKS = (
    (
        "rooted",
        ViolationType.ROOT_ACCESS,
        "Rooted device detected. App cannot run on rooted devices for security reasons.",
    ),
    (
        "developer_options_enabled",
        ViolationType.DEBUGGING_ENABLED,
        "Developer options are enabled. Please disable for security.",
    ),
    (
        "mock_location_app_present",
        ViolationType.MOCK_LOCATION,
        "Mock location apps detected. Please uninstall GPS spoofing applications.",
    ),
)
VPN_STARTUP_DETAIL = "VPN connection detected. Please disable VPN for attendance marking."


def run_startup_checks(
    signals: IntegritySignals,
    vpn_active: bool,
    machine: ViolationSeverityStateMachine,
) -> StartupCheckResult:
    """
    Raise a violation for every failing startup check (root, developer
    options, mock apps, VPN). Passed only when none fired.
    """
    fired: list[ViolationType] = []
    for attr, violation_type, detail in STARTUP_CHECKS:
        if getattr(signals, attr):
            machine.raise_violation(ViolationEvent(type=violation_type, detail_message=detail))
            fired.append(violation_type)
    if vpn_active:
        machine.raise_violation(
            ViolationEvent(type=ViolationType.VPN_DETECTED, detail_message=VPN_STARTUP_DETAIL)
        )
        fired.append(ViolationType.VPN_DETECTED)

    score = compute_security_score(signals)
    result = StartupCheckResult(passed=not fired, security_score=score, violations=fired)
    logger.info(
        "startup_checks_done",
        passed=result.passed,
        security_score=score,
        violations=[v.value for v in fired],
    )
    return result


def run_startup_checks_from_sources(
    integrity: IntegritySource,
    network: NetworkSource | None,
    machine: ViolationSeverityStateMachine,
) -> StartupCheckResult:
    """
    Collect signals and run the startup checks. A failure while collecting
    raises an UNKNOWN violation and fails the check.
    """
    try:
        signals = integrity.snapshot(deep=True)
        vpn_active = network.is_vpn_active() if network is not None else signals.vpn_active
    except Exception as e:
        logger.warning("startup_checks_failed", error=str(e), exc_info=True)
        machine.raise_violation(
            ViolationEvent(type=ViolationType.UNKNOWN, detail_message=f"Security check failed: {e}")
        )
        return StartupCheckResult(passed=False, security_score=0, violations=[ViolationType.UNKNOWN])
    return run_startup_checks(signals, vpn_active, machine)


def _outcome_after_raise(machine: ViolationSeverityStateMachine, violation: ViolationType) -> GateResult:
    if machine.is_app_blocked():
        return GateResult(GateOutcome.BLOCKED, machine.blocking_reason(), violation)
    return GateResult(GateOutcome.WARNING, machine.blocking_reason() or violation.description, violation)


def precheck_attendance(
    sample: LocationSample | None,
    machine: ViolationSeverityStateMachine,
    evaluator: LocationAuthenticityEvaluator,
    zone: GeofenceZone | None,
    *,
    now: float | None = None,
    gps: LocationSample | None = None,
    network: LocationSample | None = None,
    max_accuracy_m: float = DEFAULT_CHECKIN_MAX_ACCURACY_M,
) -> GateResult:
    """
    Decide whether a check-in may proceed right now.

    Existing blocks decide first. A missing or imprecise fix is a warning
    with no violation. Any negative authenticity verdict or a position
    outside the geofence is raised; the outcome then follows the gates.
    """
    if machine.is_app_blocked():
        return GateResult(GateOutcome.BLOCKED, machine.blocking_reason())
    if machine.is_attendance_blocked():
        return GateResult(GateOutcome.WARNING, machine.blocking_reason())

    if sample is None:
        return GateResult(GateOutcome.WARNING, REASON_NO_LOCATION)
    if sample.accuracy_meters > max_accuracy_m:
        logger.info(
            "checkin_low_accuracy",
            accuracy_m=sample.accuracy_meters,
            threshold_m=max_accuracy_m,
        )
        return GateResult(GateOutcome.WARNING, REASON_LOW_ACCURACY)

    now = time.time() if now is None else now
    verdict = evaluator.evaluate(
        AuthenticityContext(
            current=sample,
            now=now,
            previous=machine.last_location_sample(),
            gps=gps,
            network=network,
        )
    )
    if not verdict.trusted:
        violation = verdict.violation_type or ViolationType.UNKNOWN
        machine.raise_violation(
            ViolationEvent(
                type=violation,
                detail_message=f"{verdict.detail} (during check-in attempt)",
                observed_at=now,
            ),
            sample=sample,
        )
        return _outcome_after_raise(machine, violation)

    if zone is not None and not evaluator.is_within_geofence(sample, zone):
        machine.raise_violation(
            ViolationEvent(
                type=ViolationType.LOCATION_OUTSIDE_GEOFENCE,
                detail_message=REASON_OUTSIDE_GEOFENCE,
                observed_at=now,
            ),
            sample=sample,
        )
        return _outcome_after_raise(machine, ViolationType.LOCATION_OUTSIDE_GEOFENCE)

    return GateResult(GateOutcome.ALLOWED)
