"""
Violation taxonomy and escalation.

Classifies raised violations into severity tiers, applies the blocking /
enhanced-monitoring policy, and hands events to the reporting collaborator.
"""

from attendance_guard.alerts.violations import (
    Severity,
    ViolationEvent,
    ViolationType,
)
from attendance_guard.alerts.escalation import (
    EscalationConfig,
    EscalationOutcome,
    TrustState,
    ViolationSeverityStateMachine,
)

__all__ = [
    "Severity",
    "ViolationEvent",
    "ViolationType",
    "EscalationConfig",
    "EscalationOutcome",
    "TrustState",
    "ViolationSeverityStateMachine",
]
