"""
Violation taxonomy: severity tiers, the closed set of violation types, and
the immutable event raised whenever an evaluator produces a negative verdict.

Every ViolationType carries its tier, so escalation is a lookup on the type
rather than string matching on a free-form field.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


class ViolationType(Enum):
    """Closed set of violations; value is the wire code, plus tier and description."""

    MOCK_LOCATION = ("mock_location", Severity.CRITICAL, "Mock location detected")
    ROOT_ACCESS = ("root_access", Severity.CRITICAL, "Root access detected")
    GPS_SPOOFING = ("gps_spoofing", Severity.HIGH, "GPS spoofing detected")
    VPN_DETECTED = ("vpn_detected", Severity.HIGH, "VPN/Proxy connection detected")
    LOCATION_OUTSIDE_GEOFENCE = (
        "location_outside_geofence",
        Severity.HIGH,
        "Location outside allowed area",
    )
    IMPOSSIBLE_MOVEMENT = ("impossible_movement", Severity.HIGH, "Impossible movement detected")
    INSTRUMENTATION_FRAMEWORK = (
        "instrumentation_framework",
        Severity.HIGH,
        "Instrumentation framework detected",
    )
    DEBUGGING_ENABLED = ("debugging_enabled", Severity.MEDIUM, "USB debugging enabled")
    NETWORK_MISMATCH = ("network_mismatch", Severity.MEDIUM, "Network location mismatch")
    EMULATOR_DETECTED = ("emulator_detected", Severity.MEDIUM, "Running on emulator")
    UNKNOWN_SOURCES = ("unknown_sources", Severity.LOW, "Unknown sources enabled")
    UNKNOWN = ("unknown", Severity.LOW, "Unknown security violation")

    def __new__(cls, code: str, severity: Severity, description: str) -> "ViolationType":
        obj = object.__new__(cls)
        obj._value_ = code
        obj.severity = severity
        obj.description = description
        return obj

    @classmethod
    def from_code(cls, code: str) -> "ViolationType":
        """Lookup by wire code (case-insensitive); unrecognised codes map to UNKNOWN."""
        try:
            return cls((code or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ViolationEvent:
    """
    One raised violation.

    observed_at is seconds since the epoch. detail_message is the
    evaluator's explanation (thresholds vs actual values).
    """

    type: ViolationType
    detail_message: str
    observed_at: float = field(default_factory=time.time)

    @property
    def severity(self) -> Severity:
        return self.type.severity

    @property
    def description(self) -> str:
        return self.type.description

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.type.severity.value,
            "description": self.type.description,
            "detail": self.detail_message,
            "observed_at": self.observed_at,
        }
