"""
Data models for analysis engine input and output.

Location samples, geofence zones and integrity snapshots come from
collaborators; verdicts are produced by the evaluators. All inputs are frozen:
once a sample is observed it is never edited, only compared.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from attendance_guard.core.exceptions import ConfigError

PROVIDER_GPS = "gps"
PROVIDER_NETWORK = "network"
PROVIDER_FUSED = "fused"
# Providers whose fixes come from a satellite receiver and should carry altitude
GPS_CLASS_PROVIDERS = frozenset({PROVIDER_GPS})


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationSample:
    """
    One observed location fix.

    timestamp is seconds since the epoch (float). bearing/speed/altitude are
    None when the provider did not report them; has_* mirrors the platform's
    own flags and is what the suspicion rules look at.
    """

    latitude: float
    longitude: float
    accuracy_meters: float
    timestamp: float
    provider: str = PROVIDER_FUSED
    has_altitude: bool = False
    has_bearing: bool = False
    has_speed: bool = False
    bearing: float | None = None
    speed: float | None = None
    altitude: float | None = None
    is_flagged_mock: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocationSample":
        """Build from a mapping; has_* flags default to whether the value is present."""
        bearing = data.get("bearing")
        speed = data.get("speed")
        altitude = data.get("altitude")
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=float(data["accuracy_meters"]),
            timestamp=float(data["timestamp"]),
            provider=str(data.get("provider") or PROVIDER_FUSED),
            has_altitude=bool(data.get("has_altitude", altitude is not None)),
            has_bearing=bool(data.get("has_bearing", bearing is not None)),
            has_speed=bool(data.get("has_speed", speed is not None)),
            bearing=float(bearing) if bearing is not None else None,
            speed=float(speed) if speed is not None else None,
            altitude=float(altitude) if altitude is not None else None,
            is_flagged_mock=bool(data.get("is_flagged_mock", False)),
        )


@dataclass(frozen=True)
class GeofenceZone:
    """Circular allowed region."""

    center_latitude: float
    center_longitude: float
    radius_meters: float

    def __post_init__(self) -> None:
        if self.radius_meters <= 0:
            raise ConfigError(f"Geofence radius must be > 0, got {self.radius_meters}")

    @property
    def center(self) -> Coordinate:
        return Coordinate(self.center_latitude, self.center_longitude)


# Order matters for flagged(): most severe signal first
INTEGRITY_SIGNAL_NAMES = (
    "rooted",
    "mock_location_app_present",
    "instrumentation_framework_present",
    "developer_options_enabled",
    "usb_debugging_enabled",
    "unknown_sources_enabled",
    "running_on_emulator",
    "vpn_active",
)


@dataclass(frozen=True)
class IntegritySignals:
    """Snapshot of device-integrity flags at taken_at (seconds since epoch)."""

    rooted: bool = False
    developer_options_enabled: bool = False
    usb_debugging_enabled: bool = False
    unknown_sources_enabled: bool = False
    mock_location_app_present: bool = False
    instrumentation_framework_present: bool = False
    running_on_emulator: bool = False
    vpn_active: bool = False
    taken_at: float = 0.0

    def flagged(self) -> list[str]:
        """Names of the signals that are set, most severe first."""
        return [name for name in INTEGRITY_SIGNAL_NAMES if getattr(self, name)]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuthenticityContext:
    """
    Everything evaluate() needs; assembled by the caller so the evaluator
    never reads a clock or a collaborator.
    """

    current: LocationSample
    now: float
    previous: LocationSample | None = None
    gps: LocationSample | None = None
    network: LocationSample | None = None
    secondary: Coordinate | None = None


@dataclass(frozen=True)
class AuthenticityVerdict:
    """
    Outcome of a location-authenticity evaluation.

    violation_type is None when trusted; otherwise it names the ViolationType
    of the first failing check. check is the rule identifier for logs.
    """

    trusted: bool
    violation_type: Any = None
    detail: str = ""
    check: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    """Thresholds and actual values used; for auditing."""

    @classmethod
    def ok(cls) -> "AuthenticityVerdict":
        return cls(trusted=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trusted": self.trusted,
            "violation_type": self.violation_type.value if self.violation_type else None,
            "detail": self.detail,
            "check": self.check,
            "details": self.details,
        }
