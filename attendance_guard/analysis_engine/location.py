"""
Rule-based location authenticity evaluation.

Flags explicit mock fixes, GPS/network disagreement, physically impossible
movement and signal characteristics typical of mock providers; also checks
geofence containment and agreement with a secondary (IP-based) location.
Fully explainable: every negative verdict carries the rule name and the
threshold vs actual values. No clock reads: the caller supplies "now" and the
previous sample.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from attendance_guard.alerts.violations import ViolationType
from attendance_guard.analysis_engine.geo import distance_meters
from attendance_guard.analysis_engine.models import (
    GPS_CLASS_PROVIDERS,
    AuthenticityContext,
    AuthenticityVerdict,
    Coordinate,
    GeofenceZone,
    LocationSample,
)
from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)

MPS_TO_KMH = 3.6


@dataclass(frozen=True)
class LocationPolicy:
    """
    Thresholds for the authenticity rules.

    These are policy, not physics: max_speed_kmh models the fastest plausible
    ordinary terrestrial travel and is expected to be tuned per deployment.
    """

    max_speed_kmh: float = 200.0
    min_elapsed_sec: float = 10.0
    """Below this gap between samples, movement is not judged."""
    provider_max_distance_m: float = 1_000.0
    min_accuracy_m: float = 1.0
    """Reported accuracy below this is implausibly perfect."""
    secondary_max_distance_m: float = 50_000.0

    @classmethod
    def from_settings(cls, settings: Any) -> "LocationPolicy":
        return cls(
            max_speed_kmh=settings.max_speed_kmh,
            min_elapsed_sec=settings.min_elapsed_sec,
            provider_max_distance_m=settings.provider_max_distance_m,
            min_accuracy_m=settings.min_accuracy_m,
            secondary_max_distance_m=settings.secondary_max_distance_m,
        )


def movement_speed_kmh(previous: LocationSample, current: LocationSample) -> float | None:
    """Average speed between two samples in km/h; None when no time has elapsed."""
    elapsed = current.timestamp - previous.timestamp
    if elapsed <= 0:
        return None
    return distance_meters(previous, current) / elapsed * MPS_TO_KMH


class LocationAuthenticityEvaluator:
    """Stateless evaluator; all state (previous sample, now) arrives in the context."""

    def __init__(self, policy: LocationPolicy | None = None) -> None:
        self.policy = policy or LocationPolicy()

    def distance_meters(self, a: Coordinate | LocationSample, b: Coordinate | LocationSample) -> float:
        return distance_meters(a, b)

    def is_within_geofence(self, sample: Coordinate | LocationSample, zone: GeofenceZone) -> bool:
        return distance_meters(sample, zone.center) <= zone.radius_meters

    def is_movement_impossible(self, previous: LocationSample, current: LocationSample) -> bool:
        elapsed = current.timestamp - previous.timestamp
        if elapsed < self.policy.min_elapsed_sec:
            return False
        speed = distance_meters(previous, current) / elapsed * MPS_TO_KMH
        return speed > self.policy.max_speed_kmh

    def are_providers_consistent(
        self,
        gps: LocationSample | None,
        network: LocationSample | None,
    ) -> bool:
        if gps is None or network is None:
            return True
        return distance_meters(gps, network) <= self.policy.provider_max_distance_m

    def is_signal_suspicious(self, sample: LocationSample) -> bool:
        return self._suspicion_reason(sample) is not None

    def validate_against_secondary_source(
        self,
        primary: Coordinate | LocationSample,
        secondary: Coordinate | None,
    ) -> bool:
        if secondary is None:
            return True
        return distance_meters(primary, secondary) <= self.policy.secondary_max_distance_m

    def _suspicion_reason(self, sample: LocationSample) -> str | None:
        accuracy = sample.accuracy_meters
        if accuracy == 0 or accuracy < self.policy.min_accuracy_m:
            return (
                f"Implausibly precise accuracy: {accuracy:.2f} m "
                f"(minimum: {self.policy.min_accuracy_m} m)"
            )
        if not sample.has_altitude and sample.provider in GPS_CLASS_PROVIDERS:
            return f"GPS fix without altitude (provider: {sample.provider})"
        if sample.has_bearing and sample.has_speed:
            if sample.speed == 0 and sample.bearing not in (None, 0):
                return f"Zero speed with non-zero bearing ({sample.bearing:.1f} deg)"
        return None

    def evaluate(self, context: AuthenticityContext) -> AuthenticityVerdict:
        """
        Run the authenticity checks in order; the first failure decides the verdict.

        Order: platform mock flag → provider consistency → impossible movement
        (only when a previous sample exists) → signal suspicion. The platform's
        mock flag is authoritative and short-circuits the heuristics.
        """
        current = context.current

        if current.is_flagged_mock:
            return AuthenticityVerdict(
                trusted=False,
                violation_type=ViolationType.MOCK_LOCATION,
                detail="Location provider flagged the fix as mock",
                check="platform_mock_flag",
                details={"provider": current.provider},
            )

        if not self.are_providers_consistent(context.gps, context.network):
            gap = distance_meters(context.gps, context.network)
            return AuthenticityVerdict(
                trusted=False,
                violation_type=ViolationType.MOCK_LOCATION,
                detail=(
                    f"GPS and network locations disagree by {gap:.0f} m "
                    f"(threshold: {self.policy.provider_max_distance_m:.0f} m)"
                ),
                check="provider_consistency",
                details={"distance_m": round(gap, 1), "threshold_m": self.policy.provider_max_distance_m},
            )

        previous = context.previous
        if previous is not None and self.is_movement_impossible(previous, current):
            speed = movement_speed_kmh(previous, current) or 0.0
            return AuthenticityVerdict(
                trusted=False,
                violation_type=ViolationType.IMPOSSIBLE_MOVEMENT,
                detail=(
                    f"Impossible movement detected: {speed:.0f} km/h "
                    f"(threshold: {self.policy.max_speed_kmh:.0f} km/h)"
                ),
                check="impossible_movement",
                details={
                    "speed_kmh": round(speed, 1),
                    "threshold_kmh": self.policy.max_speed_kmh,
                    "elapsed_sec": round(current.timestamp - previous.timestamp, 3),
                    "distance_m": round(distance_meters(previous, current), 1),
                },
            )

        reason = self._suspicion_reason(current)
        if reason is not None:
            return AuthenticityVerdict(
                trusted=False,
                violation_type=ViolationType.GPS_SPOOFING,
                detail=reason,
                check="signal_suspicion",
                details={"accuracy_m": current.accuracy_meters, "provider": current.provider},
            )

        return AuthenticityVerdict.ok()

    def evaluate_placement(
        self,
        sample: LocationSample,
        zone: GeofenceZone | None,
        secondary: Coordinate | None,
    ) -> list[AuthenticityVerdict]:
        """
        Geofence and secondary-source checks for a sample that passed evaluate().

        Both checks run independently; returns one negative verdict per failure
        (empty list when the sample is where it should be).
        """
        failures: list[AuthenticityVerdict] = []
        if zone is not None and not self.is_within_geofence(sample, zone):
            distance = distance_meters(sample, zone.center)
            failures.append(
                AuthenticityVerdict(
                    trusted=False,
                    violation_type=ViolationType.LOCATION_OUTSIDE_GEOFENCE,
                    detail=(
                        f"Location {distance:.0f} m from allowed area center "
                        f"(radius: {zone.radius_meters:.0f} m)"
                    ),
                    check="geofence",
                    details={"distance_m": round(distance, 1), "radius_m": zone.radius_meters},
                )
            )
        if not self.validate_against_secondary_source(sample, secondary):
            distance = distance_meters(sample, secondary)
            failures.append(
                AuthenticityVerdict(
                    trusted=False,
                    violation_type=ViolationType.NETWORK_MISMATCH,
                    detail=(
                        f"IP geolocation does not match GPS location: {distance / 1000:.1f} km apart "
                        f"(threshold: {self.policy.secondary_max_distance_m / 1000:.0f} km)"
                    ),
                    check="secondary_source",
                    details={
                        "distance_m": round(distance, 1),
                        "threshold_m": self.policy.secondary_max_distance_m,
                    },
                )
            )
        if failures:
            logger.debug(
                "placement_checks_failed",
                checks=[f.check for f in failures],
                latitude=sample.latitude,
                longitude=sample.longitude,
            )
        return failures
