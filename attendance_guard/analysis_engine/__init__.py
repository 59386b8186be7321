"""
Analysis engine package — security score and location authenticity.

Consumes integrity snapshots and location samples supplied by collaborators,
applies fixed rules, and produces scores and verdicts. No I/O and no clock
reads; callers pass everything in.
"""

from attendance_guard.analysis_engine.models import (
    AuthenticityContext,
    AuthenticityVerdict,
    Coordinate,
    GeofenceZone,
    IntegritySignals,
    LocationSample,
)
from attendance_guard.analysis_engine.geo import distance_meters, haversine_m
from attendance_guard.analysis_engine.scorer import (
    SIGNAL_DEDUCTIONS,
    TrustSignalAggregator,
    compute_security_score,
    security_level,
)
from attendance_guard.analysis_engine.location import (
    LocationAuthenticityEvaluator,
    LocationPolicy,
    movement_speed_kmh,
)

__all__ = [
    "AuthenticityContext",
    "AuthenticityVerdict",
    "Coordinate",
    "GeofenceZone",
    "IntegritySignals",
    "LocationSample",
    "distance_meters",
    "haversine_m",
    "SIGNAL_DEDUCTIONS",
    "TrustSignalAggregator",
    "compute_security_score",
    "security_level",
    "LocationAuthenticityEvaluator",
    "LocationPolicy",
    "movement_speed_kmh",
]
