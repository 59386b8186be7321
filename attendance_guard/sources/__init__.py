"""
Collaborator contracts and adapters.

interfaces defines what the trust core consumes and emits; the other modules
are pluggable implementations (indicator tables, shell-backed device probe,
VPN heuristics, IP geolocation, replay files, in-memory state store).
"""

from attendance_guard.sources.interfaces import (
    AppStateStore,
    IntegritySource,
    LocationSource,
    NetworkSource,
    SecondaryGeoSource,
    ViolationReporter,
    WakeLock,
)

__all__ = [
    "AppStateStore",
    "IntegritySource",
    "LocationSource",
    "NetworkSource",
    "SecondaryGeoSource",
    "ViolationReporter",
    "WakeLock",
]
