"""
Great-circle distance on a spherical Earth (haversine).

Shared primitive for geofence, provider-consistency, movement and
secondary-source checks.
"""

from __future__ import annotations

import math
from typing import Protocol

EARTH_RADIUS_M = 6_371_000.0


class HasLatLon(Protocol):
    latitude: float
    longitude: float


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two (lat, lon) points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a just past 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: HasLatLon, b: HasLatLon) -> float:
    """Distance between any two objects exposing latitude/longitude (samples, coordinates)."""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)
