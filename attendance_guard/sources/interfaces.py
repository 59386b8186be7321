"""
Boundary contracts between the trust core and its collaborators.

Inbound sources supply signals; outbound sinks receive decisions. The core
only depends on these Protocols, never on a concrete platform API.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from attendance_guard.alerts.violations import ViolationEvent
from attendance_guard.analysis_engine.models import Coordinate, IntegritySignals, LocationSample


@runtime_checkable
class LocationSource(Protocol):
    def get_current_sample(self, timeout_ms: int) -> LocationSample | None:
        """Best current fix, or None when nothing arrives within timeout_ms."""
        ...

    def get_sample(self, provider: str) -> LocationSample | None:
        """Latest fix from one provider ("gps", "network"); None if disabled/unavailable."""
        ...


@runtime_checkable
class IntegritySource(Protocol):
    def snapshot(self, deep: bool = True) -> IntegritySignals:
        """
        Current integrity flags. deep=False lets the source skip expensive
        probes (root detection) and reuse their last result.
        """
        ...


@runtime_checkable
class NetworkSource(Protocol):
    def is_vpn_active(self) -> bool: ...


@runtime_checkable
class SecondaryGeoSource(Protocol):
    def lookup(self) -> Coordinate | None: ...


@runtime_checkable
class ViolationReporter(Protocol):
    def report(self, event: ViolationEvent, context: Mapping[str, Any]) -> None: ...

    def immediate_alert(self, event: ViolationEvent, context: Mapping[str, Any]) -> None: ...


@runtime_checkable
class AppStateStore(Protocol):
    def set_app_blocked(self, blocked: bool, reason: str | None) -> None: ...

    def set_attendance_blocked(self, blocked: bool, reason: str | None) -> None: ...

    def set_enhanced_monitoring(self, enabled: bool) -> None: ...


@runtime_checkable
class WakeLock(Protocol):
    """Keeps the device awake while monitoring runs."""

    def acquire(self) -> None: ...

    def release(self) -> None: ...
