"""
Pytest fixtures for Attendance Guard tests: sample factory and fake collaborators.
"""

from __future__ import annotations

from typing import Any, Mapping

import pytest

from attendance_guard.alerts.escalation import EscalationConfig, ViolationSeverityStateMachine
from attendance_guard.alerts.violations import ViolationEvent
from attendance_guard.analysis_engine.models import (
    PROVIDER_FUSED,
    Coordinate,
    IntegritySignals,
    LocationSample,
)
from attendance_guard.sources.memory import InMemoryAppStateStore

# Office used across tests (lower Manhattan)
OFFICE_LAT = 40.7128
OFFICE_LON = -74.0060


def make_sample(
    latitude: float = OFFICE_LAT,
    longitude: float = OFFICE_LON,
    *,
    accuracy: float = 10.0,
    timestamp: float = 1_000.0,
    provider: str = PROVIDER_FUSED,
    **kwargs: Any,
) -> LocationSample:
    """Plausible fused fix unless overridden."""
    return LocationSample(
        latitude=latitude,
        longitude=longitude,
        accuracy_meters=accuracy,
        timestamp=timestamp,
        provider=provider,
        **kwargs,
    )


class FakeLocationSource:
    def __init__(self, samples=None, providers=None, error: Exception | None = None) -> None:
        self.samples = list(samples or [])
        self.providers = dict(providers or {})
        self.error = error
        self.calls: list[int] = []
        self.closed = False

    def get_current_sample(self, timeout_ms: int) -> LocationSample | None:
        self.calls.append(timeout_ms)
        if self.error is not None:
            raise self.error
        if not self.samples:
            return None
        return self.samples.pop(0)

    def get_sample(self, provider: str) -> LocationSample | None:
        return self.providers.get(provider)

    def close(self) -> None:
        self.closed = True


class FakeIntegritySource:
    def __init__(self, signals: IntegritySignals | None = None, error: Exception | None = None) -> None:
        self.signals = signals or IntegritySignals()
        self.error = error
        self.deep_calls: list[bool] = []

    def snapshot(self, deep: bool = True) -> IntegritySignals:
        self.deep_calls.append(deep)
        if self.error is not None:
            raise self.error
        return self.signals


class FakeNetworkSource:
    def __init__(self, vpn_active: bool = False) -> None:
        self.vpn_active = vpn_active

    def is_vpn_active(self) -> bool:
        return self.vpn_active


class FakeSecondarySource:
    def __init__(self, coordinate: Coordinate | None = None) -> None:
        self.coordinate = coordinate

    def lookup(self) -> Coordinate | None:
        return self.coordinate


class RecordingReporter:
    def __init__(self, error: Exception | None = None) -> None:
        self.reports: list[tuple[ViolationEvent, dict[str, Any]]] = []
        self.alerts: list[tuple[ViolationEvent, dict[str, Any]]] = []
        self.error = error

    def report(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.reports.append((event, dict(context)))

    def immediate_alert(self, event: ViolationEvent, context: Mapping[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.alerts.append((event, dict(context)))


@pytest.fixture
def store():
    return InMemoryAppStateStore()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def machine(store, reporter):
    """State machine with default ceiling (5) and recording collaborators."""
    return ViolationSeverityStateMachine(
        store=store,
        reporter=reporter,
        config=EscalationConfig(),
        session_id="test-session",
    )
