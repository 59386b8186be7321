"""
Replay sources: feed recorded location fixes and integrity snapshots from a
JSON file into the scheduler. Used for field-trace analysis and for running
the worker on a host with no device attached.

File shape:
    {
      "locations": [{"latitude": .., "longitude": .., "accuracy_meters": ..,
                     "timestamp": .., "provider": "gps", ...}, ...],
      "providers": {"gps": [...], "network": [...]},   # optional
      "integrity": [{"rooted": false, ...}, ...],       # optional
      "vpn_active": false                               # optional
    }

Each get_current_sample() call returns the next location; after the last one
the source returns None (no fix), or cycles when loop=True.
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from attendance_guard.analysis_engine.models import IntegritySignals, LocationSample
from attendance_guard.core.exceptions import ConfigError
from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)


class ReplayLocationSource:
    def __init__(
        self,
        samples: Sequence[LocationSample],
        providers: dict[str, Sequence[LocationSample]] | None = None,
        *,
        loop: bool = False,
    ) -> None:
        self._samples = list(samples)
        self._providers = {name: list(items) for name, items in (providers or {}).items()}
        self._loop = loop
        self._index = 0
        self._lock = threading.Lock()
        self.closed = False

    def get_current_sample(self, timeout_ms: int) -> LocationSample | None:
        with self._lock:
            if not self._samples:
                return None
            if self._index >= len(self._samples):
                if not self._loop:
                    return None
                self._index = 0
            sample = self._samples[self._index]
            self._index += 1
            return sample

    def get_sample(self, provider: str) -> LocationSample | None:
        """Provider fix aligned with the last current sample; None when not recorded."""
        with self._lock:
            items = self._providers.get(provider)
            if not items:
                return None
            position = max(self._index - 1, 0)
            return items[min(position, len(items) - 1)]

    def close(self) -> None:
        self.closed = True


class ReplayIntegritySource:
    """Cycles through recorded snapshots; the last one repeats once exhausted."""

    def __init__(
        self,
        snapshots: Sequence[IntegritySignals],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._snapshots = list(snapshots) or [IntegritySignals()]
        self._index = 0
        self._clock = clock
        self._lock = threading.Lock()

    def snapshot(self, deep: bool = True) -> IntegritySignals:
        with self._lock:
            current = self._snapshots[min(self._index, len(self._snapshots) - 1)]
            self._index += 1
        return IntegritySignals(**{**current.to_dict(), "taken_at": self._clock()})


class StaticNetworkSource:
    def __init__(self, vpn_active: bool = False) -> None:
        self.vpn_active = vpn_active

    def is_vpn_active(self) -> bool:
        return self.vpn_active


def _integrity_from_dict(data: dict[str, Any]) -> IntegritySignals:
    known = set(IntegritySignals.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown integrity fields in replay file: {sorted(unknown)}")
    return IntegritySignals(**data)


def load_replay(
    path: str | Path,
    *,
    loop: bool = False,
) -> tuple[ReplayLocationSource, ReplayIntegritySource, StaticNetworkSource]:
    """
    Parse a replay file into (location, integrity, network) sources.

    Raises ConfigError when the file is missing or malformed.
    """
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read replay file {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Replay file {p} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Replay file {p} must contain a JSON object")

    try:
        samples = [LocationSample.from_dict(item) for item in raw.get("locations", [])]
        providers = {
            name: [LocationSample.from_dict(item) for item in items]
            for name, items in (raw.get("providers") or {}).items()
        }
        snapshots = [_integrity_from_dict(item) for item in raw.get("integrity", [])]
    except ConfigError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Replay file {p} has an invalid record: {e}") from e

    logger.info(
        "replay_loaded",
        path=str(p),
        locations=len(samples),
        providers=sorted(providers),
        integrity_snapshots=len(snapshots),
    )
    return (
        ReplayLocationSource(samples, providers, loop=loop),
        ReplayIntegritySource(snapshots),
        StaticNetworkSource(bool(raw.get("vpn_active", False))),
    )
