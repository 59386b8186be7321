"""
Table-driven integrity source.

Answers IntegritySource.snapshot() by asking a DeviceProbe about the entries
of an IndicatorTable. Failure defaults follow the error taxonomy: root
detection assumes compromise when a probe fails; every other check assumes
the signal is absent.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from attendance_guard.analysis_engine.models import IntegritySignals
from attendance_guard.guard_logging import get_logger
from attendance_guard.sources.indicators import DEFAULT_INDICATORS, IndicatorTable
from attendance_guard.sources.interfaces import NetworkSource

logger = get_logger(__name__)


class DeviceProbe(Protocol):
    """Low-level questions about the device; implementations may raise on failure."""

    def file_exists(self, path: str) -> bool: ...

    def is_writable(self, path: str) -> bool: ...

    def package_installed(self, package: str) -> bool: ...

    def system_property(self, name: str) -> str | None: ...

    def setting_enabled(self, setting: str) -> bool: ...

    def build_info(self) -> dict[str, str]: ...


def _matches_marker(build: dict[str, str], field_name: str, kind: str, needle: str) -> bool:
    value = build.get(field_name) or ""
    if kind == "prefix":
        return value.startswith(needle)
    if kind == "contains":
        return needle in value
    if kind == "equals":
        return value == needle
    return False


class TableIntegritySource:
    """
    IntegritySource over a DeviceProbe and an IndicatorTable.

    Root detection is the expensive part; snapshot(deep=False) reuses the last
    root result (running it once if there is none yet).
    """

    def __init__(
        self,
        probe: DeviceProbe,
        table: IndicatorTable | None = None,
        network: NetworkSource | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.probe = probe
        self.table = table or DEFAULT_INDICATORS
        self.network = network
        self._clock = clock
        self._lock = threading.Lock()
        self._last_rooted: bool | None = None

    def snapshot(self, deep: bool = True) -> IntegritySignals:
        with self._lock:
            cached = self._last_rooted
        if deep or cached is None:
            rooted = self.is_rooted()
            with self._lock:
                self._last_rooted = rooted
        else:
            rooted = cached

        return IntegritySignals(
            rooted=rooted,
            developer_options_enabled=self._check(
                "developer_options", lambda: self.probe.setting_enabled(self.table.developer_options_setting)
            ),
            usb_debugging_enabled=self._check(
                "usb_debugging", lambda: self.probe.setting_enabled(self.table.usb_debugging_setting)
            ),
            unknown_sources_enabled=self._check(
                "unknown_sources", lambda: self.probe.setting_enabled(self.table.unknown_sources_setting)
            ),
            mock_location_app_present=self._check("mock_location_app", self._mock_app_installed),
            instrumentation_framework_present=self._check(
                "instrumentation_framework", self._instrumentation_installed
            ),
            running_on_emulator=self._check("emulator", self._running_on_emulator),
            vpn_active=self._check("vpn", self.network.is_vpn_active) if self.network else False,
            taken_at=self._clock(),
        )

    def _check(self, name: str, fn: Callable[[], bool]) -> bool:
        try:
            return bool(fn())
        except Exception as e:
            logger.warning("integrity_check_failed", check=name, default=False, error=str(e))
            return False

    def is_rooted(self) -> bool:
        """
        Root files, root-management apps, dangerous build properties and
        writable system directories; any hit means rooted. Probe failure
        means rooted too.
        """
        try:
            hit = self._root_indicator()
        except Exception as e:
            logger.warning("root_detection_failed", default=True, error=str(e), exc_info=True)
            return True
        if hit is not None:
            logger.info("root_indicator_found", indicator=hit)
            return True
        return False

    def _root_indicator(self) -> str | None:
        for path in self.table.root_files:
            if self.probe.file_exists(path):
                return f"file:{path}"
        for package in self.table.root_packages:
            if self.probe.package_installed(package):
                return f"package:{package}"
        for prop, dangerous in self.table.dangerous_properties.items():
            if self.probe.system_property(prop) == dangerous:
                return f"property:{prop}={dangerous}"
        for directory in self.table.writable_system_dirs:
            if self.probe.is_writable(directory):
                return f"writable:{directory}"
        return None

    def _mock_app_installed(self) -> bool:
        return any(self.probe.package_installed(p) for p in self.table.mock_location_packages)

    def _instrumentation_installed(self) -> bool:
        return any(self.probe.package_installed(p) for p in self.table.instrumentation_packages)

    def _running_on_emulator(self) -> bool:
        build = self.probe.build_info()
        if any(_matches_marker(build, f, kind, needle) for f, kind, needle in self.table.emulator_build_markers):
            return True
        brand = build.get("brand") or ""
        device = build.get("device") or ""
        return brand.startswith("generic") and device.startswith("generic")
