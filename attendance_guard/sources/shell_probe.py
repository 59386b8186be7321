"""
DeviceProbe that answers through shell commands.

Default prefix runs commands on an attached Android device via `adb shell`;
pass prefix=("sh", "-c") to probe the local host instead. Errors
(timeouts, missing adb) propagate so TableIntegritySource can apply its
per-check defaults.
"""

from __future__ import annotations

import shlex
import subprocess
from typing import Any, Callable, Sequence

from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)

DEFAULT_COMMAND_TIMEOUT_SEC = 5.0

# build_info key -> system property
BUILD_PROPERTIES = {
    "fingerprint": "ro.build.fingerprint",
    "model": "ro.product.model",
    "manufacturer": "ro.product.manufacturer",
    "brand": "ro.product.brand",
    "device": "ro.product.device",
    "product": "ro.product.name",
}


class ShellDeviceProbe:
    def __init__(
        self,
        prefix: Sequence[str] = ("adb", "shell"),
        *,
        timeout_sec: float = DEFAULT_COMMAND_TIMEOUT_SEC,
        runner: Callable[..., Any] = subprocess.run,
    ) -> None:
        self.prefix = tuple(prefix)
        self.timeout_sec = timeout_sec
        self._runner = runner

    @classmethod
    def for_adb_device(cls, serial: str, **kwargs: Any) -> "ShellDeviceProbe":
        return cls(("adb", "-s", serial, "shell"), **kwargs)

    def _run(self, command: str) -> subprocess.CompletedProcess:
        result = self._runner(
            [*self.prefix, command],
            capture_output=True,
            text=True,
            timeout=self.timeout_sec,
            check=False,
        )
        logger.debug("probe_command", command=command, returncode=result.returncode)
        return result

    def file_exists(self, path: str) -> bool:
        return self._run(f"test -e {shlex.quote(path)}").returncode == 0

    def is_writable(self, path: str) -> bool:
        return self._run(f"test -w {shlex.quote(path)}").returncode == 0

    def package_installed(self, package: str) -> bool:
        result = self._run(f"pm path {shlex.quote(package)}")
        return result.returncode == 0 and (result.stdout or "").strip().startswith("package:")

    def system_property(self, name: str) -> str | None:
        result = self._run(f"getprop {shlex.quote(name)}")
        if result.returncode != 0:
            return None
        value = (result.stdout or "").strip()
        return value or None

    def setting_enabled(self, setting: str) -> bool:
        """setting is "<namespace>/<key>", e.g. "global/adb_enabled"."""
        namespace, _, key = setting.partition("/")
        result = self._run(f"settings get {shlex.quote(namespace)} {shlex.quote(key)}")
        if result.returncode != 0:
            return False
        return (result.stdout or "").strip() == "1"

    def build_info(self) -> dict[str, str]:
        return {key: self.system_property(prop) or "" for key, prop in BUILD_PROPERTIES.items()}
