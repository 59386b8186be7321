"""
Default indicator tables for device-integrity detection.

The detection algorithm lives in sources.integrity; the data it matches
against lives here so it can evolve (or be replaced per deployment) without
touching the algorithm.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

ROOT_FILES = (
    "/system/app/Superuser.apk",
    "/sbin/su",
    "/system/bin/su",
    "/system/xbin/su",
    "/data/local/xbin/su",
    "/data/local/bin/su",
    "/system/sd/xbin/su",
    "/system/bin/failsafe/su",
    "/data/local/su",
    "/su/bin/su",
    "/system/xbin/busybox",
    "/system/bin/busybox",
    "/data/local/busybox",
    "/system/xbin/daemonsu",
    "/system/etc/init.d/99SuperSUDaemon",
    "/dev/com.koushikdutta.superuser.daemon/",
    "/system/xbin/magisk",
    "/sbin/magisk",
)

ROOT_PACKAGES = (
    "com.noshufou.android.su",
    "com.noshufou.android.su.elite",
    "eu.chainfire.supersu",
    "com.koushikdutta.superuser",
    "com.thirdparty.superuser",
    "com.yellowes.su",
    "com.koushikdutta.rommanager",
    "com.koushikdutta.rommanager.license",
    "com.dimonvideo.luckypatcher",
    "com.chelpus.lackypatch",
    "com.ramdroid.appquarantine",
    "com.ramdroid.appquarantinepro",
    "com.topjohnwu.magisk",
    "com.kingroot.kinguser",
    "com.kingo.root",
    "com.smedialink.oneclickroot",
    "com.zhiqupk.root.global",
    "com.alephzain.framaroot",
)

# property -> value that indicates a debuggable / insecure build
DANGEROUS_PROPERTIES = {
    "ro.debuggable": "1",
    "ro.secure": "0",
    "service.adb.root": "1",
}

WRITABLE_SYSTEM_DIRS = (
    "/system",
    "/system/bin",
    "/system/sbin",
    "/system/xbin",
    "/vendor/bin",
    "/sbin",
    "/etc",
)

MOCK_LOCATION_PACKAGES = (
    "com.lexa.fakegps",
    "com.incorporateapps.fakegps.fre",
    "com.blogspot.newapphorizons.fakegps",
    "com.evezzon.fakegps",
    "com.gsmartstudio.fakegps",
    "com.rascarlo.quick.settings.tiles",
    "ru.gavrikov.mocklocations",
    "com.theappninjas.gpsjoystick",
    "com.catalystapps.gps.joystick.fake.walk",
    "com.incorporateapps.fakegps_route",
    "com.lexa.fakegps.route",
    "appinventor.ai_progetto_fake_gps.fakegps",
)

INSTRUMENTATION_PACKAGES = (
    "de.robv.android.xposed.installer",
    "org.meowcat.edxposed.manager",
    "top.canyie.dreamland.manager",
)

# (build field, match kind, needle); match kind is "prefix", "contains" or "equals"
EMULATOR_BUILD_MARKERS = (
    ("fingerprint", "prefix", "generic"),
    ("fingerprint", "prefix", "unknown"),
    ("model", "contains", "google_sdk"),
    ("model", "contains", "Emulator"),
    ("model", "contains", "Android SDK built for x86"),
    ("manufacturer", "contains", "Genymotion"),
    ("product", "equals", "google_sdk"),
)

# Substrings of network interface names created by VPN clients
VPN_INTERFACE_MARKERS = ("tun", "tap", "ppp")

SETTING_DEVELOPMENT_ENABLED = "global/development_settings_enabled"
SETTING_ADB_ENABLED = "global/adb_enabled"
SETTING_INSTALL_NON_MARKET_APPS = "secure/install_non_market_apps"


@dataclass(frozen=True)
class IndicatorTable:
    """Everything a table-driven integrity source matches against."""

    root_files: tuple[str, ...] = ROOT_FILES
    root_packages: tuple[str, ...] = ROOT_PACKAGES
    dangerous_properties: dict[str, str] = field(default_factory=lambda: dict(DANGEROUS_PROPERTIES))
    writable_system_dirs: tuple[str, ...] = WRITABLE_SYSTEM_DIRS
    mock_location_packages: tuple[str, ...] = MOCK_LOCATION_PACKAGES
    instrumentation_packages: tuple[str, ...] = INSTRUMENTATION_PACKAGES
    emulator_build_markers: tuple[tuple[str, str, str], ...] = EMULATOR_BUILD_MARKERS
    developer_options_setting: str = SETTING_DEVELOPMENT_ENABLED
    usb_debugging_setting: str = SETTING_ADB_ENABLED
    unknown_sources_setting: str = SETTING_INSTALL_NON_MARKET_APPS

    def extended(self, **extra: Any) -> "IndicatorTable":
        """
        Return a copy with extra entries appended to tuple fields
        (e.g. extended(mock_location_packages=("com.example.spoofer",))).
        """
        updates: dict[str, Any] = {}
        for name, values in extra.items():
            current = getattr(self, name)
            if isinstance(current, dict):
                updates[name] = {**current, **dict(values)}
            else:
                updates[name] = tuple(current) + tuple(values)
        return replace(self, **updates)


DEFAULT_INDICATORS = IndicatorTable()
