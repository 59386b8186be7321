"""
Application settings: every tunable threshold, period and endpoint.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate values and provide defaults for everything optional.
- Expose typed settings (geofence, cycle periods, speed/accuracy/distance
  thresholds, violation ceiling, reporting endpoint) for the analysis engine,
  escalation, scheduler and runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from attendance_guard.analysis_engine.models import GeofenceZone
from attendance_guard.config.env import (
    env_bool,
    env_float,
    env_int,
    env_list,
    env_str,
    load_guard_env,
)
from attendance_guard.core.exceptions import ConfigError

# Example office location; real deployments set GEOFENCE_* in the environment
DEFAULT_GEOFENCE_LAT = 40.7128
DEFAULT_GEOFENCE_LON = -74.0060
DEFAULT_GEOFENCE_RADIUS_M = 200.0

DEFAULT_LOCATION_PERIOD_SEC = 5.0
DEFAULT_INTEGRITY_PERIOD_SEC = 10.0
DEFAULT_ROOT_CHECK_EVERY = 6
DEFAULT_LOCATION_TIMEOUT_MS = 15_000

DEFAULT_MAX_SPEED_KMH = 200.0
DEFAULT_MIN_ELAPSED_SEC = 10.0
DEFAULT_PROVIDER_MAX_DISTANCE_M = 1_000.0
DEFAULT_MIN_ACCURACY_M = 1.0
DEFAULT_SECONDARY_MAX_DISTANCE_M = 50_000.0

DEFAULT_MAX_VIOLATIONS = 5
DEFAULT_LOW_ACCURACY_WARN_M = 100.0
DEFAULT_CHECKIN_MAX_ACCURACY_M = 50.0
DEFAULT_ENHANCED_MONITORING_FACTOR = 2.0

# Public resolvers commonly configured by VPN apps; heuristic, tune per deployment
DEFAULT_VPN_DNS_SERVERS = (
    "8.8.8.8",
    "8.8.4.4",
    "1.1.1.1",
    "1.0.0.1",
    "9.9.9.9",
    "149.112.112.112",
)

DEFAULT_REPORT_TIMEOUT_SEC = 15.0
DEFAULT_PENDING_QUEUE_MAX = 500

DEVICE_PROBES = ("replay", "adb", "local")
DEFAULT_DEVICE_PROBE = "replay"


@dataclass
class GuardSettings:
    """All deployment tunables; defaults suit a single-office deployment."""

    geofence_lat: float = DEFAULT_GEOFENCE_LAT
    geofence_lon: float = DEFAULT_GEOFENCE_LON
    geofence_radius_m: float = DEFAULT_GEOFENCE_RADIUS_M

    location_period_sec: float = DEFAULT_LOCATION_PERIOD_SEC
    integrity_period_sec: float = DEFAULT_INTEGRITY_PERIOD_SEC
    root_check_every: int = DEFAULT_ROOT_CHECK_EVERY
    """Run the expensive root/instrumentation checks once per this many integrity cycles."""
    location_timeout_ms: int = DEFAULT_LOCATION_TIMEOUT_MS

    max_speed_kmh: float = DEFAULT_MAX_SPEED_KMH
    min_elapsed_sec: float = DEFAULT_MIN_ELAPSED_SEC
    provider_max_distance_m: float = DEFAULT_PROVIDER_MAX_DISTANCE_M
    min_accuracy_m: float = DEFAULT_MIN_ACCURACY_M
    secondary_max_distance_m: float = DEFAULT_SECONDARY_MAX_DISTANCE_M

    max_violations: int = DEFAULT_MAX_VIOLATIONS
    """App is blocked once the session's violation count exceeds this."""
    low_accuracy_warn_m: float = DEFAULT_LOW_ACCURACY_WARN_M
    checkin_max_accuracy_m: float = DEFAULT_CHECKIN_MAX_ACCURACY_M
    enhanced_monitoring_factor: float = DEFAULT_ENHANCED_MONITORING_FACTOR

    vpn_dns_servers: tuple[str, ...] = field(default_factory=lambda: DEFAULT_VPN_DNS_SERVERS)

    report_url: str | None = None
    report_timeout_sec: float = DEFAULT_REPORT_TIMEOUT_SEC
    pending_queue_max: int = DEFAULT_PENDING_QUEUE_MAX
    ip_geo_url: str | None = None
    replay_path: str | None = None
    replay_loop: bool = False
    """Restart the recorded location track when it runs out."""
    device_info: str = "unknown device"
    employee_id: str | None = None
    device_probe: str = DEFAULT_DEVICE_PROBE
    """Where integrity signals come from: replay | adb | local."""
    adb_serial: str | None = None

    def __post_init__(self) -> None:
        if self.geofence_radius_m <= 0:
            raise ConfigError(f"geofence radius must be > 0, got {self.geofence_radius_m}")
        if not -90.0 <= self.geofence_lat <= 90.0:
            raise ConfigError(f"geofence latitude out of range: {self.geofence_lat}")
        if not -180.0 <= self.geofence_lon <= 180.0:
            raise ConfigError(f"geofence longitude out of range: {self.geofence_lon}")
        for name in ("location_period_sec", "integrity_period_sec", "max_speed_kmh", "report_timeout_sec"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0, got {getattr(self, name)}")
        if self.root_check_every < 1:
            raise ConfigError(f"root_check_every must be >= 1, got {self.root_check_every}")
        if self.location_timeout_ms < 1:
            raise ConfigError(f"location_timeout_ms must be >= 1, got {self.location_timeout_ms}")
        if self.max_violations < 0:
            raise ConfigError(f"max_violations must be >= 0, got {self.max_violations}")
        if self.enhanced_monitoring_factor < 1:
            raise ConfigError(
                f"enhanced_monitoring_factor must be >= 1, got {self.enhanced_monitoring_factor}"
            )
        if self.device_probe not in DEVICE_PROBES:
            raise ConfigError(f"device_probe must be one of {DEVICE_PROBES}, got {self.device_probe!r}")

    def geofence(self) -> GeofenceZone:
        return GeofenceZone(
            center_latitude=self.geofence_lat,
            center_longitude=self.geofence_lon,
            radius_meters=self.geofence_radius_m,
        )


def load_settings() -> GuardSettings:
    """Build settings from the environment (and .env). Raises ConfigError on bad values."""
    load_guard_env()
    return GuardSettings(
        geofence_lat=env_float("GEOFENCE_LAT", DEFAULT_GEOFENCE_LAT),
        geofence_lon=env_float("GEOFENCE_LON", DEFAULT_GEOFENCE_LON),
        geofence_radius_m=env_float("GEOFENCE_RADIUS_M", DEFAULT_GEOFENCE_RADIUS_M),
        location_period_sec=env_float("LOCATION_PERIOD_SEC", DEFAULT_LOCATION_PERIOD_SEC),
        integrity_period_sec=env_float("INTEGRITY_PERIOD_SEC", DEFAULT_INTEGRITY_PERIOD_SEC),
        root_check_every=env_int("ROOT_CHECK_EVERY", DEFAULT_ROOT_CHECK_EVERY),
        location_timeout_ms=env_int("LOCATION_TIMEOUT_MS", DEFAULT_LOCATION_TIMEOUT_MS),
        max_speed_kmh=env_float("MAX_SPEED_KMH", DEFAULT_MAX_SPEED_KMH),
        min_elapsed_sec=env_float("MIN_ELAPSED_SEC", DEFAULT_MIN_ELAPSED_SEC),
        provider_max_distance_m=env_float("PROVIDER_MAX_DISTANCE_M", DEFAULT_PROVIDER_MAX_DISTANCE_M),
        min_accuracy_m=env_float("MIN_ACCURACY_M", DEFAULT_MIN_ACCURACY_M),
        secondary_max_distance_m=env_float("SECONDARY_MAX_DISTANCE_M", DEFAULT_SECONDARY_MAX_DISTANCE_M),
        max_violations=env_int("MAX_VIOLATIONS", DEFAULT_MAX_VIOLATIONS),
        low_accuracy_warn_m=env_float("LOW_ACCURACY_WARN_M", DEFAULT_LOW_ACCURACY_WARN_M),
        checkin_max_accuracy_m=env_float("CHECKIN_MAX_ACCURACY_M", DEFAULT_CHECKIN_MAX_ACCURACY_M),
        enhanced_monitoring_factor=env_float(
            "ENHANCED_MONITORING_FACTOR", DEFAULT_ENHANCED_MONITORING_FACTOR
        ),
        vpn_dns_servers=env_list("VPN_DNS_SERVERS", DEFAULT_VPN_DNS_SERVERS),
        report_url=env_str("REPORT_URL"),
        report_timeout_sec=env_float("REPORT_TIMEOUT_SEC", DEFAULT_REPORT_TIMEOUT_SEC),
        pending_queue_max=env_int("PENDING_QUEUE_MAX", DEFAULT_PENDING_QUEUE_MAX),
        ip_geo_url=env_str("IP_GEO_URL"),
        replay_path=env_str("GUARD_REPLAY_PATH"),
        replay_loop=env_bool("GUARD_REPLAY_LOOP", False),
        device_info=env_str("DEVICE_INFO", "unknown device") or "unknown device",
        employee_id=env_str("EMPLOYEE_ID"),
        device_probe=(env_str("DEVICE_PROBE", DEFAULT_DEVICE_PROBE) or DEFAULT_DEVICE_PROBE).lower(),
        adb_serial=env_str("ADB_SERIAL"),
    )


@lru_cache(maxsize=1)
def get_settings() -> GuardSettings:
    """
    Return the process-wide settings, loaded from the environment on first call.

    Tests that change the environment call get_settings.cache_clear().
    """
    return load_settings()
