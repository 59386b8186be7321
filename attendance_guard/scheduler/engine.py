"""
Monitoring scheduler: two periodic cycles feeding the trust state machine.

- Location cycle (every location_period_sec): fetch the current fix under a
  hard deadline, evaluate authenticity, raise violations, run placement
  checks, retain the sample as the next movement reference.
- Integrity cycle (every integrity_period_sec): VPN, mock apps, debugging;
  root/instrumentation/emulator/unknown sources only on every
  root_check_every-th cycle (starting with the first). Computes the security
  score.

Each cycle runs on its own daemon thread. A failing cycle is logged and
counted, never raised, and the next one waits twice the nominal period.
stop() wakes sleeping loops immediately; a running iteration is never
interrupted.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable

from attendance_guard.alerts.escalation import ViolationSeverityStateMachine
from attendance_guard.alerts.violations import ViolationEvent, ViolationType
from attendance_guard.analysis_engine.location import LocationAuthenticityEvaluator
from attendance_guard.analysis_engine.models import (
    PROVIDER_GPS,
    PROVIDER_NETWORK,
    AuthenticityContext,
    AuthenticityVerdict,
    Coordinate,
    GeofenceZone,
    IntegritySignals,
    LocationSample,
)
from attendance_guard.analysis_engine.scorer import TrustSignalAggregator, security_level
from attendance_guard.core.exceptions import ConfigError, SignalUnavailableError
from attendance_guard.guard_logging import get_logger
from attendance_guard.sources.interfaces import (
    IntegritySource,
    LocationSource,
    NetworkSource,
    SecondaryGeoSource,
    WakeLock,
)

logger = get_logger(__name__)

DEFAULT_LOCATION_PERIOD_SEC = 5.0
DEFAULT_INTEGRITY_PERIOD_SEC = 10.0
DEFAULT_ROOT_CHECK_EVERY = 6
DEFAULT_LOCATION_TIMEOUT_MS = 15_000
DEFAULT_LOW_ACCURACY_WARN_M = 100.0
DEFAULT_ENHANCED_MONITORING_FACTOR = 2.0
ERROR_BACKOFF_FACTOR = 2.0
SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0

STATUS_OK = "ok"
STATUS_UNAVAILABLE = "unavailable"
STATUS_VIOLATION = "violation"
STATUS_MOCK = "mock_location"
STATUS_LOW_ACCURACY = "low_accuracy"


@dataclass
class SchedulerConfig:
    """Cycle periods and per-cycle thresholds."""

    location_period_sec: float = DEFAULT_LOCATION_PERIOD_SEC
    integrity_period_sec: float = DEFAULT_INTEGRITY_PERIOD_SEC
    root_check_every: int = DEFAULT_ROOT_CHECK_EVERY
    location_timeout_ms: int = DEFAULT_LOCATION_TIMEOUT_MS
    low_accuracy_warn_m: float = DEFAULT_LOW_ACCURACY_WARN_M
    enhanced_monitoring_factor: float = DEFAULT_ENHANCED_MONITORING_FACTOR
    """While enhanced monitoring is on, the integrity period is divided by this."""

    def __post_init__(self) -> None:
        if self.root_check_every < 1:
            raise ConfigError(f"root_check_every must be >= 1, got {self.root_check_every}")

    @classmethod
    def from_settings(cls, settings: Any) -> "SchedulerConfig":
        return cls(
            location_period_sec=settings.location_period_sec,
            integrity_period_sec=settings.integrity_period_sec,
            root_check_every=settings.root_check_every,
            location_timeout_ms=settings.location_timeout_ms,
            low_accuracy_warn_m=settings.low_accuracy_warn_m,
            enhanced_monitoring_factor=settings.enhanced_monitoring_factor,
        )


@dataclass
class SchedulerState:
    """Heartbeat counters; read via MonitoringScheduler.state_snapshot()."""

    location_cycles: int = 0
    integrity_cycles: int = 0
    location_errors: int = 0
    integrity_errors: int = 0
    signal_unavailable: int = 0
    last_error: str | None = None
    last_score: int | None = None
    last_level: str | None = None
    last_location_status: str | None = None
    last_location_at: float | None = None
    last_integrity_at: float | None = None


class MonitoringScheduler:
    def __init__(
        self,
        machine: ViolationSeverityStateMachine,
        location_source: LocationSource,
        integrity_source: IntegritySource,
        *,
        network_source: NetworkSource | None = None,
        secondary_source: SecondaryGeoSource | None = None,
        evaluator: LocationAuthenticityEvaluator | None = None,
        aggregator: TrustSignalAggregator | None = None,
        zone: GeofenceZone | None = None,
        config: SchedulerConfig | None = None,
        wake_lock: WakeLock | None = None,
        flush_reports: Callable[[], Any] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.machine = machine
        self.location_source = location_source
        self.integrity_source = integrity_source
        self.network_source = network_source
        self.secondary_source = secondary_source
        self.evaluator = evaluator or LocationAuthenticityEvaluator()
        self.aggregator = aggregator or TrustSignalAggregator()
        self.zone = zone
        self.config = config or SchedulerConfig()
        self.wake_lock = wake_lock
        self._flush_reports = flush_reports
        self._clock = clock

        self.state = SchedulerState()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._executor: ThreadPoolExecutor | None = None
        self._pending_fetch: Future | None = None
        self._integrity_index = 0
        self._running = False
        self._lifecycle_lock = threading.Lock()

    # -- location ---------------------------------------------------------

    def _executor_for_fetch(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="location-fetch")
        return self._executor

    def _fetch_current_sample(self) -> LocationSample | None:
        """get_current_sample under a hard deadline; None on timeout or unavailable signal."""
        timeout_ms = self.config.location_timeout_ms
        if self._pending_fetch is not None and not self._pending_fetch.done():
            logger.warning("location_fetch_still_running", timeout_ms=timeout_ms)
            return None
        future = self._executor_for_fetch().submit(self.location_source.get_current_sample, timeout_ms)
        self._pending_fetch = future
        try:
            return future.result(timeout=timeout_ms / 1000.0)
        except FutureTimeoutError:
            logger.warning("location_timeout", timeout_ms=timeout_ms)
            return None
        except SignalUnavailableError as e:
            logger.info("location_unavailable", reason=str(e))
            return None

    def _provider_sample(self, provider: str) -> LocationSample | None:
        try:
            return self.location_source.get_sample(provider)
        except SignalUnavailableError as e:
            logger.debug("provider_sample_unavailable", provider=provider, reason=str(e))
            return None

    def _secondary_location(self) -> Coordinate | None:
        if self.secondary_source is None:
            return None
        try:
            return self.secondary_source.lookup()
        except SignalUnavailableError as e:
            logger.debug("secondary_location_unavailable", reason=str(e))
            return None

    def _raise_verdict(self, verdict: AuthenticityVerdict, sample: LocationSample, now: float) -> None:
        event = ViolationEvent(
            type=verdict.violation_type or ViolationType.UNKNOWN,
            detail_message=verdict.detail,
            observed_at=now,
        )
        self.machine.raise_violation(event, sample=sample)

    def run_location_cycle(self, now: float | None = None) -> AuthenticityVerdict | None:
        """
        One location iteration. Returns the authenticity verdict, or None when
        no fix was available (no violation in that case).
        """
        now = self._clock() if now is None else now
        sample = self._fetch_current_sample()
        with self._state_lock:
            self.state.location_cycles += 1
            self.state.last_location_at = now
        if sample is None:
            with self._state_lock:
                self.state.signal_unavailable += 1
                self.state.last_location_status = STATUS_UNAVAILABLE
            return None

        gps = self._provider_sample(PROVIDER_GPS)
        network = self._provider_sample(PROVIDER_NETWORK)
        secondary = self._secondary_location()
        context = AuthenticityContext(
            current=sample,
            now=now,
            previous=self.machine.last_location_sample(),
            gps=gps,
            network=network,
            secondary=secondary,
        )
        verdict = self.evaluator.evaluate(context)
        status = STATUS_OK
        if not verdict.trusted:
            self._raise_verdict(verdict, sample, now)
            if verdict.violation_type is ViolationType.MOCK_LOCATION:
                with self._state_lock:
                    self.state.last_location_status = STATUS_MOCK
                return verdict
            status = STATUS_VIOLATION

        for failure in self.evaluator.evaluate_placement(sample, self.zone, secondary):
            self._raise_verdict(failure, sample, now)
            status = STATUS_VIOLATION

        if sample.accuracy_meters > self.config.low_accuracy_warn_m:
            logger.warning(
                "low_location_accuracy",
                accuracy_m=sample.accuracy_meters,
                threshold_m=self.config.low_accuracy_warn_m,
            )
            if status == STATUS_OK:
                status = STATUS_LOW_ACCURACY

        self.machine.record_location_sample(sample)
        with self._state_lock:
            self.state.last_location_status = status
        return verdict

    # -- integrity --------------------------------------------------------

    def _raise(self, violation_type: ViolationType, detail: str, now: float) -> None:
        self.machine.raise_violation(ViolationEvent(type=violation_type, detail_message=detail, observed_at=now))

    def run_integrity_cycle(self, now: float | None = None) -> int:
        """One integrity iteration; returns the security score of the snapshot."""
        now = self._clock() if now is None else now
        cycle = self._integrity_index
        self._integrity_index += 1
        deep = cycle % self.config.root_check_every == 0

        if self.network_source is not None:
            vpn_active = self.network_source.is_vpn_active()
        else:
            vpn_active = None
        signals: IntegritySignals = self.integrity_source.snapshot(deep=deep)
        if vpn_active is None:
            vpn_active = signals.vpn_active

        if vpn_active:
            self._raise(ViolationType.VPN_DETECTED, "VPN connection detected during monitoring", now)
        if signals.mock_location_app_present:
            self._raise(ViolationType.MOCK_LOCATION, "Mock location app detected on device", now)
        if signals.developer_options_enabled or signals.usb_debugging_enabled:
            self._raise(ViolationType.DEBUGGING_ENABLED, "Developer options enabled during monitoring", now)
        if deep:
            if signals.rooted:
                self._raise(ViolationType.ROOT_ACCESS, "Root access detected during monitoring", now)
            if signals.instrumentation_framework_present:
                self._raise(
                    ViolationType.INSTRUMENTATION_FRAMEWORK,
                    "Instrumentation framework detected during monitoring",
                    now,
                )
            if signals.running_on_emulator:
                self._raise(ViolationType.EMULATOR_DETECTED, "Running on emulator", now)
            if signals.unknown_sources_enabled:
                self._raise(ViolationType.UNKNOWN_SOURCES, "Installation from unknown sources enabled", now)

        score = self.aggregator.score(signals)
        level = security_level(score)
        with self._state_lock:
            self.state.integrity_cycles += 1
            self.state.last_score = score
            self.state.last_level = level
            self.state.last_integrity_at = now
        logger.info(
            "integrity_cycle_done",
            cycle=cycle,
            deep=deep,
            security_score=score,
            security_level=level,
            flagged=signals.flagged(),
        )
        if self._flush_reports is not None:
            try:
                self._flush_reports()
            except Exception as e:
                logger.warning("report_flush_failed", error=str(e), exc_info=True)
        return score

    # -- loops ------------------------------------------------------------

    def location_period(self) -> float:
        return self.config.location_period_sec

    def integrity_period(self) -> float:
        period = self.config.integrity_period_sec
        if self.machine.is_enhanced_monitoring():
            return period / self.config.enhanced_monitoring_factor
        return period

    @staticmethod
    def next_delay(nominal: float, failed: bool) -> float:
        """Nominal period after success; one doubling after failure (not compounding)."""
        return nominal * ERROR_BACKOFF_FACTOR if failed else nominal

    def _record_error(self, name: str, error: Exception) -> None:
        with self._state_lock:
            if name == "location":
                self.state.location_errors += 1
            else:
                self.state.integrity_errors += 1
            self.state.last_error = f"{name}: {error}"
        logger.warning(f"{name}_cycle_failed", error=str(error), exc_info=True)

    def _run_loop(self, name: str, cycle: Callable[[], Any], period: Callable[[], float]) -> None:
        logger.info("monitor_loop_started", loop=name)
        while not self._stop.is_set():
            failed = False
            try:
                cycle()
            except Exception as e:
                failed = True
                self._record_error(name, e)
            if self._stop.wait(self.next_delay(period(), failed)):
                break
        logger.info("monitor_loop_stopped", loop=name)

    def start(self) -> None:
        """Acquire the wake lock and start both loops; no-op if already running."""
        with self._lifecycle_lock:
            if self._running:
                return
            self._running = True
            self._stop.clear()
            if self.wake_lock is not None:
                try:
                    self.wake_lock.acquire()
                except Exception as e:
                    logger.warning("wake_lock_acquire_failed", error=str(e))
            self._threads = [
                threading.Thread(
                    target=self._run_loop,
                    args=("location", self.run_location_cycle, self.location_period),
                    name="location-monitor",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run_loop,
                    args=("integrity", self.run_integrity_cycle, self.integrity_period),
                    name="integrity-monitor",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()
        logger.info(
            "scheduler_started",
            session_id=self.machine.session_id,
            location_period_sec=self.config.location_period_sec,
            integrity_period_sec=self.config.integrity_period_sec,
            root_check_every=self.config.root_check_every,
        )

    def stop(self, timeout: float = SHUTDOWN_JOIN_TIMEOUT_SEC) -> None:
        """Signal both loops, wait for them, then release sources and the wake lock."""
        with self._lifecycle_lock:
            if not self._running:
                return
            self._stop.set()
            for thread in self._threads:
                thread.join(timeout=timeout)
            self._threads = []
            close = getattr(self.location_source, "close", None)
            if callable(close):
                try:
                    close()
                except Exception as e:
                    logger.warning("location_source_close_failed", error=str(e))
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None
                self._pending_fetch = None
            if self.wake_lock is not None:
                try:
                    self.wake_lock.release()
                except Exception as e:
                    logger.warning("wake_lock_release_failed", error=str(e))
            self._running = False
        logger.info("scheduler_stopped", **self.state_snapshot())

    @property
    def is_running(self) -> bool:
        return self._running

    def state_snapshot(self) -> dict[str, Any]:
        with self._state_lock:
            return dict(vars(self.state))
