"""
Persistent monitoring worker for one attendance session.

Runs as a separate process (CLI entrypoint). Loads settings from the
environment, wires sources, reporter and state store into the trust state
machine, runs the startup checks, then keeps the monitoring scheduler going
until SIGTERM or KeyboardInterrupt. Cycle errors never crash the process.

Usage: attendance-guard   (or python -m attendance_guard.agent_worker.runtime)
"""

from __future__ import annotations

import signal
import sys
import threading
from dataclasses import dataclass
from typing import Any

from attendance_guard.alerts.escalation import EscalationConfig, ViolationSeverityStateMachine
from attendance_guard.analysis_engine.location import LocationAuthenticityEvaluator, LocationPolicy
from attendance_guard.analysis_engine.scorer import TrustSignalAggregator
from attendance_guard.checkin.gate import run_startup_checks_from_sources
from attendance_guard.config.settings import GuardSettings, get_settings
from attendance_guard.core.exceptions import ConfigError
from attendance_guard.guard_logging import bind_session, get_logger
from attendance_guard.reporting.http import HttpReportTransport
from attendance_guard.reporting.queue import QueueingViolationReporter
from attendance_guard.scheduler.engine import MonitoringScheduler, SchedulerConfig
from attendance_guard.sources.integrity import TableIntegritySource
from attendance_guard.sources.interfaces import IntegritySource, NetworkSource, SecondaryGeoSource
from attendance_guard.sources.memory import InMemoryAppStateStore, LoggingViolationReporter
from attendance_guard.sources.network import IpGeoSource, NullSecondaryGeoSource, VpnDetector
from attendance_guard.sources.replay import ReplayLocationSource, load_replay
from attendance_guard.sources.shell_probe import ShellDeviceProbe

logger = get_logger(__name__)

HEARTBEAT_INTERVAL_SEC = 30.0


@dataclass
class GuardRuntime:
    """Everything main() wires together; built by build_runtime()."""

    settings: GuardSettings
    machine: ViolationSeverityStateMachine
    scheduler: MonitoringScheduler
    store: InMemoryAppStateStore
    reporter: Any
    location: ReplayLocationSource
    integrity: IntegritySource
    network: NetworkSource | None
    transport: HttpReportTransport | None = None


def _build_integrity_and_network(
    settings: GuardSettings,
    replay_integrity: IntegritySource,
    replay_network: NetworkSource,
) -> tuple[IntegritySource, NetworkSource]:
    if settings.device_probe == "replay":
        return replay_integrity, replay_network
    if settings.device_probe == "adb":
        probe = (
            ShellDeviceProbe.for_adb_device(settings.adb_serial)
            if settings.adb_serial
            else ShellDeviceProbe()
        )
        return TableIntegritySource(probe, network=replay_network), replay_network
    network = VpnDetector(vpn_dns_servers=settings.vpn_dns_servers)
    return TableIntegritySource(ShellDeviceProbe(("sh", "-c")), network=network), network


def build_runtime(settings: GuardSettings) -> GuardRuntime:
    """
    Wire collaborators from settings. Raises ConfigError when no location
    source is configured (GUARD_REPLAY_PATH).
    """
    if not settings.replay_path:
        raise ConfigError("GUARD_REPLAY_PATH is required: no platform location source is available")
    location, replay_integrity, replay_network = load_replay(settings.replay_path, loop=settings.replay_loop)
    integrity, network = _build_integrity_and_network(settings, replay_integrity, replay_network)

    transport: HttpReportTransport | None = None
    report_context = {"device_info": settings.device_info}
    if settings.employee_id:
        report_context["employee_id"] = settings.employee_id
    if settings.report_url:
        transport = HttpReportTransport(settings.report_url, timeout_sec=settings.report_timeout_sec)
        reporter: Any = QueueingViolationReporter(
            transport,
            context_defaults=report_context,
            device_info=settings.device_info,
            max_pending=settings.pending_queue_max,
        )
    else:
        reporter = LoggingViolationReporter()

    secondary: SecondaryGeoSource = (
        IpGeoSource(settings.ip_geo_url, timeout_sec=settings.report_timeout_sec)
        if settings.ip_geo_url
        else NullSecondaryGeoSource()
    )
    store = InMemoryAppStateStore()
    machine = ViolationSeverityStateMachine(
        store=store,
        reporter=reporter,
        config=EscalationConfig(max_violations=settings.max_violations),
        report_context=report_context,
    )
    scheduler = MonitoringScheduler(
        machine,
        location,
        integrity,
        network_source=network,
        secondary_source=secondary,
        evaluator=LocationAuthenticityEvaluator(LocationPolicy.from_settings(settings)),
        aggregator=TrustSignalAggregator(),
        zone=settings.geofence(),
        config=SchedulerConfig.from_settings(settings),
        flush_reports=getattr(reporter, "flush_pending", None),
    )
    return GuardRuntime(
        settings=settings,
        machine=machine,
        scheduler=scheduler,
        store=store,
        reporter=reporter,
        location=location,
        integrity=integrity,
        network=network,
        transport=transport,
    )


def run(runtime: GuardRuntime, shutdown: threading.Event) -> None:
    """Startup checks, then monitor until shutdown is set."""
    session_log = bind_session(runtime.machine.session_id)
    startup = run_startup_checks_from_sources(runtime.integrity, runtime.network, runtime.machine)
    session_log.info(
        "runtime_started",
        startup_passed=startup.passed,
        security_score=startup.security_score,
        device_probe=runtime.settings.device_probe,
    )
    runtime.scheduler.start()
    try:
        while not shutdown.wait(HEARTBEAT_INTERVAL_SEC):
            session_log.info(
                "runtime_heartbeat",
                app_blocked=runtime.machine.is_app_blocked(),
                attendance_blocked=runtime.machine.is_attendance_blocked(),
                violation_count=runtime.machine.violation_count,
                **runtime.scheduler.state_snapshot(),
            )
    finally:
        runtime.scheduler.stop()
        if runtime.transport is not None:
            runtime.transport.close()
        session_log.info("runtime_stopped", **runtime.machine.snapshot().to_dict())


def main() -> int:
    """CLI entrypoint: load config from env and monitor until signalled."""
    shutdown = threading.Event()

    def request_shutdown(*args: Any) -> None:
        shutdown.set()

    try:
        signal.signal(signal.SIGTERM, request_shutdown)
    except (AttributeError, ValueError):
        # not the main thread, or unsupported platform
        pass

    try:
        runtime = build_runtime(get_settings())
        run(runtime, shutdown)
        return 0
    except KeyboardInterrupt:
        logger.info("runtime_shutdown_signal")
        return 0
    except ConfigError as e:
        logger.error("runtime_config_error", error=str(e))
        return 2
    except Exception as e:
        logger.exception("runtime_fatal", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
