"""
Tests for the worker runtime (build_runtime, run, main).

Runs against a replay file; no device, no network.
"""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock

import pytest

from attendance_guard.agent_worker import runtime as runtime_mod
from attendance_guard.agent_worker.runtime import build_runtime, main, run
from attendance_guard.config.settings import GuardSettings
from attendance_guard.core.exceptions import ConfigError
from attendance_guard.reporting.queue import QueueingViolationReporter
from attendance_guard.sources.integrity import TableIntegritySource
from attendance_guard.sources.memory import LoggingViolationReporter
from attendance_guard.sources.replay import ReplayIntegritySource


@pytest.fixture
def replay_path(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(
        json.dumps(
            {
                "locations": [
                    {"latitude": 40.7128, "longitude": -74.006, "accuracy_meters": 8, "timestamp": 1000},
                ],
                "integrity": [{"usb_debugging_enabled": True}],
                "vpn_active": False,
            }
        ),
        encoding="utf-8",
    )
    return str(path)


def test_build_runtime_requires_replay_path():
    with pytest.raises(ConfigError, match="GUARD_REPLAY_PATH"):
        build_runtime(GuardSettings())


def test_build_runtime_logging_reporter_by_default(replay_path):
    rt = build_runtime(GuardSettings(replay_path=replay_path))
    assert isinstance(rt.reporter, LoggingViolationReporter)
    assert isinstance(rt.integrity, ReplayIntegritySource)
    assert rt.transport is None
    assert rt.scheduler.zone.radius_meters == 200.0


def test_build_runtime_replay_loop(replay_path):
    rt = build_runtime(GuardSettings(replay_path=replay_path, replay_loop=True))
    first = rt.location.get_current_sample(1_000)
    assert first is not None
    assert rt.location.get_current_sample(1_000) == first


def test_build_runtime_http_reporter(replay_path):
    rt = build_runtime(
        GuardSettings(replay_path=replay_path, report_url="https://attendance.example.com/api", employee_id="E-7")
    )
    assert isinstance(rt.reporter, QueueingViolationReporter)
    assert rt.reporter.context_defaults["employee_id"] == "E-7"
    rt.transport.close()


def test_build_runtime_adb_probe(replay_path):
    rt = build_runtime(GuardSettings(replay_path=replay_path, device_probe="adb", adb_serial="R58M123"))
    assert isinstance(rt.integrity, TableIntegritySource)
    assert rt.integrity.probe.prefix == ("adb", "-s", "R58M123", "shell")


def test_run_until_shutdown(replay_path):
    """Startup checks run, scheduler starts, and everything stops on shutdown."""
    rt = build_runtime(GuardSettings(replay_path=replay_path))
    shutdown = threading.Event()
    shutdown.set()
    run(rt, shutdown)
    assert rt.scheduler.is_running is False
    assert rt.location.closed is True


def test_main_config_error_exit_code(monkeypatch):
    monkeypatch.setattr(runtime_mod.signal, "signal", MagicMock())
    monkeypatch.setattr(runtime_mod, "get_settings", lambda: GuardSettings())
    assert main() == 2


def test_main_runs_and_exits_cleanly(monkeypatch, replay_path):
    monkeypatch.setattr(runtime_mod.signal, "signal", MagicMock())
    monkeypatch.setattr(runtime_mod, "get_settings", lambda: GuardSettings(replay_path=replay_path))
    monkeypatch.setattr(runtime_mod, "run", MagicMock())
    assert main() == 0
    runtime_mod.run.assert_called_once()
