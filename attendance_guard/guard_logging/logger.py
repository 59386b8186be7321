"""
Structured JSON logging for the guard: one event per line on stdout.

Every record carries event_type, level, logger and an ISO-8601 timestamp.
Coordinates are rounded before rendering, including inside nested sample
payloads, so raw positions only ever leave the process in violation reports.

Depends on stdlib logging and structlog only; importing any other
attendance_guard module here creates an import cycle.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

# ~1 m at the equator
LOG_COORDINATE_DECIMALS = int(os.getenv("LOG_COORDINATE_DECIMALS", "5"))

_COORDINATE_KEYS = frozenset({"latitude", "longitude", "lat", "lon", "lng"})
_NESTED_SAMPLE_KEYS = ("sample", "previous", "location", "center")


@dataclass(frozen=True)
class LogConfig:
    level: int = logging.INFO
    renderer: str = "json"
    coordinate_decimals: int = LOG_COORDINATE_DECIMALS

    @classmethod
    def from_env(cls) -> "LogConfig":
        level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        return cls(
            level=getattr(logging, level_name, logging.INFO),
            renderer=os.getenv("LOG_FORMAT", "json").strip().lower(),
        )


def _guard_envelope(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Move structlog's 'event' to event_type and stamp the record."""
    event_type = event_dict.pop("event", None)
    if event_type is not None:
        event_dict.setdefault("event_type", event_type)
    event_dict.setdefault("message", str(event_dict.get("event_type", "")))
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _round_in_place(data: dict[str, Any], decimals: int) -> None:
    for key, value in data.items():
        if key in _COORDINATE_KEYS and isinstance(value, float):
            data[key] = round(value, decimals)
        elif key in _NESTED_SAMPLE_KEYS and isinstance(value, dict):
            data[key] = dict(value)
            _round_in_place(data[key], decimals)


def _round_coordinates(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Round coordinate floats at the top level and in nested sample dicts."""
    _round_in_place(event_dict, LOG_COORDINATE_DECIMALS)
    return event_dict


def _renderer(config: LogConfig) -> Any:
    if config.renderer == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_structlog(config: LogConfig | None = None) -> None:
    """Install the guard processor chain. Safe to call again to reconfigure."""
    config = config or LogConfig.from_env()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _guard_envelope,
            _round_coordinates,
            _renderer(config),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(config.level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a logger bound to the module name.

        logger = get_logger(__name__)
        logger.warning("violation_raised", violation_type="mock_location", severity="critical")

    renders as {"event_type": "violation_raised", "violation_type": "mock_location",
    "severity": "critical", "level": "warning", "logger": "...", "timestamp": "..."}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_session(session_id: str) -> structlog.BoundLogger:
    """Logger carrying session_id on every record of one monitoring session."""
    return get_logger("attendance_guard.session").bind(session_id=session_id)
