"""
Environment variable loading and parsing for Attendance Guard.

- Loads .env from the project root when available (python-dotenv).
- Typed getters return the default when a variable is unset or blank and
  raise ConfigError when it is set but unparsable, so a typo in a deployment
  never silently falls back to a default threshold.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from attendance_guard.core.exceptions import ConfigError

# Project root: config is attendance_guard/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def load_guard_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    load_dotenv(_ENV_PATH, override=False)


def _raw(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_str(name: str, default: str | None = None) -> str | None:
    """Return the stripped value of `name`, or default when unset/blank."""
    raw = _raw(name)
    return raw if raw is not None else default


def env_float(name: str, default: float) -> float:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def env_int(name: str, default: int) -> int:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def env_bool(name: str, default: bool) -> bool:
    raw = _raw(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Comma-separated list. Unset → default; set to "-" or "none" → empty tuple
    (lets a deployment switch off a list-driven heuristic entirely).
    """
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    if value.lower() in ("-", "none"):
        return ()
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())
