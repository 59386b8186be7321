"""
Configuration management for Attendance Guard.

Loads and validates settings from environment variables and an optional .env
file. Exposes a single source of truth for every deployment tunable.
"""

from attendance_guard.config.settings import GuardSettings, get_settings, load_settings  # noqa: F401

__all__ = ["GuardSettings", "get_settings", "load_settings"]
