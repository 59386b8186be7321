"""
Security score computation — fixed deductions over integrity signals.

Responsibilities:
- Fold an IntegritySignals snapshot into a single score in [0, 100].
- Map a score onto a coarse security level for display.
- Provide an explainable breakdown of which signal cost how many points.

Pure functions: no hidden state, no I/O. Unknown or unobtainable signals are
resolved to the safe (flagged) value by the signal source, never here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from attendance_guard.analysis_engine.models import IntegritySignals

BASE_SCORE = 100
MIN_SCORE = 0
MAX_SCORE = 100

# Deductions per flagged signal (explainable, additive, rule-based)
SIGNAL_DEDUCTIONS: dict[str, int] = {
    "rooted": 40,
    "mock_location_app_present": 30,
    "instrumentation_framework_present": 25,
    "developer_options_enabled": 15,
    "usb_debugging_enabled": 10,
    "unknown_sources_enabled": 10,
    "running_on_emulator": 5,
}

SECURITY_LEVEL_HIGH = "high"
SECURITY_LEVEL_MEDIUM = "medium"
SECURITY_LEVEL_LOW = "low"
DEFAULT_HIGH_LEVEL_MIN = 80
DEFAULT_MEDIUM_LEVEL_MIN = 60


def compute_security_score(
    signals: IntegritySignals,
    deductions: Mapping[str, int] | None = None,
) -> int:
    """
    Compute the security score (0–100) for one integrity snapshot.

    Starts at 100 and subtracts the fixed deduction of every flagged signal.
    Deductions compound; the result is clamped to [0, 100].

    Args:
        signals: Snapshot from an IntegritySource.
        deductions: Override table (signal name → points); defaults to SIGNAL_DEDUCTIONS.

    Returns:
        Integer score in [0, 100].
    """
    table = SIGNAL_DEDUCTIONS if deductions is None else deductions
    score = BASE_SCORE
    for name, points in table.items():
        if getattr(signals, name, False):
            score -= points
    return max(MIN_SCORE, min(MAX_SCORE, score))


def security_level(
    score: int,
    *,
    high_min: int = DEFAULT_HIGH_LEVEL_MIN,
    medium_min: int = DEFAULT_MEDIUM_LEVEL_MIN,
) -> str:
    """Map score to high | medium | low."""
    if score >= high_min:
        return SECURITY_LEVEL_HIGH
    if score >= medium_min:
        return SECURITY_LEVEL_MEDIUM
    return SECURITY_LEVEL_LOW


@dataclass
class TrustSignalAggregator:
    """Holds a deduction table; score() is the aggregator contract."""

    deductions: dict[str, int] = field(default_factory=lambda: dict(SIGNAL_DEDUCTIONS))

    def score(self, signals: IntegritySignals) -> int:
        return compute_security_score(signals, self.deductions)

    def breakdown(self, signals: IntegritySignals) -> dict[str, Any]:
        """Score, level and per-signal deductions, for status screens and audit logs."""
        applied = [
            {"signal": name, "points": points}
            for name, points in self.deductions.items()
            if getattr(signals, name, False)
        ]
        score = self.score(signals)
        return {
            "score": score,
            "level": security_level(score),
            "deductions": applied,
        }
