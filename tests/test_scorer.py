"""
Tests for the security score (scorer.compute_security_score, TrustSignalAggregator).

Fixed deductions per flagged signal, clamped to [0, 100]; coarse levels at 80 / 60.
"""

from __future__ import annotations

import itertools

import pytest

from attendance_guard.analysis_engine.models import IntegritySignals
from attendance_guard.analysis_engine.scorer import (
    SIGNAL_DEDUCTIONS,
    TrustSignalAggregator,
    compute_security_score,
    security_level,
)

SCORED_SIGNALS = tuple(SIGNAL_DEDUCTIONS)


def test_clean_device_scores_100():
    """No flags → full score."""
    assert compute_security_score(IntegritySignals()) == 100


@pytest.mark.parametrize(
    "signal,expected",
    [
        ("rooted", 60),
        ("mock_location_app_present", 70),
        ("instrumentation_framework_present", 75),
        ("developer_options_enabled", 85),
        ("usb_debugging_enabled", 90),
        ("unknown_sources_enabled", 90),
        ("running_on_emulator", 95),
    ],
)
def test_single_signal_deduction(signal, expected):
    """Each signal deducts its fixed number of points."""
    assert compute_security_score(IntegritySignals(**{signal: True})) == expected


def test_deductions_compound():
    """Rooted + developer options + USB debugging = 100 - 40 - 15 - 10."""
    signals = IntegritySignals(rooted=True, developer_options_enabled=True, usb_debugging_enabled=True)
    assert compute_security_score(signals) == 35


def test_everything_flagged_clamps_to_zero():
    """Sum of deductions exceeds 100; score never goes negative."""
    signals = IntegritySignals(**{name: True for name in SCORED_SIGNALS})
    assert compute_security_score(signals) == 0


def test_vpn_does_not_affect_score():
    """VPN is a violation, not a score deduction."""
    assert compute_security_score(IntegritySignals(vpn_active=True)) == 100


def test_score_bounds_and_monotonicity():
    """For every subset of signals: 0 <= score <= 100, and adding a flag never raises the score."""
    for r in range(len(SCORED_SIGNALS) + 1):
        for subset in itertools.combinations(SCORED_SIGNALS, r):
            flags = {name: True for name in subset}
            score = compute_security_score(IntegritySignals(**flags))
            assert 0 <= score <= 100
            for extra in SCORED_SIGNALS:
                if extra in flags:
                    continue
                more = compute_security_score(IntegritySignals(**flags, **{extra: True}))
                assert more <= score


@pytest.mark.parametrize(
    "score,level",
    [(100, "high"), (80, "high"), (79, "medium"), (60, "medium"), (59, "low"), (0, "low")],
)
def test_security_level_boundaries(score, level):
    """>= 80 high, >= 60 medium, else low."""
    assert security_level(score) == level


def test_aggregator_breakdown_lists_applied_deductions():
    """breakdown() explains the score: which signals cost how many points."""
    aggregator = TrustSignalAggregator()
    signals = IntegritySignals(rooted=True, running_on_emulator=True)
    breakdown = aggregator.breakdown(signals)
    assert breakdown["score"] == 55
    assert breakdown["level"] == "low"
    assert {"signal": "rooted", "points": 40} in breakdown["deductions"]
    assert {"signal": "running_on_emulator", "points": 5} in breakdown["deductions"]
    assert len(breakdown["deductions"]) == 2


def test_aggregator_custom_table():
    """A deployment can override the deduction table."""
    aggregator = TrustSignalAggregator(deductions={"rooted": 100})
    assert aggregator.score(IntegritySignals(rooted=True)) == 0
    assert aggregator.score(IntegritySignals(developer_options_enabled=True)) == 100
