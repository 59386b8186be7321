from attendance_guard.checkin.gate import (
    GateOutcome,
    GateResult,
    StartupCheckResult,
    precheck_attendance,
    run_startup_checks,
    run_startup_checks_from_sources,
)

__all__ = [
    "GateOutcome",
    "GateResult",
    "StartupCheckResult",
    "precheck_attendance",
    "run_startup_checks",
    "run_startup_checks_from_sources",
]
