"""
Monitoring scheduler: periodic location and integrity cycles.
"""

from attendance_guard.scheduler.engine import (
    MonitoringScheduler,
    SchedulerConfig,
    SchedulerState,
)

__all__ = [
    "MonitoringScheduler",
    "SchedulerConfig",
    "SchedulerState",
]
