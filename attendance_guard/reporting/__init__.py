"""
Reporting adapters: payload formatting, retry queue, and HTTP transport.
"""

from attendance_guard.reporting.http import HttpReportTransport
from attendance_guard.reporting.queue import (
    QueueingViolationReporter,
    build_alert_payload,
    build_report_payload,
)

__all__ = [
    "HttpReportTransport",
    "QueueingViolationReporter",
    "build_alert_payload",
    "build_report_payload",
]
