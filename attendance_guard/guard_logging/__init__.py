"""
Structured logging for Attendance Guard.

JSON logs with timestamp, session_id, event_type and violation context.
Use get_logger() in all guard modules for aggregation-friendly output.
"""

from attendance_guard.guard_logging.logger import bind_session, get_logger

__all__ = ["bind_session", "get_logger"]
