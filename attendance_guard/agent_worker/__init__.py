"""
Agent worker — process entrypoint for the monitoring session.
"""

from attendance_guard.agent_worker.runtime import GuardRuntime, build_runtime, main, run

__all__ = ["GuardRuntime", "build_runtime", "main", "run"]
