"""
Main entrypoint: run the attendance monitoring worker until SIGTERM/Ctrl+C.

Env: GUARD_REPLAY_PATH (required), REPORT_URL, IP_GEO_URL, GEOFENCE_*, DEVICE_PROBE, etc.
See attendance_guard/config/settings.py for the full list.
"""

import sys

# Configure structured JSON logging before other imports that may log
from attendance_guard.guard_logging import get_logger

logger = get_logger("main")


def main() -> int:
    from attendance_guard.agent_worker.runtime import main as run_worker

    logger.info("main_starting")
    return run_worker()


if __name__ == "__main__":
    sys.exit(main())
