"""
Checker Scheduling

Periodic and one-shot execution of configured checkers.
"""

from .scheduler import (
    CheckerSchedule,
    CheckerScheduler,
    build_checker_schedules,
    classify_result,
    record_checker_result,
)

__all__ = [
    "CheckerSchedule",
    "CheckerScheduler",
    "build_checker_schedules",
    "classify_result",
    "record_checker_result",
]
