"""
Checker Scheduler

Runs every configured checker on its own interval using APScheduler and
records one metric event per run.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Callable, Dict, List, Optional, Tuple

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from prometheus_client import Counter

from .. import metrics
from ..checker.base import Checker, RunContext
from ..checker.config import MonitorConfig
from ..checker.errors import CheckerBuildError, CheckerRunError
from ..checker.models import Result, Status
from ..checker.registry import CheckerRegistry

logger = logging.getLogger(__name__)

# (checker_type, checker_name, result, error)
Recorder = Callable[[str, str, Optional[Result], Optional[BaseException]], None]


@dataclass(frozen=True)
class CheckerSchedule:
    """
    A checker bound to its interval and timeout.

    Attributes:
        interval: Seconds between runs; <= 0 runs the checker once
        timeout: Seconds allowed per run; <= 0 is unbounded
        checker: The checker to run
    """
    interval: float
    timeout: float
    checker: Checker

    @property
    def one_shot(self) -> bool:
        return self.interval <= 0


def classify_result(result: Optional[Result], error: Optional[BaseException]) -> Tuple[str, str]:
    """
    Map a run outcome to (status, error_code) metric labels.

    A run error is Unknown regardless of the result.
    """
    if error is not None or result is None:
        return metrics.UNKNOWN_STATUS, metrics.UNKNOWN_CODE
    if result.status == Status.HEALTHY:
        return metrics.HEALTHY_STATUS, metrics.HEALTHY_CODE
    if result.status == Status.UNHEALTHY:
        return metrics.UNHEALTHY_STATUS, result.code
    return metrics.UNKNOWN_STATUS, result.code


def record_checker_result(
    checker_type: str,
    checker_name: str,
    result: Optional[Result],
    error: Optional[BaseException],
    counter: Optional[Counter] = None,
) -> None:
    """Increment the checker result counter once for a run."""
    status, error_code = classify_result(result, error)
    counter = counter or metrics.checker_result_total
    counter.labels(checker_type, checker_name, status, error_code).inc()


def build_checker_schedules(config: MonitorConfig, registry: CheckerRegistry) -> List[CheckerSchedule]:
    """
    Build one schedule per configured checker.

    Raises:
        CheckerBuildError: If any checker cannot be built
    """
    schedules = []
    for chk_cfg in config.checkers:
        try:
            checker = registry.build(chk_cfg)
        except CheckerBuildError as e:
            raise type(e)(f"failed to build checker {chk_cfg.name!r}: {e}") from e
        schedules.append(CheckerSchedule(
            interval=chk_cfg.interval,
            timeout=chk_cfg.timeout,
            checker=checker,
        ))
    return schedules


class CheckerScheduler:
    """
    Runs a set of checker schedules until told to stop.

    Periodic schedules become APScheduler interval jobs limited to one
    running instance each, so runs of the same checker never overlap.
    A run that outlasts its interval makes the scheduler skip the ticks
    that fired meanwhile (``coalesce=True``); the next run starts at the
    next interval tick, not right after the slow run returns.
    One-shot schedules run once on their own thread. Only a one-shot
    failure is reported back from ``start``.

    Example:
        stop = threading.Event()
        scheduler = CheckerScheduler(build_checker_schedules(cfg, registry))

        # blocks until stop is set and one-shot checkers have finished
        scheduler.start(stop)
    """

    def __init__(
        self,
        schedules: List[CheckerSchedule],
        recorder: Optional[Recorder] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            schedules: Checker schedules to run
            recorder: Called once per run (defaults to the Prometheus counter)
        """
        self.schedules = list(schedules)
        self.recorder = recorder or record_checker_result

        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()
        self._last_results: Dict[str, Dict] = {}

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def periodic_schedules(self) -> List[CheckerSchedule]:
        return [s for s in self.schedules if not s.one_shot]

    @property
    def one_shot_schedules(self) -> List[CheckerSchedule]:
        return [s for s in self.schedules if s.one_shot]

    def start(self, stop_event: threading.Event) -> None:
        """
        Run all schedules.

        Blocks until every one-shot checker has run and, when there are
        periodic checkers, until ``stop_event`` is set.

        Raises:
            CheckerRunError: The first one-shot checker failure
        """
        if self.is_running:
            raise RuntimeError("checker scheduler is already running")

        periodic = self.periodic_schedules
        self._scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=max(len(periodic), 1))},
        )
        for schedule in periodic:
            self._scheduler.add_job(
                self._run_periodic,
                trigger=IntervalTrigger(seconds=schedule.interval),
                args=[schedule, stop_event],
                id=f"checker-{schedule.checker.name}",
                name=f"Checker {schedule.checker.name}",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
            )

        errors: Dict[int, BaseException] = {}
        threads = []
        for index, schedule in enumerate(self.one_shot_schedules):
            threads.append(threading.Thread(
                target=self._run_one_shot,
                args=(index, schedule, stop_event, errors),
                name=f"checker-{schedule.checker.name}",
                daemon=True,
            ))

        self._scheduler.start()
        logger.info(
            f"Checker scheduler started ({len(periodic)} periodic, {len(threads)} one-shot)"
        )

        try:
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            if periodic:
                stop_event.wait()
        finally:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            logger.info("Checker scheduler stopped")

        if errors:
            first = errors[min(errors)]
            raise CheckerRunError(f"one-shot checker failed: {first}") from first

    def run_once(self, schedule: CheckerSchedule, stop_event: Optional[threading.Event] = None) -> Result:
        """
        Run a schedule's checker once under its timeout and record the outcome.

        Raises:
            Exception: Whatever the checker raised
        """
        checker = schedule.checker
        ctx = RunContext.with_timeout(schedule.timeout, stop_event)
        started = time.monotonic()

        try:
            result = checker.run(ctx)
            if result is None:
                raise CheckerRunError(f"checker {checker.name} returned no result")
        except Exception as e:
            self.recorder(checker.checker_type, checker.name, None, e)
            self._store_result(checker.name, None, e)
            raise

        duration_ms = (time.monotonic() - started) * 1000
        self.recorder(checker.checker_type, checker.name, result, None)
        self._store_result(checker.name, result, None)
        logger.info(
            f"Checker {checker.name} completed: {result.status.value} "
            f"({duration_ms:.0f}ms){' - ' + result.message if result.message else ''}"
        )
        return result

    def _run_periodic(self, schedule: CheckerSchedule, stop_event: threading.Event) -> None:
        """APScheduler job: run errors are logged and never stop the schedule."""
        if stop_event.is_set():
            return
        try:
            self.run_once(schedule, stop_event)
        except Exception as e:
            logger.error(f"Checker {schedule.checker.name} failed: {e}")

    def _run_one_shot(
        self,
        index: int,
        schedule: CheckerSchedule,
        stop_event: threading.Event,
        errors: Dict[int, BaseException],
    ) -> None:
        try:
            self.run_once(schedule, stop_event)
        except Exception as e:
            logger.error(f"One-shot checker {schedule.checker.name} failed: {e}")
            errors[index] = e

    def _store_result(self, name: str, result: Optional[Result], error: Optional[BaseException]) -> None:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "result": result.to_dict() if result else None,
            "error": str(error) if error else None,
        }
        with self._lock:
            self._last_results[name] = entry

    def get_status(self) -> Dict:
        """Get scheduler status with the latest outcome per checker."""
        with self._lock:
            last_results = dict(self._last_results)
        return {
            "running": self.is_running,
            "checkers": [
                {
                    "name": s.checker.name,
                    "type": s.checker.checker_type,
                    "interval_seconds": s.interval,
                    "timeout_seconds": s.timeout,
                    "last": last_results.get(s.checker.name),
                }
                for s in self.schedules
            ],
        }
