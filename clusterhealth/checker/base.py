"""
Checker Base

Defines the Checker interface and the RunContext passed to every run.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from .errors import DeadlineExceeded, RunCancelled
from .models import Result


class RunContext:
    """
    Deadline and cancellation token for a single checker run.

    Checkers are expected to cooperate: bound blocking calls with
    ``remaining()`` and call ``check()`` between steps.

    Example:
        ctx = RunContext.with_timeout(10, stop_event)
        timeout = ctx.remaining(default=5.0)
        ctx.check()  # raises DeadlineExceeded / RunCancelled
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the context.

        Args:
            deadline: Absolute ``time.monotonic()`` deadline (None = unbounded)
            stop_event: Shared process-wide cancellation event
        """
        self.deadline = deadline
        self._stop_event = stop_event or threading.Event()

    @classmethod
    def with_timeout(
        cls,
        timeout: float,
        stop_event: Optional[threading.Event] = None,
    ) -> "RunContext":
        """Create a context expiring ``timeout`` seconds from now (<= 0 = unbounded)."""
        deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
        return cls(deadline=deadline, stop_event=stop_event)

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self, default: Optional[float] = None) -> Optional[float]:
        """
        Seconds left before the deadline.

        Args:
            default: Upper bound to apply (also returned when there is no deadline)

        Returns:
            Remaining seconds, never negative
        """
        if self.deadline is None:
            return default
        left = max(0.0, self.deadline - time.monotonic())
        if default is not None:
            return min(left, default)
        return left

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to ``seconds``, bounded by the deadline.

        Returns:
            True if the run was cancelled while waiting
        """
        timeout = self.remaining(default=seconds)
        return self._stop_event.wait(max(0.0, timeout))

    def check(self) -> None:
        """Raise if the run was cancelled or ran out of time."""
        if self.cancelled:
            raise RunCancelled("run cancelled")
        if self.expired:
            raise DeadlineExceeded("run deadline exceeded")


class Checker(ABC):
    """
    A single named health check.

    ``run`` returns a Result for any health verdict, including unhealthy
    and unknown ones. Raising an exception signals an infrastructure
    failure (API unreachable, timeout) rather than a verdict.
    """

    checker_type: str = ""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def run(self, ctx: RunContext) -> Result:
        """Execute the health check logic."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"
