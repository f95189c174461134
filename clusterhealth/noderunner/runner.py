"""
Node Checker Runner

Runs the node checkers once, retrying each on failure, and writes all
results to the CheckNodeHealth status in a single update.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from ..checker.base import Checker, RunContext
from ..checker.config import PodNetworkConfig
from ..checker.errors import StatusPersistError
from ..checker.models import Result, unknown
from ..checker.podnetwork import PodNetworkChecker
from ..kube import KubeClient
from .models import AggregatedStatus
from .store import StatusStore

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 3.0

POD_NETWORK_CHECKER_NAME = "PodNetwork"


def default_node_checkers(kube: KubeClient, node_name: str) -> List[Checker]:
    """Create the checkers run against a single node."""
    return [
        PodNetworkChecker(
            POD_NETWORK_CHECKER_NAME,
            kube=kube,
            config=PodNetworkConfig(node_name=node_name),
        ),
    ]


class NodeCheckerRunner:
    """
    Executes node checkers sequentially and persists their results.

    A checker that raises is retried up to ``max_attempts`` times with a
    fixed delay; if every attempt fails its result is recorded as Unknown
    and the remaining checkers still run. Only persistence failures abort
    the pass.

    Example:
        runner = NodeCheckerRunner(
            store=KubernetesStatusStore(kube),
            cr_name="node-check-abc",
            checkers=default_node_checkers(kube, "aks-node-1"),
        )
        status = runner.run()
    """

    def __init__(
        self,
        store: StatusStore,
        cr_name: str,
        checkers: List[Checker],
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the runner.

        Args:
            store: Status persistence
            cr_name: CheckNodeHealth resource name
            checkers: Checkers to run, in order
            max_attempts: Attempts per checker (at least 1)
            retry_delay: Seconds to wait between attempts
            sleep: Sleep function (replaced in tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.cr_name = cr_name
        self.checkers = list(checkers)
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def run(self, ctx: Optional[RunContext] = None) -> AggregatedStatus:
        """
        Run all checkers once and persist the results.

        Returns:
            The status as written

        Raises:
            StatusPersistError: If the status could not be read or written
        """
        ctx = ctx or RunContext()
        logger.info(f"Running {len(self.checkers)} node checkers for {self.cr_name}")

        results: Dict[str, Result] = {}
        for checker in self.checkers:
            results[checker.name] = self.run_checker(checker, ctx)

        status = self.persist(results)
        logger.info(f"Successfully updated CheckNodeHealth {self.cr_name} with {len(results)} results")
        return status

    def run_checker(self, checker: Checker, ctx: RunContext) -> Result:
        """Run one checker with retries; never raises."""
        logger.info(f"Running checker {checker.name}")

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = checker.run(ctx)
                if result is None:
                    raise ValueError("checker returned no result")
            except Exception as e:
                last_error = e
                logger.info(f"Checker {checker.name} attempt {attempt} failed: {e}")
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay)
                continue

            logger.info(
                f"Checker {checker.name} completed: {result.status.value}"
                f"{' - ' + result.message if result.message else ''}"
            )
            return result

        logger.error(f"Checker {checker.name} failed after {self.max_attempts} attempts: {last_error}")
        return unknown(f"Checker failed after {self.max_attempts} attempts: {last_error}")

    def persist(self, results: Dict[str, Result]) -> AggregatedStatus:
        """
        Merge results into the stored status with one read and one write.

        Raises:
            StatusPersistError: If the read or the write fails
        """
        try:
            status = self.store.get(self.cr_name)
        except StatusPersistError:
            logger.error(f"Failed to get CheckNodeHealth {self.cr_name}")
            raise

        status.mark_started()
        for name, result in results.items():
            status.record(name, result)
        status.mark_finished()

        try:
            self.store.update(self.cr_name, status)
        except StatusPersistError:
            logger.error(f"Failed to update CheckNodeHealth {self.cr_name} status")
            raise
        return status
