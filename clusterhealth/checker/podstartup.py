"""
Pod Startup Checker

Creates a synthetic pod, measures how long it takes to start (image pull
excluded) and opens a TCP connection to it.
"""

import logging
import re
import socket
import time
from datetime import datetime, timedelta, UTC
from typing import Callable, List, Optional

from kubernetes import client

from ..kube import KubeClient, describe_api_error
from .base import Checker, RunContext
from .config import CheckerConfig, CheckerType, PodStartupConfig
from .errors import CheckerBuildError, CheckerRunError, RunCancelled
from .loader import parse_duration
from .models import Result, healthy, unhealthy
from .registry import CheckerRegistry

logger = logging.getLogger(__name__)

SYNTHETIC_POD_IMAGE = "mcr.microsoft.com/azurelinux/base/nginx:1.25.4-4-azl3.0.20250702"
SYNTHETIC_POD_PORT = 80
POLL_INTERVAL_SECONDS = 1.0

ERROR_CODE_POD_CREATION_TIMEOUT = "PodCreationTimeout"
ERROR_CODE_POD_CREATION_ERROR = "PodCreationError"
ERROR_CODE_POD_STARTUP_DURATION_EXCEEDED = "PodStartupDurationExceeded"
ERROR_CODE_REQUEST_TIMEOUT = "RequestTimeout"
ERROR_CODE_REQUEST_FAILED = "RequestFailed"

# e.g. 'Successfully pulled image "nginx" in 426ms (1s34ms including waiting). Image size: 299513 bytes.'
_IMAGE_PULL_DURATION_RE = re.compile(r"\(([a-zA-Z0-9.]+) including waiting\)")

# (ip, port, timeout) -> None, raising OSError on failure
Connect = Callable[[str, int, float], None]


def tcp_connect(ip: str, port: int, timeout: float) -> None:
    """Open and close a TCP connection."""
    with socket.create_connection((ip, port), timeout=timeout):
        pass


def parse_image_pull_duration(message: str) -> float:
    """
    Extract the image pull time (including waiting) from a ``Pulled`` event message.

    Raises:
        ValueError: If the message does not carry a duration
    """
    match = _IMAGE_PULL_DURATION_RE.search(message)
    if not match:
        raise ValueError(f"unexpected image pull event message: {message}")
    return parse_duration(match.group(1))


def round_seconds(seconds: float) -> float:
    """Round to whole seconds, halves away from zero."""
    if seconds < 0:
        return -float(int(-seconds + 0.5))
    return float(int(seconds + 0.5))


class PodStartupChecker(Checker):
    """
    Synthetic pod startup checker.

    Each run first deletes synthetic pods left behind by earlier runs
    that are older than the checker timeout, then refuses to run if
    ``max_synthetic_pods`` of them still exist. The created pod is always
    deleted before the run returns.

    Example:
        checker = PodStartupChecker(
            "pod-startup",
            kube=KubeClient(),
            config=PodStartupConfig(synthetic_pod_namespace="chm-synthetic"),
            timeout=30,
        )
        result = checker.run(RunContext.with_timeout(30))
    """

    checker_type = CheckerType.POD_STARTUP.value

    def __init__(
        self,
        name: str,
        kube: KubeClient,
        config: Optional[PodStartupConfig] = None,
        timeout: float = 0.0,
        connect: Optional[Connect] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        """
        Initialize the checker.

        Args:
            name: Checker name, also the synthetic pod label value
            kube: Kubernetes client
            config: Checker parameters
            timeout: Checker timeout; bounds polling and the age of leftover pods
            connect: TCP connect function (replaced in tests)
            poll_interval: Seconds between pod status polls
        """
        super().__init__(name)
        self.kube = kube
        self.config = config or PodStartupConfig()
        self.timeout = timeout
        self.connect = connect or tcp_connect
        self.poll_interval = poll_interval

    @property
    def namespace(self) -> str:
        return self.config.synthetic_pod_namespace

    @property
    def label_selector(self) -> str:
        return f"{self.config.synthetic_pod_label_key}={self.name}"

    @property
    def pod_name_prefix(self) -> str:
        return f"{self.name.lower()}-synthetic-"

    def run(self, ctx: RunContext) -> Result:
        """Execute the pod startup check."""
        ctx.check()
        try:
            self.garbage_collect()
        except CheckerRunError as e:
            logger.error(f"Failed to garbage collect old synthetic pods: {e}")

        try:
            pods = self.kube.list_pods(self.namespace, self.label_selector)
        except Exception as e:
            raise CheckerRunError(f"failed to list synthetic pods: {describe_api_error(e)}") from e
        if len(pods) >= self.config.max_synthetic_pods:
            raise CheckerRunError(
                f"maximum number of synthetic pods reached, current: {len(pods)}, "
                f"max allowed: {self.config.max_synthetic_pods}"
            )

        body = self.build_synthetic_pod(str(time.time_ns()))
        try:
            pod = self.kube.create_pod(self.namespace, body)
        except Exception as e:
            if ctx.expired:
                return unhealthy(ERROR_CODE_POD_CREATION_TIMEOUT, "timed out creating synthetic pod")
            return unhealthy(
                ERROR_CODE_POD_CREATION_ERROR,
                f"error creating synthetic pod: {describe_api_error(e)}",
            )

        pod_name = pod.metadata.name
        logger.info(f"Created synthetic pod {self.namespace}/{pod_name}")
        try:
            return self._check_pod(ctx, pod_name)
        finally:
            self._delete_pod(pod_name)

    def _check_pod(self, ctx: RunContext, pod_name: str) -> Result:
        running_after = self.wait_for_running(ctx, pod_name)
        if running_after is None:
            return unhealthy(ERROR_CODE_POD_STARTUP_DURATION_EXCEEDED, "pod has no running container")

        image_pull = self.get_image_pull_duration(pod_name)
        startup = round_seconds(running_after - image_pull)
        logger.info(
            f"Synthetic pod {pod_name} started in {startup:g}s "
            f"(image pull {image_pull:.3f}s excluded)"
        )
        if startup >= self.config.synthetic_pod_startup_timeout:
            return unhealthy(
                ERROR_CODE_POD_STARTUP_DURATION_EXCEEDED,
                "pod exceeded the maximum healthy startup duration",
            )

        pod_ip = self.get_pod_ip(pod_name)
        ctx.check()
        timeout = ctx.remaining(default=self.config.tcp_timeout)
        try:
            self.connect(pod_ip, SYNTHETIC_POD_PORT, timeout)
        except TimeoutError:
            return unhealthy(ERROR_CODE_REQUEST_TIMEOUT, "TCP request to synthetic pod timed out")
        except OSError as e:
            return unhealthy(ERROR_CODE_REQUEST_FAILED, f"TCP request to synthetic pod failed: {e}")
        return healthy()

    def wait_for_running(self, ctx: RunContext, pod_name: str) -> Optional[float]:
        """
        Poll until a container of the pod is running.

        Returns:
            Seconds from pod creation to the container start, or None if the
            deadline passed first

        Raises:
            RunCancelled: If the run was cancelled while polling
        """
        if ctx.deadline is not None:
            deadline = ctx.deadline
        else:
            deadline = time.monotonic() + (
                self.timeout if self.timeout > 0
                else self.config.synthetic_pod_startup_timeout + self.config.tcp_timeout
            )

        while True:
            try:
                pod = self.kube.read_pod(self.namespace, pod_name)
            except Exception as e:
                logger.debug(f"Failed to read synthetic pod {pod_name}: {describe_api_error(e)}")
                pod = None

            if pod is not None:
                duration = creation_to_running(pod)
                if duration is not None:
                    return duration

            left = deadline - time.monotonic()
            if left <= 0:
                return None
            if ctx.wait(min(self.poll_interval, left)):
                raise RunCancelled("run cancelled")

    def get_image_pull_duration(self, pod_name: str) -> float:
        """
        Image pull time of the synthetic pod, 0 if the image was already present.

        Raises:
            CheckerRunError: If the events cannot be read or none describes the pull
        """
        try:
            events = self.kube.list_events(
                self.namespace,
                field_selector=f"involvedObject.name={pod_name},reason=Pulled",
            )
        except Exception as e:
            raise CheckerRunError(
                f"failed to list events for pod {pod_name}: {describe_api_error(e)}"
            ) from e

        for event in events:
            message = event.message or ""
            if "Successfully pulled image" in message:
                try:
                    return parse_image_pull_duration(message)
                except ValueError as e:
                    raise CheckerRunError(str(e)) from e
            if "already present on machine" in message:
                return 0.0
            logger.info(f"Unexpected event message for pod {pod_name}: {message}")
        raise CheckerRunError(f"no image pull events found for pod {pod_name}")

    def get_pod_ip(self, pod_name: str) -> str:
        try:
            pod = self.kube.read_pod(self.namespace, pod_name)
        except Exception as e:
            raise CheckerRunError(f"error getting pod {pod_name}: {describe_api_error(e)}") from e
        if not pod.status or not pod.status.pod_ip:
            raise CheckerRunError(f"pod {pod_name} has no IP")
        return pod.status.pod_ip

    def garbage_collect(self) -> None:
        """
        Delete synthetic pods of this checker older than the checker timeout.

        Raises:
            CheckerRunError: If listing fails or any delete fails
        """
        try:
            pods = self.kube.list_pods(self.namespace, self.label_selector)
        except Exception as e:
            raise CheckerRunError(
                f"failed to list pods for garbage collection: {describe_api_error(e)}"
            ) from e

        max_age = timedelta(seconds=self.timeout)
        now = datetime.now(UTC)
        errors: List[str] = []
        for pod in pods:
            created = pod.metadata.creation_timestamp
            if created is None or now - created <= max_age:
                continue
            try:
                self.kube.delete_pod(self.namespace, pod.metadata.name)
                logger.info(f"Garbage collected synthetic pod {pod.metadata.name}")
            except Exception as e:
                errors.append(f"failed to delete old synthetic pod {pod.metadata.name}: {describe_api_error(e)}")
        if errors:
            raise CheckerRunError("; ".join(errors))

    def build_synthetic_pod(self, suffix: str) -> client.V1Pod:
        """Pod manifest for one synthetic pod."""
        return client.V1Pod(
            api_version="v1",
            kind="Pod",
            metadata=client.V1ObjectMeta(
                name=f"{self.pod_name_prefix}{suffix}",
                labels={self.config.synthetic_pod_label_key: self.name},
            ),
            spec=client.V1PodSpec(
                containers=[
                    client.V1Container(
                        name="synthetic",
                        image=SYNTHETIC_POD_IMAGE,
                        ports=[client.V1ContainerPort(container_port=SYNTHETIC_POD_PORT, protocol="TCP")],
                    ),
                ],
                tolerations=[
                    client.V1Toleration(key="node-role.kubernetes.io/master", effect="NoSchedule"),
                    client.V1Toleration(key="CriticalAddonsOnly", operator="Exists"),
                ],
                affinity=client.V1Affinity(
                    node_affinity=client.V1NodeAffinity(
                        required_during_scheduling_ignored_during_execution=client.V1NodeSelector(
                            node_selector_terms=[
                                client.V1NodeSelectorTerm(match_expressions=[
                                    client.V1NodeSelectorRequirement(
                                        key="type", operator="NotIn", values=["virtual-kubelet"],
                                    ),
                                    client.V1NodeSelectorRequirement(
                                        key="kubernetes.io/os", operator="In", values=["linux"],
                                    ),
                                ]),
                            ],
                        ),
                    ),
                ),
            ),
        )

    def _delete_pod(self, pod_name: str) -> None:
        try:
            self.kube.delete_pod(self.namespace, pod_name)
        except Exception as e:
            logger.error(f"Failed to delete synthetic pod {pod_name}: {describe_api_error(e)}")


def creation_to_running(pod: client.V1Pod) -> Optional[float]:
    """Seconds between pod creation and its first running container, None if none runs yet."""
    if not pod.status or not pod.status.container_statuses:
        return None
    created = pod.metadata.creation_timestamp
    for status in pod.status.container_statuses:
        running = status.state.running if status.state else None
        if running is not None and running.started_at is not None and created is not None:
            return (running.started_at - created).total_seconds()
    return None


def register(registry: CheckerRegistry, kube: KubeClient) -> None:
    """Register the pod startup checker."""
    def build(cfg: CheckerConfig) -> PodStartupChecker:
        if cfg.pod_startup_config is None:
            raise CheckerBuildError(f"podStartupConfig is required for podStartup checker {cfg.name!r}")
        return PodStartupChecker(cfg.name, kube=kube, config=cfg.pod_startup_config, timeout=cfg.timeout)

    registry.register(CheckerType.POD_STARTUP, build)
