"""
Pod Network Checker

Validates pod-to-pod network connectivity and cluster DNS service
reachability by pinging CoreDNS pods and the CoreDNS service with DNS
queries.
"""

import logging
from typing import List, Optional

from kubernetes import client

from ...kube import KubeClient, describe_api_error, is_pod_ready
from ..base import Checker, RunContext
from ..config import CheckerType, PodNetworkConfig
from ..errors import CheckerRunError
from ..models import Result, unknown
from .evaluator import ERROR_CODE_INSUFFICIENT_PEERS, evaluate_results
from .pinger import DNSPinger, DNSPingError

logger = logging.getLogger(__name__)


class PodNetworkChecker(Checker):
    """
    Pod network connectivity checker.

    Pings every eligible CoreDNS pod (running, ready, with an IP and not
    on the node under test) and the CoreDNS service ClusterIP, then
    classifies the outcome with ``evaluate_results``.

    Example:
        checker = PodNetworkChecker(
            "pod-network",
            kube=KubeClient(),
            config=PodNetworkConfig(node_name="aks-node-1"),
        )
        result = checker.run(RunContext.with_timeout(30))
    """

    checker_type = CheckerType.POD_NETWORK.value

    def __init__(
        self,
        name: str,
        kube: KubeClient,
        config: Optional[PodNetworkConfig] = None,
        pinger: Optional[DNSPinger] = None,
    ):
        """
        Initialize the checker.

        Args:
            name: Checker name
            kube: Kubernetes client used for pod and service discovery
            config: Checker parameters
            pinger: DNS pinger (created if None)
        """
        super().__init__(name)
        self.kube = kube
        self.config = config or PodNetworkConfig()
        self.pinger = pinger or DNSPinger()

    @property
    def node_name(self) -> str:
        return self.config.node_name

    def run(self, ctx: RunContext) -> Result:
        """Execute the pod network check."""
        logger.info(f"Starting pod network check {self.name} (node={self.node_name or '-'})")
        ctx.check()

        pods = self.get_eligible_pods()
        if not pods:
            logger.info(f"No eligible CoreDNS pods found for {self.name}")
            return unknown(
                "No CoreDNS pods available for pod-to-pod network checking",
                code=ERROR_CODE_INSUFFICIENT_PEERS,
            )
        logger.info(f"Found {len(pods)} eligible CoreDNS pods for {self.name}")

        service_ip = self.get_service_ip()

        success_count = self.check_pod_connectivity(ctx, pods)
        service_error = self.check_service_connectivity(ctx, service_ip)
        return evaluate_results(len(pods), success_count, service_error)

    def get_eligible_pods(self) -> List[client.V1Pod]:
        """
        List CoreDNS pods usable as peers.

        Raises:
            CheckerRunError: If the pods cannot be listed
        """
        try:
            pods = self.kube.list_pods(self.config.namespace, self.config.label_selector)
        except Exception as e:
            logger.error(f"Failed to list CoreDNS pods: {describe_api_error(e)}")
            raise CheckerRunError(f"failed to list CoreDNS pods: {describe_api_error(e)}") from e

        eligible = []
        for pod in pods:
            pod_name = pod.metadata.name
            if self.node_name and pod.spec and pod.spec.node_name == self.node_name:
                logger.debug(f"Skipping CoreDNS pod {pod_name} on target node")
                continue
            phase = pod.status.phase if pod.status else None
            if phase != "Running":
                logger.debug(f"Skipping non-running CoreDNS pod {pod_name} (phase={phase})")
                continue
            if not is_pod_ready(pod):
                logger.debug(f"Skipping non-ready CoreDNS pod {pod_name}")
                continue
            if not pod.status.pod_ip:
                logger.debug(f"Skipping CoreDNS pod {pod_name} without IP")
                continue
            eligible.append(pod)
        return eligible

    def get_service_ip(self) -> str:
        """
        Look up the CoreDNS service ClusterIP.

        Raises:
            CheckerRunError: If the service cannot be read or has no ClusterIP
        """
        try:
            service = self.kube.get_service(self.config.namespace, self.config.service_name)
        except Exception as e:
            logger.error(f"Failed to get {self.config.service_name} service: {describe_api_error(e)}")
            raise CheckerRunError(
                f"failed to get {self.config.service_name} service: {describe_api_error(e)}"
            ) from e

        cluster_ip = service.spec.cluster_ip if service.spec else None
        if not cluster_ip or cluster_ip == "None":
            raise CheckerRunError(f"service {self.config.service_name} has no ClusterIP")
        logger.debug(f"Cluster DNS service IP: {cluster_ip}")
        return cluster_ip

    def check_pod_connectivity(self, ctx: RunContext, pods: List[client.V1Pod]) -> int:
        """Ping every pod; return how many answered."""
        success_count = 0
        for pod in pods:
            ctx.check()
            ip = pod.status.pod_ip
            try:
                self.pinger.ping(ip, self.config.domain, self._ping_timeout(ctx))
            except DNSPingError as e:
                logger.info(f"DNS connectivity to CoreDNS pod {pod.metadata.name} ({ip}) failed: {e}")
                continue
            logger.debug(f"DNS connectivity to CoreDNS pod {pod.metadata.name} ({ip}) succeeded")
            success_count += 1
        return success_count

    def check_service_connectivity(self, ctx: RunContext, service_ip: str) -> Optional[DNSPingError]:
        """Ping the CoreDNS service; return the error, or None if it answered."""
        ctx.check()
        try:
            self.pinger.ping(service_ip, self.config.domain, self._ping_timeout(ctx))
        except DNSPingError as e:
            logger.info(f"DNS connectivity to cluster DNS service {service_ip} failed: {e}")
            return e
        logger.debug(f"DNS connectivity to cluster DNS service {service_ip} succeeded")
        return None

    def _ping_timeout(self, ctx: RunContext) -> float:
        return ctx.remaining(default=self.config.query_timeout)
