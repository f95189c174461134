"""
Pod Network Checker Package

Pod-to-pod and cluster DNS service reachability check.
"""

from dataclasses import replace

from ...kube import KubeClient
from ..config import CheckerConfig, CheckerType, PodNetworkConfig
from ..registry import CheckerRegistry
from .checker import PodNetworkChecker
from .evaluator import (
    ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE,
    ERROR_CODE_COMPLETE_NETWORK_FAILURE,
    ERROR_CODE_INSUFFICIENT_PEERS,
    ERROR_CODE_POD_CONNECTIVITY_FAILURE,
    evaluate_results,
)
from .pinger import DNSPinger, DNSPingError


def register(registry: CheckerRegistry, kube: KubeClient, node_name: str = "") -> None:
    """
    Register the pod network checker.

    Args:
        registry: Registry to install the builder into
        kube: Kubernetes client shared by built checkers
        node_name: Node under test when the config does not name one
    """
    def build(cfg: CheckerConfig) -> PodNetworkChecker:
        pn_config = cfg.pod_network_config or PodNetworkConfig()
        if not pn_config.node_name and node_name:
            pn_config = replace(pn_config, node_name=node_name)
        return PodNetworkChecker(cfg.name, kube=kube, config=pn_config)

    registry.register(CheckerType.POD_NETWORK, build)


__all__ = [
    "PodNetworkChecker",
    "DNSPinger",
    "DNSPingError",
    "evaluate_results",
    "register",
    "ERROR_CODE_INSUFFICIENT_PEERS",
    "ERROR_CODE_POD_CONNECTIVITY_FAILURE",
    "ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE",
    "ERROR_CODE_COMPLETE_NETWORK_FAILURE",
]
