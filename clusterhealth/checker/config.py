"""
Checker Configuration Models

Typed configuration for the checkers the monitor schedules. Parsing and
validation live in ``loader.py``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class CheckerType(Enum):
    """Registered checker kinds."""
    DNS = "dns"
    POD_NETWORK = "podNetwork"
    POD_STARTUP = "podStartup"


class DNSCheckTarget(Enum):
    """Which resolver a DNS checker queries."""
    CORE_DNS = "CoreDNS"
    LOCAL_DNS = "LocalDNS"


@dataclass
class DNSConfig:
    """
    DNS checker parameters.

    Attributes:
        domain: Domain to resolve
        target: Resolver to query
        query_timeout: Per-query timeout in seconds
    """
    domain: str
    target: DNSCheckTarget = DNSCheckTarget.CORE_DNS
    query_timeout: float = 2.0


@dataclass
class PodNetworkConfig:
    """
    Pod network checker parameters.

    Attributes:
        node_name: Node under test; CoreDNS pods on it are excluded
        namespace: Namespace of the CoreDNS pods and service
        label_selector: Selector matching CoreDNS pods
        service_name: CoreDNS service name
        domain: Domain used for the reachability queries
        query_timeout: Per-ping timeout in seconds
    """
    node_name: str = ""
    namespace: str = "kube-system"
    label_selector: str = "k8s-app=kube-dns"
    service_name: str = "kube-dns"
    domain: str = "kubernetes.default.svc.cluster.local"
    query_timeout: float = 5.0


@dataclass
class PodStartupConfig:
    """
    Pod startup checker parameters.

    Attributes:
        synthetic_pod_namespace: Namespace the synthetic pods are created in
        synthetic_pod_label_key: Label key marking synthetic pods (value is the checker name)
        synthetic_pod_startup_timeout: Seconds a healthy pod may take to start, image pull excluded
        tcp_timeout: Seconds allowed for the TCP connection to the synthetic pod
        max_synthetic_pods: Synthetic pods allowed to exist at once
    """
    synthetic_pod_namespace: str = "default"
    synthetic_pod_label_key: str = "cluster-health-monitor/checker-name"
    synthetic_pod_startup_timeout: float = 5.0
    tcp_timeout: float = 1.0
    max_synthetic_pods: int = 3


@dataclass
class CheckerConfig:
    """
    Configuration for one checker.

    Attributes:
        name: Unique, DNS-label-safe checker name
        type: Checker kind
        interval: Seconds between runs (0 = run once)
        timeout: Seconds allowed per run (0 = unbounded)
        dns_config: Required when type is DNS
        pod_network_config: Optional parameters when type is podNetwork
        pod_startup_config: Required when type is podStartup
    """
    name: str
    type: CheckerType
    interval: float = 0.0
    timeout: float = 0.0
    dns_config: Optional[DNSConfig] = None
    pod_network_config: Optional[PodNetworkConfig] = None
    pod_startup_config: Optional[PodStartupConfig] = None


@dataclass
class MonitorConfig:
    """Top level monitor configuration."""
    checkers: List[CheckerConfig] = field(default_factory=list)

    def names(self) -> List[str]:
        return [c.name for c in self.checkers]
