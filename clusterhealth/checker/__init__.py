"""
Checker Module

Checker interface, result model, configuration and the registry that
builds checkers from configuration.
"""

from .base import Checker, RunContext
from .config import (
    CheckerConfig, CheckerType, DNSConfig, MonitorConfig, PodNetworkConfig, PodStartupConfig,
)
from .errors import (
    CheckerBuildError,
    CheckerRunError,
    ClusterHealthError,
    ConfigError,
    DeadlineExceeded,
    RunCancelled,
    StatusPersistError,
    UnknownCheckerTypeError,
)
from .models import ErrorDetail, Result, Status, healthy, unhealthy, unknown
from .registry import CheckerRegistry


def default_registry(kube=None, node_name: str = "") -> CheckerRegistry:
    """
    Build a registry with every built-in checker registered.

    Args:
        kube: KubeClient shared by the built checkers
        node_name: Node under test for node scoped checkers
    """
    from . import dnscheck, podnetwork, podstartup

    registry = CheckerRegistry()
    dnscheck.register(registry, kube=kube)
    podnetwork.register(registry, kube=kube, node_name=node_name)
    podstartup.register(registry, kube=kube)
    return registry


__all__ = [
    "Checker",
    "RunContext",
    "CheckerConfig",
    "CheckerType",
    "DNSConfig",
    "MonitorConfig",
    "PodNetworkConfig",
    "PodStartupConfig",
    "CheckerRegistry",
    "default_registry",
    "Result",
    "Status",
    "ErrorDetail",
    "healthy",
    "unhealthy",
    "unknown",
    "ClusterHealthError",
    "ConfigError",
    "CheckerBuildError",
    "UnknownCheckerTypeError",
    "CheckerRunError",
    "DeadlineExceeded",
    "RunCancelled",
    "StatusPersistError",
]
