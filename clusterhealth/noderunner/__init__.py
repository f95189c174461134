"""
Node Checker Runner

Runs node-scoped checkers once with retries and persists the aggregated
result on the CheckNodeHealth custom resource.
"""

from .models import AggregatedStatus, CheckResultSnapshot
from .runner import NodeCheckerRunner, default_node_checkers
from .store import InMemoryStatusStore, KubernetesStatusStore, StatusStore, read_node_name

__all__ = [
    "AggregatedStatus",
    "CheckResultSnapshot",
    "NodeCheckerRunner",
    "default_node_checkers",
    "StatusStore",
    "KubernetesStatusStore",
    "InMemoryStatusStore",
    "read_node_name",
]
