"""
Node Status Store

Reads and writes the aggregated status of a CheckNodeHealth resource.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..kube import KubeClient, describe_api_error
from ..checker.errors import StatusPersistError
from .models import AggregatedStatus

logger = logging.getLogger(__name__)

CHM_GROUP = "chm.azure.com"
CHM_VERSION = "v1alpha1"
CHECK_NODE_HEALTH_PLURAL = "checknodehealths"


class StatusStore(ABC):
    """Persistence for AggregatedStatus, keyed by resource name."""

    @abstractmethod
    def get(self, name: str) -> AggregatedStatus:
        """
        Fetch the current status.

        Raises:
            StatusPersistError: If the status cannot be read
        """

    @abstractmethod
    def update(self, name: str, status: AggregatedStatus) -> None:
        """
        Write the status back.

        Raises:
            StatusPersistError: If the write fails (including conflicts)
        """


class KubernetesStatusStore(StatusStore):
    """
    Stores the status on the cluster-scoped CheckNodeHealth resource.

    Writes go through the status subresource with the resourceVersion read
    by ``get``, so a concurrent writer surfaces as a conflict error.

    Example:
        store = KubernetesStatusStore(KubeClient())
        status = store.get("node-check-abc")
        status.record("pod-network", healthy())
        store.update("node-check-abc", status)
    """

    def __init__(self, kube: KubeClient):
        self.kube = kube

    def get(self, name: str) -> AggregatedStatus:
        try:
            resource = self.kube.get_cluster_custom_object(
                CHM_GROUP, CHM_VERSION, CHECK_NODE_HEALTH_PLURAL, name,
            )
        except Exception as e:
            raise StatusPersistError(
                f"failed to get CheckNodeHealth {name!r}: {describe_api_error(e)}"
            ) from e
        return AggregatedStatus.from_resource(resource)

    def update(self, name: str, status: AggregatedStatus) -> None:
        body = copy.deepcopy(status.resource) if status.resource else {
            "apiVersion": f"{CHM_GROUP}/{CHM_VERSION}",
            "kind": "CheckNodeHealth",
            "metadata": {"name": name},
            "spec": {"nodeRef": {"name": status.node_ref}},
        }
        body["status"] = status.to_status_dict()

        try:
            updated = self.kube.replace_cluster_custom_object_status(
                CHM_GROUP, CHM_VERSION, CHECK_NODE_HEALTH_PLURAL, name, body,
            )
        except Exception as e:
            raise StatusPersistError(
                f"failed to update CheckNodeHealth {name!r} status: {describe_api_error(e)}"
            ) from e
        status.resource = updated
        logger.debug(f"Updated CheckNodeHealth {name} status ({len(status.results)} results)")


class InMemoryStatusStore(StatusStore):
    """
    Process-local status store for dry runs.

    Example:
        store = InMemoryStatusStore({"node-check": {"spec": {"nodeRef": {"name": "node-1"}}}})
    """

    def __init__(self, resources: Optional[Dict[str, Dict[str, Any]]] = None):
        self._resources: Dict[str, Dict[str, Any]] = copy.deepcopy(resources or {})
        self._lock = threading.Lock()

    def get(self, name: str) -> AggregatedStatus:
        with self._lock:
            resource = self._resources.get(name)
            if resource is None:
                raise StatusPersistError(f"CheckNodeHealth {name!r} not found")
            return AggregatedStatus.from_resource(copy.deepcopy(resource))

    def update(self, name: str, status: AggregatedStatus) -> None:
        with self._lock:
            if name not in self._resources:
                raise StatusPersistError(f"CheckNodeHealth {name!r} not found")
            self._resources[name]["status"] = status.to_status_dict()

    def resource(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            resource = self._resources.get(name)
            return copy.deepcopy(resource) if resource else None


def read_node_name(store: StatusStore, name: str) -> str:
    """
    Read the node a CheckNodeHealth resource refers to.

    Raises:
        StatusPersistError: If the resource cannot be read
        ValueError: If spec.nodeRef.name is empty
    """
    status = store.get(name)
    if not status.node_ref:
        raise ValueError(f"nodeRef.name is empty in CheckNodeHealth {name!r}")
    return status.node_ref
