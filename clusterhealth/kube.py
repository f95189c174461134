"""
Cluster Health Monitor - Kubernetes client access

Thin wrapper over the official kubernetes client covering the calls the
checkers and the node runner need.
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)


def load_kube_config(kubeconfig_path: Optional[str] = None) -> None:
    """
    Load cluster credentials.

    Uses the given kubeconfig if provided, otherwise tries the in-cluster
    service account first and falls back to the default kubeconfig.

    Raises:
        RuntimeError: If no configuration could be loaded
    """
    try:
        if kubeconfig_path:
            config.load_kube_config(config_file=kubeconfig_path)
        else:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                config.load_kube_config()
    except Exception as e:
        raise RuntimeError(f"Failed to load Kubernetes config: {e}") from e


def is_pod_ready(pod: client.V1Pod) -> bool:
    """Check whether a pod has the Ready condition set to True."""
    if not pod.status:
        return False
    for condition in pod.status.conditions or []:
        if condition.type == "Ready" and condition.status == "True":
            return True
    return False


class KubeClient:
    """
    Kubernetes API access used by the health checkers.

    Example:
        load_kube_config()
        kube = KubeClient()

        pods = kube.list_pods("kube-system", "k8s-app=kube-dns")
        svc = kube.get_service("kube-system", "kube-dns")
    """

    def __init__(
        self,
        core_v1: Optional[client.CoreV1Api] = None,
        custom_objects: Optional[client.CustomObjectsApi] = None,
    ):
        """
        Initialize the client.

        Args:
            core_v1: CoreV1Api instance (created if None)
            custom_objects: CustomObjectsApi instance (created if None)
        """
        self.core_v1 = core_v1 or client.CoreV1Api()
        self.custom_objects = custom_objects or client.CustomObjectsApi()

    def list_pods(self, namespace: str, label_selector: Optional[str] = None) -> List[client.V1Pod]:
        """
        List pods in a namespace.

        Raises:
            ApiException: If the API call fails
        """
        pods = self.core_v1.list_namespaced_pod(
            namespace=namespace,
            label_selector=label_selector,
        )
        return list(pods.items or [])

    def get_service(self, namespace: str, name: str) -> client.V1Service:
        """
        Get a single service.

        Raises:
            ApiException: If the API call fails
        """
        return self.core_v1.read_namespaced_service(name=name, namespace=namespace)

    def read_pod(self, namespace: str, name: str) -> client.V1Pod:
        return self.core_v1.read_namespaced_pod(name=name, namespace=namespace)

    def create_pod(self, namespace: str, body: client.V1Pod) -> client.V1Pod:
        """
        Create a pod.

        Raises:
            ApiException: If the API call fails
        """
        return self.core_v1.create_namespaced_pod(namespace=namespace, body=body)

    def delete_pod(self, namespace: str, name: str) -> bool:
        """
        Delete a pod.

        Returns:
            False if the pod was already gone

        Raises:
            ApiException: For any failure other than 404
        """
        try:
            self.core_v1.delete_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def list_events(self, namespace: str, field_selector: Optional[str] = None) -> List[client.CoreV1Event]:
        """List events in a namespace, optionally filtered by a field selector."""
        events = self.core_v1.list_namespaced_event(
            namespace=namespace,
            field_selector=field_selector,
        )
        return list(events.items or [])

    def get_cluster_custom_object(
        self, group: str, version: str, plural: str, name: str
    ) -> Dict[str, Any]:
        """Read a cluster-scoped custom resource."""
        return self.custom_objects.get_cluster_custom_object(
            group=group, version=version, plural=plural, name=name,
        )

    def replace_cluster_custom_object_status(
        self, group: str, version: str, plural: str, name: str, body: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Replace the status subresource of a cluster-scoped custom resource."""
        return self.custom_objects.replace_cluster_custom_object_status(
            group=group, version=version, plural=plural, name=name, body=body,
        )


def describe_api_error(error: Exception) -> str:
    """Short description of a kubernetes API error for log and result messages."""
    if isinstance(error, ApiException):
        return f"Kubernetes API error: {error.status} {error.reason}"
    return str(error)
