"""
Prometheus metrics collection.

One counter tracks every scheduled checker run, labeled by checker,
status and error code.
"""

import logging

from prometheus_client import CollectorRegistry, Counter, REGISTRY, start_http_server

logger = logging.getLogger(__name__)

HEALTHY_STATUS = "Healthy"
UNHEALTHY_STATUS = "Unhealthy"
UNKNOWN_STATUS = "Unknown"

# error_code is always set; healthy and unknown runs use their status name
HEALTHY_CODE = HEALTHY_STATUS
UNKNOWN_CODE = UNKNOWN_STATUS

CHECKER_RESULT_LABELS = ["checker_type", "checker_name", "status", "error_code"]


def create_checker_result_counter(registry: CollectorRegistry = REGISTRY) -> Counter:
    """Create the checker result counter in the given collector registry."""
    return Counter(
        "cluster_health_monitor_checker_result_total",
        "Total number of checker runs, labeled by status and code",
        CHECKER_RESULT_LABELS,
        registry=registry,
    )


checker_result_total = create_checker_result_counter()


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """
    Expose /metrics on a background thread.

    Raises:
        OSError: If the port is already in use
    """
    try:
        start_http_server(port, addr=addr)
    except OSError as e:
        logger.error(f"Failed to bind metrics server to {addr}:{port}: {e}")
        raise
    logger.info(f"Metrics server listening on {addr}:{port}")
