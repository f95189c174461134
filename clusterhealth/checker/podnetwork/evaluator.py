"""
Pod Network Result Evaluation

Turns partial connectivity signals into a single verdict.
"""

import logging
from typing import Optional

from ..models import Result, healthy, unhealthy, unknown

logger = logging.getLogger(__name__)

# Error codes for pod network results
ERROR_CODE_INSUFFICIENT_PEERS = "InsufficientPeers"
ERROR_CODE_POD_CONNECTIVITY_FAILURE = "PodConnectivityFailure"
ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE = "ClusterDNSServiceFailure"
ERROR_CODE_COMPLETE_NETWORK_FAILURE = "CompleteNetworkFailure"


def evaluate_results(
    peer_count: int,
    peer_success_count: int,
    service_error: Optional[Exception] = None,
) -> Result:
    """
    Classify pod network connectivity.

    Rules, first match wins:
        1. one or no peer            -> Unknown (inconclusive)
        2. service ok, peers ok      -> Healthy
        3. service ok, no peer ok    -> Unhealthy (pod connectivity)
        4. service down, peers ok    -> Unhealthy (cluster DNS service)
        5. service down, no peer ok  -> Unhealthy (complete failure)

    Args:
        peer_count: Number of eligible CoreDNS pods probed
        peer_success_count: How many of them answered
        service_error: Error from the cluster DNS service ping, None if it answered

    Returns:
        Result verdict
    """
    service_ok = service_error is None
    logger.info(
        f"Evaluating pod network results: peers={peer_count} "
        f"peer_success={peer_success_count} cluster_dns_ok={service_ok}"
    )

    if peer_count <= 1:
        return unknown(
            "Insufficient CoreDNS pods for conclusive pod-to-pod network testing "
            f"({peer_count} eligible)",
            code=ERROR_CODE_INSUFFICIENT_PEERS,
        )

    if service_ok and peer_success_count > 0:
        return healthy()

    details = []
    if not service_ok:
        details.append(f"Cluster DNS service failed: {service_error}")
    if peer_success_count == 0:
        details.append(f"All {peer_count} pod-to-pod checks failed")
    elif peer_success_count < peer_count:
        details.append(f"{peer_count - peer_success_count} of {peer_count} pod-to-pod checks failed")
    message = "; ".join(details)

    if service_ok:
        code = ERROR_CODE_POD_CONNECTIVITY_FAILURE
    elif peer_success_count > 0:
        code = ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE
    else:
        code = ERROR_CODE_COMPLETE_NETWORK_FAILURE

    logger.info(f"Pod network check unhealthy: {code}")
    return unhealthy(code, message)
