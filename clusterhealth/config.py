"""
Cluster Health Monitor Configuration

Process settings read from the environment. Checker definitions live in
the YAML file loaded by ``clusterhealth.checker.loader``.
"""

import os

# =============================================================================
# Checker Configuration
# =============================================================================

CONFIG_PATH = os.environ.get("CHM_CONFIG_PATH", "/etc/cluster-health-monitor/config.yaml")

# Node under test for node scoped checkers (set from the downward API)
NODE_NAME = os.environ.get("NODE_NAME", "")


# =============================================================================
# Node Checker Runner
# =============================================================================

MAX_RETRY_ATTEMPTS = int(os.environ.get("CHM_MAX_RETRY_ATTEMPTS", "3"))
RETRY_DELAY_SECONDS = float(os.environ.get("CHM_RETRY_DELAY_SECONDS", "3"))


# =============================================================================
# Metrics / Logging
# =============================================================================

METRICS_PORT = int(os.environ.get("METRICS_PORT", "9800"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


# =============================================================================
# Kubernetes
# =============================================================================

KUBECONFIG = os.environ.get("KUBECONFIG", "")


if __name__ == "__main__":
    print("Cluster Health Monitor Configuration")
    print("=" * 50)
    print(f"Config path: {CONFIG_PATH}")
    print(f"Node: {NODE_NAME or '(not set)'}")
    print(f"Retry: {MAX_RETRY_ATTEMPTS} attempts, {RETRY_DELAY_SECONDS}s delay")
    print(f"Metrics port: {METRICS_PORT}")
    print(f"Log level: {LOG_LEVEL}")
