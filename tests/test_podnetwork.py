"""
Tests for the pod network checker
"""

import threading
from types import SimpleNamespace
from unittest.mock import Mock, patch

import dns.exception
import dns.message
import dns.rcode
import pytest
from kubernetes.client.rest import ApiException

from clusterhealth.checker import CheckerRunError, RunCancelled, RunContext, Status
from clusterhealth.checker.config import PodNetworkConfig
from clusterhealth.checker.podnetwork import (
    ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE,
    ERROR_CODE_COMPLETE_NETWORK_FAILURE,
    ERROR_CODE_INSUFFICIENT_PEERS,
    ERROR_CODE_POD_CONNECTIVITY_FAILURE,
    DNSPinger,
    DNSPingError,
    PodNetworkChecker,
    evaluate_results,
)
from clusterhealth.checker.podnetwork.pinger import split_host_port


SERVICE_IP = "10.0.0.10"


def make_pod(name, ip, node="node-2", phase="Running", ready=True):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        spec=SimpleNamespace(node_name=node),
        status=SimpleNamespace(
            phase=phase,
            pod_ip=ip,
            conditions=[SimpleNamespace(type="Ready", status="True" if ready else "False")],
        ),
    )


def make_service(cluster_ip=SERVICE_IP):
    return SimpleNamespace(spec=SimpleNamespace(cluster_ip=cluster_ip))


class FakePinger:
    """Pinger failing for a fixed set of addresses."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def ping(self, server, domain, timeout):
        self.calls.append((server, domain, timeout))
        if server in self.failing:
            raise DNSPingError(f"no DNS response from {server}")


class TestEvaluateResults:
    """Tests for evaluate_results."""

    @pytest.mark.parametrize("peers", [0, 1])
    def test_insufficient_peers(self, peers):
        """Test one or no peer is always inconclusive."""
        for service_error in (None, DNSPingError("down")):
            for successes in range(peers + 1):
                result = evaluate_results(peers, successes, service_error)

                assert result.status == Status.UNKNOWN
                assert result.code == ERROR_CODE_INSUFFICIENT_PEERS

    def test_healthy(self):
        result = evaluate_results(3, 1, None)

        assert result.status == Status.HEALTHY
        assert result.detail is None

    def test_pod_connectivity_failure(self):
        result = evaluate_results(3, 0, None)

        assert result.status == Status.UNHEALTHY
        assert result.code == ERROR_CODE_POD_CONNECTIVITY_FAILURE
        assert "All 3 pod-to-pod checks failed" in result.message

    def test_cluster_dns_service_failure(self):
        result = evaluate_results(3, 2, DNSPingError("timed out"))

        assert result.status == Status.UNHEALTHY
        assert result.code == ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE
        assert "Cluster DNS service failed: timed out" in result.message
        assert "1 of 3 pod-to-pod checks failed" in result.message

    def test_complete_network_failure(self):
        result = evaluate_results(2, 0, DNSPingError("timed out"))

        assert result.status == Status.UNHEALTHY
        assert result.code == ERROR_CODE_COMPLETE_NETWORK_FAILURE
        assert "Cluster DNS service failed" in result.message
        assert "All 2 pod-to-pod checks failed" in result.message

    def test_unhealthy_always_carries_detail(self):
        """Test every non-healthy verdict has a code and message."""
        for peers in range(0, 5):
            for successes in range(peers + 1):
                for service_error in (None, DNSPingError("down")):
                    result = evaluate_results(peers, successes, service_error)
                    if result.status != Status.HEALTHY:
                        assert result.detail is not None
                        assert result.code
                        assert result.message


class TestPodNetworkChecker:
    """Tests for PodNetworkChecker."""

    @pytest.fixture
    def mock_kube(self):
        kube = Mock()
        kube.list_pods.return_value = [
            make_pod("coredns-a", "10.1.0.1"),
            make_pod("coredns-b", "10.1.0.2"),
            make_pod("coredns-c", "10.1.0.3"),
        ]
        kube.get_service.return_value = make_service()
        return kube

    def _checker(self, kube, pinger, node_name="node-1"):
        return PodNetworkChecker(
            "pod-network",
            kube=kube,
            config=PodNetworkConfig(node_name=node_name),
            pinger=pinger,
        )

    def test_all_reachable_is_healthy(self, mock_kube):
        """Test every peer and the service answering is healthy."""
        pinger = FakePinger()
        checker = self._checker(mock_kube, pinger)

        result = checker.run(RunContext())

        assert result.status == Status.HEALTHY
        assert [c[0] for c in pinger.calls] == ["10.1.0.1", "10.1.0.2", "10.1.0.3", SERVICE_IP]
        mock_kube.list_pods.assert_called_once_with("kube-system", "k8s-app=kube-dns")
        mock_kube.get_service.assert_called_once_with("kube-system", "kube-dns")

    def test_service_down_peers_partial(self, mock_kube):
        """Test a down service with some peers answering is a service failure."""
        checker = self._checker(mock_kube, FakePinger(failing=[SERVICE_IP, "10.1.0.2"]))

        result = checker.run(RunContext())

        assert result.status == Status.UNHEALTHY
        assert result.code == ERROR_CODE_CLUSTER_DNS_SERVICE_FAILURE

    def test_single_eligible_pod_is_unknown(self, mock_kube):
        """Test one eligible peer is inconclusive even when the service answers."""
        mock_kube.list_pods.return_value = [
            make_pod("coredns-a", "10.1.0.1"),
            make_pod("coredns-b", "10.1.0.2", node="node-1"),
        ]
        checker = self._checker(mock_kube, FakePinger())

        result = checker.run(RunContext())

        assert result.status == Status.UNKNOWN
        assert result.code == ERROR_CODE_INSUFFICIENT_PEERS

    def test_no_pods_is_unknown_without_pinging(self, mock_kube):
        mock_kube.list_pods.return_value = []
        pinger = FakePinger()
        checker = self._checker(mock_kube, pinger)

        result = checker.run(RunContext())

        assert result.status == Status.UNKNOWN
        assert result.code == ERROR_CODE_INSUFFICIENT_PEERS
        assert pinger.calls == []
        mock_kube.get_service.assert_not_called()

    def test_eligible_pod_filtering(self, mock_kube):
        """Test pods on the target node, not running, not ready or without IP are skipped."""
        mock_kube.list_pods.return_value = [
            make_pod("on-node", "10.1.0.1", node="node-1"),
            make_pod("pending", "10.1.0.2", phase="Pending"),
            make_pod("not-ready", "10.1.0.3", ready=False),
            make_pod("no-ip", None),
            make_pod("good-a", "10.1.0.5"),
            make_pod("good-b", "10.1.0.6"),
        ]
        checker = self._checker(mock_kube, FakePinger())

        pods = checker.get_eligible_pods()

        assert [p.metadata.name for p in pods] == ["good-a", "good-b"]

    def test_pods_on_any_node_used_without_node_name(self, mock_kube):
        mock_kube.list_pods.return_value = [
            make_pod("a", "10.1.0.1", node="node-1"),
            make_pod("b", "10.1.0.2", node="node-1"),
        ]
        checker = self._checker(mock_kube, FakePinger(), node_name="")

        assert len(checker.get_eligible_pods()) == 2

    def test_list_pods_failure_raises(self, mock_kube):
        mock_kube.list_pods.side_effect = ApiException(status=403, reason="Forbidden")
        checker = self._checker(mock_kube, FakePinger())

        with pytest.raises(CheckerRunError, match="403 Forbidden"):
            checker.run(RunContext())

    def test_service_lookup_failure_raises(self, mock_kube):
        mock_kube.get_service.side_effect = ApiException(status=404, reason="Not Found")
        pinger = FakePinger()
        checker = self._checker(mock_kube, pinger)

        with pytest.raises(CheckerRunError):
            checker.run(RunContext())
        assert pinger.calls == []

    def test_service_without_cluster_ip_raises(self, mock_kube):
        mock_kube.get_service.return_value = make_service(cluster_ip="None")
        checker = self._checker(mock_kube, FakePinger())

        with pytest.raises(CheckerRunError, match="no ClusterIP"):
            checker.run(RunContext())

    def test_ping_timeout_bounded_by_query_timeout(self, mock_kube):
        pinger = FakePinger()
        checker = self._checker(mock_kube, pinger)

        checker.run(RunContext.with_timeout(60))

        assert all(0 < timeout <= 5.0 for _, _, timeout in pinger.calls)
        assert all(domain == "kubernetes.default.svc.cluster.local" for _, domain, _ in pinger.calls)

    def test_cancelled_run_raises(self, mock_kube):
        stop = threading.Event()
        stop.set()
        checker = self._checker(mock_kube, FakePinger())

        with pytest.raises(RunCancelled):
            checker.run(RunContext(stop_event=stop))


class TestSplitHostPort:
    """Tests for split_host_port."""

    @pytest.mark.parametrize("address,expected", [
        ("10.0.0.10", ("10.0.0.10", 53)),
        ("10.0.0.10:5353", ("10.0.0.10", 5353)),
        ("[fd00::10]:53", ("fd00::10", 53)),
        ("[fd00::10]", ("fd00::10", 53)),
        ("fd00::10", ("fd00::10", 53)),
    ])
    def test_split(self, address, expected):
        assert split_host_port(address) == expected


class TestDNSPinger:
    """Tests for DNSPinger."""

    def test_any_response_is_success(self):
        """Test an NXDOMAIN reply still proves reachability."""
        def reply(query, host, timeout, port):
            response = dns.message.make_response(query)
            response.set_rcode(dns.rcode.NXDOMAIN)
            return response

        with patch("dns.query.udp", side_effect=reply) as mock_udp:
            DNSPinger().ping("10.0.0.10", "example.invalid", 1.0)

        args, kwargs = mock_udp.call_args
        assert args[1] == "10.0.0.10"
        assert kwargs == {"timeout": 1.0, "port": 53}

    def test_timeout_raises(self):
        with patch("dns.query.udp", side_effect=dns.exception.Timeout):
            with pytest.raises(DNSPingError, match="timed out"):
                DNSPinger().ping("10.0.0.10", "example.com", 1.0)

    def test_socket_error_raises(self):
        with patch("dns.query.udp", side_effect=OSError("Network is unreachable")):
            with pytest.raises(DNSPingError, match="Network is unreachable"):
                DNSPinger().ping("10.0.0.10:5353", "example.com", 1.0)

    def test_nil_response_raises(self):
        with patch("dns.query.udp", return_value=None):
            with pytest.raises(DNSPingError, match="nil response"):
                DNSPinger().ping("10.0.0.10", "example.com", 1.0)

    def test_ping_error_is_run_error(self):
        assert issubclass(DNSPingError, CheckerRunError)
