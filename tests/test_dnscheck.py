"""
Tests for the DNS checker
"""

from types import SimpleNamespace
from unittest.mock import Mock

import dns.exception
import dns.resolver
import pytest
from kubernetes.client.rest import ApiException

from clusterhealth.checker import CheckerRunError, RunContext, Status
from clusterhealth.checker.config import DNSCheckTarget, DNSConfig
from clusterhealth.checker.dnscheck import (
    COREDNS_NAMESPACE,
    COREDNS_SERVICE_NAME,
    ERROR_CODE_DNS_RESOLUTION_FAILED,
    ERROR_CODE_DNS_TIMEOUT,
    DNSChecker,
    local_nameserver,
)

DOMAIN = "kubernetes.default.svc.cluster.local"


@pytest.fixture
def mock_kube():
    kube = Mock()
    kube.get_service.return_value = SimpleNamespace(spec=SimpleNamespace(cluster_ip="10.0.0.10"))
    return kube


def make_checker(kube, resolve, target=DNSCheckTarget.CORE_DNS, resolv_conf="/etc/resolv.conf"):
    return DNSChecker(
        "internal-dns",
        config=DNSConfig(domain=DOMAIN, target=target, query_timeout=2.0),
        kube=kube,
        resolve=resolve,
        resolv_conf=resolv_conf,
    )


class TestDNSChecker:
    """Tests for DNSChecker."""

    def test_resolution_success(self, mock_kube):
        """Test resolving via the CoreDNS service is healthy."""
        resolve = Mock(return_value=["10.0.0.1"])
        checker = make_checker(mock_kube, resolve)

        result = checker.run(RunContext())

        assert result.status == Status.HEALTHY
        mock_kube.get_service.assert_called_once_with(COREDNS_NAMESPACE, COREDNS_SERVICE_NAME)
        resolve.assert_called_once_with("10.0.0.10", DOMAIN, 2.0)

    @pytest.mark.parametrize("error,code", [
        (dns.resolver.NXDOMAIN(), ERROR_CODE_DNS_RESOLUTION_FAILED),
        (dns.resolver.NoAnswer(), ERROR_CODE_DNS_RESOLUTION_FAILED),
        (dns.resolver.NoNameservers(), ERROR_CODE_DNS_RESOLUTION_FAILED),
        (dns.exception.Timeout(), ERROR_CODE_DNS_TIMEOUT),
    ])
    def test_resolution_failures_are_unhealthy(self, mock_kube, error, code):
        checker = make_checker(mock_kube, Mock(side_effect=error))

        result = checker.run(RunContext())

        assert result.status == Status.UNHEALTHY
        assert result.code == code
        assert DOMAIN in result.message

    def test_service_lookup_failure_raises(self, mock_kube):
        """Test an API failure is a run error, not a verdict."""
        mock_kube.get_service.side_effect = ApiException(status=500, reason="Internal Server Error")
        checker = make_checker(mock_kube, Mock())

        with pytest.raises(CheckerRunError, match="failed to get CoreDNS service"):
            checker.run(RunContext())

    def test_local_dns_uses_resolv_conf(self, tmp_path):
        resolv_conf = tmp_path / "resolv.conf"
        resolv_conf.write_text("search cluster.local\nnameserver 169.254.20.10\n")
        resolve = Mock(return_value=["10.0.0.1"])
        checker = make_checker(None, resolve, target=DNSCheckTarget.LOCAL_DNS, resolv_conf=str(resolv_conf))

        result = checker.run(RunContext())

        assert result.status == Status.HEALTHY
        assert resolve.call_args[0][0] == "169.254.20.10"

    def test_query_timeout_bounded_by_deadline(self, mock_kube):
        resolve = Mock(return_value=[])
        checker = make_checker(mock_kube, resolve)

        checker.run(RunContext.with_timeout(60))

        assert 0 < resolve.call_args[0][2] <= 2.0

    def test_core_dns_requires_kube(self):
        with pytest.raises(ValueError):
            make_checker(None, Mock())

    def test_domain_required(self, mock_kube):
        with pytest.raises(ValueError):
            DNSChecker("internal-dns", config=DNSConfig(domain=""), kube=mock_kube)


class TestLocalNameserver:
    """Tests for local_nameserver."""

    def test_first_nameserver(self, tmp_path):
        path = tmp_path / "resolv.conf"
        path.write_text("nameserver 10.0.0.53\nnameserver 8.8.8.8\n")

        assert local_nameserver(str(path)) == "10.0.0.53"

    def test_missing_file(self, tmp_path):
        with pytest.raises(CheckerRunError):
            local_nameserver(str(tmp_path / "missing.conf"))
