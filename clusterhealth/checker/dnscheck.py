"""
DNS Checker

Resolves a configured domain against the CoreDNS service or the node's
local resolver.
"""

import logging
from typing import Callable, List, Optional

import dns.exception
import dns.resolver

from ..kube import KubeClient, describe_api_error
from .base import Checker, RunContext
from .config import CheckerConfig, CheckerType, DNSCheckTarget, DNSConfig
from .errors import CheckerBuildError, CheckerRunError
from .models import Result, healthy, unhealthy
from .registry import CheckerRegistry

logger = logging.getLogger(__name__)

COREDNS_NAMESPACE = "kube-system"
COREDNS_SERVICE_NAME = "kube-dns"
RESOLV_CONF = "/etc/resolv.conf"

ERROR_CODE_DNS_RESOLUTION_FAILED = "DNSResolutionFailed"
ERROR_CODE_DNS_TIMEOUT = "DNSTimeout"

# (nameserver, domain, timeout) -> resolved addresses
Resolve = Callable[[str, str, float], List[str]]


def resolve_with(nameserver: str, domain: str, timeout: float) -> List[str]:
    """Resolve A records for a domain using a single nameserver."""
    resolver = dns.resolver.Resolver(configure=False)
    resolver.nameservers = [nameserver]
    answer = resolver.resolve(domain, "A", lifetime=timeout)
    return [rr.address for rr in answer]


def local_nameserver(resolv_conf: str = RESOLV_CONF) -> str:
    """
    First nameserver configured in resolv.conf.

    Raises:
        CheckerRunError: If resolv.conf is missing or lists no nameserver
    """
    try:
        resolver = dns.resolver.Resolver(filename=resolv_conf)
    except (OSError, dns.exception.DNSException) as e:
        raise CheckerRunError(f"failed to read {resolv_conf}: {e}") from e
    if not resolver.nameservers:
        raise CheckerRunError(f"no nameserver configured in {resolv_conf}")
    return str(resolver.nameservers[0])


class DNSChecker(Checker):
    """
    DNS resolution checker.

    Example:
        checker = DNSChecker(
            "internal-dns",
            config=DNSConfig(domain="kubernetes.default.svc.cluster.local"),
            kube=KubeClient(),
        )
        result = checker.run(RunContext.with_timeout(10))
    """

    checker_type = CheckerType.DNS.value

    def __init__(
        self,
        name: str,
        config: DNSConfig,
        kube: Optional[KubeClient] = None,
        resolve: Optional[Resolve] = None,
        resolv_conf: str = RESOLV_CONF,
    ):
        super().__init__(name)
        if not config.domain:
            raise ValueError("domain is required for DNS checker")
        if config.target == DNSCheckTarget.CORE_DNS and kube is None:
            raise ValueError("a Kubernetes client is required for CoreDNS target")
        self.config = config
        self.kube = kube
        self.resolve = resolve or resolve_with
        self.resolv_conf = resolv_conf

    def run(self, ctx: RunContext) -> Result:
        """Execute the DNS check."""
        ctx.check()
        nameserver = self._nameserver()
        timeout = ctx.remaining(default=self.config.query_timeout)
        domain = self.config.domain

        try:
            addresses = self.resolve(nameserver, domain, timeout)
        except dns.resolver.NXDOMAIN:
            return unhealthy(
                ERROR_CODE_DNS_RESOLUTION_FAILED,
                f"Domain {domain} does not exist according to {nameserver}",
            )
        except dns.resolver.NoAnswer:
            return unhealthy(
                ERROR_CODE_DNS_RESOLUTION_FAILED,
                f"No A records for {domain} from {nameserver}",
            )
        except dns.exception.Timeout:
            return unhealthy(
                ERROR_CODE_DNS_TIMEOUT,
                f"DNS query for {domain} to {nameserver} timed out after {timeout}s",
            )
        except dns.exception.DNSException as e:
            return unhealthy(
                ERROR_CODE_DNS_RESOLUTION_FAILED,
                f"DNS query for {domain} to {nameserver} failed: {e}",
            )

        logger.debug(f"{self.name}: {domain} resolved to {addresses} via {nameserver}")
        return healthy()

    def _nameserver(self) -> str:
        if self.config.target == DNSCheckTarget.LOCAL_DNS:
            return local_nameserver(self.resolv_conf)

        try:
            service = self.kube.get_service(COREDNS_NAMESPACE, COREDNS_SERVICE_NAME)
        except Exception as e:
            raise CheckerRunError(f"failed to get CoreDNS service: {describe_api_error(e)}") from e
        cluster_ip = service.spec.cluster_ip if service.spec else None
        if not cluster_ip or cluster_ip == "None":
            raise CheckerRunError("CoreDNS service has no ClusterIP")
        return cluster_ip


def register(registry: CheckerRegistry, kube: Optional[KubeClient] = None) -> None:
    """Register the DNS checker."""
    def build(cfg: CheckerConfig) -> DNSChecker:
        if cfg.dns_config is None:
            raise CheckerBuildError(f"dnsConfig is required for DNS checker {cfg.name!r}")
        return DNSChecker(cfg.name, config=cfg.dns_config, kube=kube)

    registry.register(CheckerType.DNS, build)
