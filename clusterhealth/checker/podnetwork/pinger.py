"""
DNS Pinger

Reachability probe that sends a DNS query and accepts any reply.
"""

import logging

import dns.exception
import dns.message
import dns.query
import dns.rdatatype

from ..errors import CheckerRunError

logger = logging.getLogger(__name__)

DNS_PORT = 53


class DNSPingError(CheckerRunError):
    """No DNS response was received from the target."""


def split_host_port(address: str, default_port: int = DNS_PORT):
    """
    Split ``host[:port]`` into its parts.

    Bracketed IPv6 (``[::1]:53``) is supported; a bare IPv6 address is
    returned with the default port.
    """
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
        return host, int(port) if port else default_port
    if address.count(":") == 1:
        host, port = address.split(":")
        return host, int(port)
    return address, default_port


class DNSPinger:
    """
    Sends a single UDP A query and treats any DNS response as success.

    NXDOMAIN, SERVFAIL and REFUSED all prove the path to the server works;
    only a timeout, a socket error or an unparsable reply is a failure.

    Example:
        pinger = DNSPinger()
        pinger.ping("10.0.0.10", "kubernetes.default.svc.cluster.local", 5.0)
    """

    def ping(self, server: str, domain: str, timeout: float) -> None:
        """
        Ping a DNS server.

        Args:
            server: Server address, optionally with port
            domain: Domain to query (the answer is ignored)
            timeout: Seconds to wait for a reply

        Raises:
            DNSPingError: If no valid response was received
        """
        host, port = split_host_port(server)
        query = dns.message.make_query(domain, dns.rdatatype.A)

        try:
            response = dns.query.udp(query, host, timeout=timeout, port=port)
        except dns.exception.Timeout as e:
            raise DNSPingError(f"no DNS response from {server}: timed out after {timeout}s") from e
        except (OSError, dns.exception.DNSException) as e:
            raise DNSPingError(f"no DNS response from {server}: {e}") from e

        if response is None:
            raise DNSPingError(f"no DNS response received from {server} (nil response)")

        logger.debug(f"DNS response from {server}: rcode={response.rcode()}")
