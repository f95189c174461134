"""
Checker Config Loader

Loads and validates the monitor configuration from YAML.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .config import (
    CheckerConfig, CheckerType, DNSCheckTarget, DNSConfig,
    MonitorConfig, PodNetworkConfig, PodStartupConfig,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

MAX_CHECKERS = 20

# RFC 1123 DNS label
_DNS_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_DNS_LABEL_MAX_LEN = 63

# Kubernetes qualified name: optional DNS subdomain prefix, then a name part
_QUALIFIED_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_QUALIFIED_NAME_MAX_LEN = 63
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_DNS_SUBDOMAIN_MAX_LEN = 253

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float, None]) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) or Go style strings such as
    ``"30s"``, ``"1m30s"`` and ``"500ms"``.

    Raises:
        ValueError: If the value cannot be parsed or is negative
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if text in ("", "0"):
            return 0.0
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART_RE.finditer(text):
            if match.start() != pos:
                raise ValueError(f"invalid duration: {value!r}")
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text) or pos == 0:
            raise ValueError(f"invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {value!r}")
    return seconds


def is_dns_label(name: str) -> bool:
    """Check whether a name is a valid RFC 1123 DNS label."""
    return len(name) <= _DNS_LABEL_MAX_LEN and bool(_DNS_LABEL_RE.match(name))


def is_qualified_name(key: str) -> bool:
    """Check whether a key is a valid Kubernetes qualified name (``[prefix/]name``)."""
    prefix, slash, name = key.rpartition("/")
    if slash and not (
        prefix and len(prefix) <= _DNS_SUBDOMAIN_MAX_LEN and _DNS_SUBDOMAIN_RE.match(prefix)
    ):
        return False
    return 0 < len(name) <= _QUALIFIED_NAME_MAX_LEN and bool(_QUALIFIED_NAME_RE.match(name))


def parse_from_file(path: Union[str, Path]) -> MonitorConfig:
    """
    Load the monitor configuration from a YAML file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, 'r') as f:
            data = f.read()
    except OSError as e:
        raise ConfigError(f"failed to read config file {str(path)!r}: {e}") from e
    return parse_from_yaml(data)


def parse_from_yaml(text: str) -> MonitorConfig:
    """
    Parse and validate the monitor configuration from YAML text.

    Raises:
        ConfigError: If the YAML is malformed or validation fails
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to unmarshal yaml: {e}") from e

    if data is None:
        raise ConfigError("config is required")
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping")

    raw_checkers = data.get('checkers') or []
    if not isinstance(raw_checkers, list):
        raise ConfigError("'checkers' must be a list")

    errors: List[str] = []
    checkers: List[CheckerConfig] = []
    for index, raw in enumerate(raw_checkers):
        if not isinstance(raw, dict):
            errors.append(f"checker #{index}: entry must be a mapping")
            continue
        checker = _parse_checker(raw, errors)
        if checker:
            checkers.append(checker)

    if errors:
        raise ConfigError("config validation failed", errors)

    config = MonitorConfig(checkers=checkers)
    validate(config)
    logger.info(f"Loaded {len(config.checkers)} checker configs")
    return config


def validate(config: MonitorConfig) -> None:
    """
    Validate a monitor configuration.

    All problems are collected and reported in a single ConfigError.
    """
    if not config.checkers:
        raise ConfigError("at least one checker is required")

    errors: List[str] = []
    if len(config.checkers) > MAX_CHECKERS:
        errors.append(f"at most {MAX_CHECKERS} checkers are allowed, got {len(config.checkers)}")

    seen = set()
    for checker in config.checkers:
        for problem in _validate_checker(checker):
            errors.append(f"checker {checker.name!r}: {problem}")
        if checker.name in seen:
            errors.append(f"duplicate checker name: {checker.name!r}")
        seen.add(checker.name)

    if errors:
        raise ConfigError("config validation failed", errors)


def _validate_checker(checker: CheckerConfig) -> List[str]:
    problems = []
    if not checker.name:
        problems.append("checker config missing 'name'")
    elif not is_dns_label(checker.name):
        problems.append("name must be a valid DNS label (RFC 1123)")
    if checker.interval < 0:
        problems.append(f"invalid 'interval': {checker.interval}")
    if checker.timeout < 0:
        problems.append(f"invalid 'timeout': {checker.timeout}")

    if checker.type == CheckerType.DNS:
        dns_config = checker.dns_config
        if dns_config is None:
            problems.append("dnsConfig is required for DNS checker")
        else:
            if not dns_config.domain:
                problems.append("domain is required for DNS checker")
            if dns_config.query_timeout <= 0:
                problems.append("queryTimeout must be greater than 0")
            elif 0 < checker.timeout <= dns_config.query_timeout:
                problems.append(
                    f"checker timeout must be greater than DNS query timeout: "
                    f"checker timeout='{checker.timeout}s', query timeout='{dns_config.query_timeout}s'"
                )
    elif checker.type == CheckerType.POD_NETWORK:
        pn_config = checker.pod_network_config or PodNetworkConfig()
        if pn_config.query_timeout <= 0:
            problems.append("queryTimeout must be greater than 0")
        if not pn_config.label_selector:
            problems.append("labelSelector is required for podNetwork checker")
        if not pn_config.service_name:
            problems.append("serviceName is required for podNetwork checker")
    elif checker.type == CheckerType.POD_STARTUP:
        problems.extend(_validate_pod_startup(checker.pod_startup_config, checker.timeout))
    return problems


def _validate_pod_startup(ps_config: Optional[PodStartupConfig], timeout: float) -> List[str]:
    if ps_config is None:
        return ["podStartupConfig is required for podStartup checker"]

    problems = []
    if not is_dns_label(ps_config.synthetic_pod_namespace):
        problems.append(f"invalid synthetic pod namespace: {ps_config.synthetic_pod_namespace!r}")
    if not is_qualified_name(ps_config.synthetic_pod_label_key):
        problems.append(f"invalid synthetic pod label key: {ps_config.synthetic_pod_label_key!r}")
    if ps_config.synthetic_pod_startup_timeout <= 0:
        problems.append("syntheticPodStartupTimeout must be greater than 0")
    if ps_config.tcp_timeout <= 0:
        problems.append("tcpTimeout must be greater than 0")
    if ps_config.max_synthetic_pods <= 0:
        problems.append(f"maxSyntheticPods must be greater than 0, got {ps_config.max_synthetic_pods}")
    if timeout <= ps_config.synthetic_pod_startup_timeout + ps_config.tcp_timeout:
        problems.append(
            f"checker timeout must be greater than the combined synthetic pod startup timeout "
            f"and TCP timeout: checker timeout='{timeout}s', "
            f"startup timeout='{ps_config.synthetic_pod_startup_timeout}s', "
            f"TCP timeout='{ps_config.tcp_timeout}s'"
        )
    return problems


def _parse_checker(raw: Dict[str, Any], errors: List[str]) -> Optional[CheckerConfig]:
    name = raw.get('name') or ""
    label = name or "<unnamed>"

    type_value = raw.get('type')
    if not type_value:
        errors.append(f"checker {label!r}: checker config missing 'type'")
        return None
    try:
        checker_type = CheckerType(type_value)
    except ValueError:
        errors.append(f"checker {label!r}: unsupported type: {type_value}")
        return None

    try:
        interval = parse_duration(raw.get('interval'))
        timeout = parse_duration(raw.get('timeout'))
    except ValueError as e:
        errors.append(f"checker {label!r}: {e}")
        return None

    dns_config = None
    pod_network_config = None
    pod_startup_config = None
    try:
        if raw.get('dnsConfig') is not None:
            dns_config = _parse_dns_config(raw['dnsConfig'])
        if raw.get('podNetworkConfig') is not None:
            pod_network_config = _parse_pod_network_config(raw['podNetworkConfig'])
        if raw.get('podStartupConfig') is not None:
            pod_startup_config = _parse_pod_startup_config(raw['podStartupConfig'])
    except (ValueError, TypeError) as e:
        errors.append(f"checker {label!r}: {e}")
        return None

    return CheckerConfig(
        name=str(name),
        type=checker_type,
        interval=interval,
        timeout=timeout,
        dns_config=dns_config,
        pod_network_config=pod_network_config,
        pod_startup_config=pod_startup_config,
    )


def _parse_dns_config(raw: Dict[str, Any]) -> DNSConfig:
    if not isinstance(raw, dict):
        raise TypeError("dnsConfig must be a mapping")
    target = raw.get('target', DNSCheckTarget.CORE_DNS.value)
    try:
        target = DNSCheckTarget(target)
    except ValueError:
        raise ValueError(f"target {target} is not valid for DNS checker") from None
    return DNSConfig(
        domain=raw.get('domain', ""),
        target=target,
        query_timeout=parse_duration(raw.get('queryTimeout', 2.0)),
    )


def _parse_pod_network_config(raw: Dict[str, Any]) -> PodNetworkConfig:
    if not isinstance(raw, dict):
        raise TypeError("podNetworkConfig must be a mapping")
    defaults = PodNetworkConfig()
    return PodNetworkConfig(
        node_name=raw.get('nodeName', defaults.node_name),
        namespace=raw.get('namespace', defaults.namespace),
        label_selector=raw.get('labelSelector', defaults.label_selector),
        service_name=raw.get('serviceName', defaults.service_name),
        domain=raw.get('domain', defaults.domain),
        query_timeout=parse_duration(raw.get('queryTimeout', defaults.query_timeout)),
    )


def _parse_pod_startup_config(raw: Dict[str, Any]) -> PodStartupConfig:
    if not isinstance(raw, dict):
        raise TypeError("podStartupConfig must be a mapping")
    defaults = PodStartupConfig()
    max_pods = raw.get('maxSyntheticPods', defaults.max_synthetic_pods)
    if isinstance(max_pods, bool) or not isinstance(max_pods, int):
        raise ValueError(f"maxSyntheticPods must be an integer, got {max_pods!r}")
    return PodStartupConfig(
        synthetic_pod_namespace=raw.get('syntheticPodNamespace', defaults.synthetic_pod_namespace),
        synthetic_pod_label_key=raw.get('syntheticPodLabelKey', defaults.synthetic_pod_label_key),
        synthetic_pod_startup_timeout=parse_duration(
            raw.get('syntheticPodStartupTimeout', defaults.synthetic_pod_startup_timeout)
        ),
        tcp_timeout=parse_duration(raw.get('tcpTimeout', defaults.tcp_timeout)),
        max_synthetic_pods=max_pods,
    )
