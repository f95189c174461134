"""
Tests for the checker result model, run context and registry
"""

import threading
import time

import pytest

from clusterhealth.checker import (
    Checker, CheckerBuildError, CheckerConfig, CheckerRegistry, CheckerType,
    DeadlineExceeded, DNSConfig, ErrorDetail, Result, RunCancelled, RunContext,
    Status, UnknownCheckerTypeError, default_registry, healthy, unhealthy, unknown,
)


class FakeChecker(Checker):
    checker_type = "fake"

    def run(self, ctx):
        return healthy()


def fake_builder(cfg):
    if cfg.name == "fail":
        raise RuntimeError("forced error")
    return FakeChecker(cfg.name)


class TestResultModel:
    """Tests for Result and its helpers."""

    def test_healthy_has_no_detail(self):
        """Test healthy result carries no error detail."""
        result = healthy()

        assert result.status == Status.HEALTHY
        assert result.detail is None
        assert result.is_healthy
        assert result.message == ""

    def test_unhealthy_has_detail(self):
        """Test unhealthy result carries code and message."""
        result = unhealthy("TEST_CODE", "test message")

        assert result.status == Status.UNHEALTHY
        assert result.detail == ErrorDetail(code="TEST_CODE", message="test message")
        assert result.code == "TEST_CODE"

    def test_unknown_default_code(self):
        """Test unknown result falls back to the Unknown code."""
        result = unknown("inconclusive")

        assert result.status == Status.UNKNOWN
        assert result.code == "Unknown"
        assert result.message == "inconclusive"

    def test_unknown_custom_code(self):
        result = unknown("not enough peers", code="InsufficientPeers")
        assert result.code == "InsufficientPeers"

    def test_detail_invariant_enforced(self):
        """Test the detail/status invariant is checked on construction."""
        with pytest.raises(ValueError):
            Result(status=Status.HEALTHY, detail=ErrorDetail("X", "y"))
        with pytest.raises(ValueError):
            Result(status=Status.UNHEALTHY)

    def test_to_dict(self):
        assert healthy().to_dict() == {"status": "Healthy"}
        assert unhealthy("C", "m").to_dict() == {
            "status": "Unhealthy",
            "errorDetail": {"code": "C", "message": "m"},
        }


class TestRunContext:
    """Tests for RunContext deadline and cancellation."""

    def test_unbounded_context(self):
        ctx = RunContext.with_timeout(0)

        assert ctx.deadline is None
        assert ctx.remaining() is None
        assert ctx.remaining(default=5.0) == 5.0
        ctx.check()

    def test_remaining_bounded_by_default(self):
        """Test remaining never exceeds the supplied default."""
        ctx = RunContext.with_timeout(60)

        assert ctx.remaining(default=5.0) == 5.0
        assert 0 < ctx.remaining() <= 60

    def test_expired_deadline(self):
        ctx = RunContext(deadline=time.monotonic() - 1)

        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(DeadlineExceeded):
            ctx.check()

    def test_cancelled_by_stop_event(self):
        stop = threading.Event()
        ctx = RunContext.with_timeout(60, stop)

        ctx.check()
        stop.set()

        assert ctx.cancelled
        with pytest.raises(RunCancelled):
            ctx.check()

    def test_wait_bounded_by_deadline(self):
        """Test wait returns early at the deadline without reporting cancellation."""
        ctx = RunContext.with_timeout(0.05)

        started = time.monotonic()
        assert ctx.wait(5.0) is False
        assert time.monotonic() - started < 1.0

    def test_wait_reports_cancellation(self):
        stop = threading.Event()
        stop.set()

        assert RunContext.with_timeout(60, stop).wait(5.0) is True


class TestCheckerRegistry:
    """Tests for CheckerRegistry."""

    @pytest.fixture
    def registry(self):
        registry = CheckerRegistry()
        registry.register(CheckerType.DNS, fake_builder)
        return registry

    def test_build_registered_type(self, registry):
        """Test building a registered type returns a named checker."""
        checker = registry.build(CheckerConfig(name="foo", type=CheckerType.DNS))

        assert checker is not None
        assert checker.name == "foo"

    def test_build_unknown_type(self, registry):
        """Test building an unregistered type raises and yields no checker."""
        checker = None
        with pytest.raises(UnknownCheckerTypeError):
            checker = registry.build(CheckerConfig(name="bar", type=CheckerType.POD_NETWORK))
        assert checker is None

    def test_unknown_type_is_build_error(self, registry):
        with pytest.raises(CheckerBuildError):
            registry.build(CheckerConfig(name="bar", type=CheckerType.POD_NETWORK))

    def test_builder_error_is_wrapped(self, registry):
        """Test constructor failures are chained into CheckerBuildError."""
        with pytest.raises(CheckerBuildError) as exc_info:
            registry.build(CheckerConfig(name="fail", type=CheckerType.DNS))

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "forced error" in str(exc_info.value)

    def test_builder_returning_none(self, registry):
        registry.register(CheckerType.DNS, lambda cfg: None)

        with pytest.raises(CheckerBuildError):
            registry.build(CheckerConfig(name="foo", type=CheckerType.DNS))

    def test_last_registration_wins(self, registry):
        """Test re-registering a type replaces the previous builder."""
        class OtherChecker(FakeChecker):
            pass

        registry.register("dns", lambda cfg: OtherChecker(cfg.name))
        checker = registry.build(CheckerConfig(name="foo", type=CheckerType.DNS))

        assert isinstance(checker, OtherChecker)

    def test_registries_are_isolated(self, registry):
        other = CheckerRegistry()

        assert registry.is_registered(CheckerType.DNS)
        assert not other.is_registered(CheckerType.DNS)
        assert not other.is_registered("no-such-type")

    def test_default_registry_registers_builtins(self):
        """Test the default registry knows every built-in checker."""
        registry = default_registry(kube=object(), node_name="node-1")

        assert registry.registered_types() == ["dns", "podNetwork", "podStartup"]

        checker = registry.build(CheckerConfig(name="pod-network", type=CheckerType.POD_NETWORK))
        assert checker.name == "pod-network"
        assert checker.node_name == "node-1"

        dns_checker = registry.build(CheckerConfig(
            name="internal-dns",
            type=CheckerType.DNS,
            dns_config=DNSConfig(domain="kubernetes.default.svc.cluster.local"),
        ))
        assert dns_checker.checker_type == "dns"

    def test_default_registry_dns_requires_config(self):
        registry = default_registry(kube=object())

        with pytest.raises(CheckerBuildError):
            registry.build(CheckerConfig(name="internal-dns", type=CheckerType.DNS))
