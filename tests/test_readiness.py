"""
Tests for deployment readiness polling and diagnostics.

A fake clock advances only when the waiter sleeps, so the tests are
deterministic and never block.
"""

import logging

import pytest

from mcp_runtime.exceptions import CommandExecutionError, ReadinessTimeoutError
from mcp_runtime.exec.clients import CommandClient, kubectl_client
from mcp_runtime.readiness.diagnostics import DiagnosticsReporter
from mcp_runtime.readiness.wait import DeploymentWaiter, format_timeout


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedKubectl(CommandClient):
    """Returns availableReplicas values from a list, one per probe."""

    def __init__(self, values):
        self.values = list(values)
        self.probes = 0

    def output(self, args, stdin=None):
        self.probes += 1
        value = self.values.pop(0) if self.values else ""
        if isinstance(value, BaseException):
            raise value
        return value


def make_waiter(kubectl, clock):
    return DeploymentWaiter(kubectl, clock=clock, sleep=clock.sleep)


class TestDeploymentWaiter:
    def test_ready_on_first_probe_never_sleeps(self):
        clock = FakeClock()
        kubectl = ScriptedKubectl(["1"])
        result = make_waiter(kubectl, clock).wait("registry", "registry", "app=registry", 300)
        assert result.available_replicas == 1
        assert result.poll_count == 1
        assert clock.sleeps == []

    def test_polls_every_five_seconds_until_ready(self):
        clock = FakeClock()
        kubectl = ScriptedKubectl(["", "0", "2"])
        result = make_waiter(kubectl, clock).wait("registry", "registry", "app=registry", 300)
        assert result.poll_count == 3
        assert clock.sleeps == [5.0, 5.0]

    def test_probe_errors_count_as_not_ready(self):
        clock = FakeClock()
        kubectl = ScriptedKubectl([
            CommandExecutionError("kubectl", [], returncode=1, stderr="NotFound"),
            "garbage",
            "1",
        ])
        result = make_waiter(kubectl, clock).wait("op", "mcp-runtime", "control-plane=x", 60)
        assert result.poll_count == 3

    def test_deadline_raises_timeout_naming_resource(self):
        clock = FakeClock()
        kubectl = ScriptedKubectl([])
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            make_waiter(kubectl, clock).wait("registry", "registry", "app=registry", 12)
        err = exc_info.value
        assert "registry" in str(err)
        assert err.name == "registry"
        assert err.namespace == "registry"
        assert err.exit_code == 124
        # Probes at t=0,5,10,15; 15 > 12 fails before a fourth sleep
        assert kubectl.probes == 4
        assert clock.sleeps == [5.0, 5.0, 5.0]

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout_fails_after_first_probe(self, timeout):
        clock = FakeClock()
        kubectl = ScriptedKubectl(["0"])
        with pytest.raises(ReadinessTimeoutError, match="timed out waiting for deployment op in namespace ns"):
            make_waiter(kubectl, clock).wait("op", "ns", "a=b", timeout)
        assert kubectl.probes == 1
        assert clock.sleeps == []

    def test_progress_logged_at_most_every_ten_seconds(self, caplog):
        clock = FakeClock()
        kubectl = ScriptedKubectl(["0"] * 6 + ["1"])
        with caplog.at_level(logging.INFO, logger="mcp_runtime.readiness.wait"):
            make_waiter(kubectl, clock).wait("registry", "registry", "app=registry", 300)
        progress = [r for r in caplog.records if "Still waiting" in r.getMessage()]
        # Unsuccessful probes at t=0,5,10,15,20,25: logs at 0, 15 (gap > 10)
        assert len(progress) == 2
        assert "selector app=registry, timeout 5m0s" in progress[0].getMessage()

    def test_probe_uses_available_replicas_jsonpath(self, executor, tmp_path):
        executor.respond("kubectl", ["get", "deployment"], output="1")
        clock = FakeClock()
        make_waiter(kubectl_client(executor, str(tmp_path)), clock).wait("registry", "registry", "app=registry", 10)
        assert executor.calls[0].args == (
            "get", "deployment", "registry", "-n", "registry",
            "-o", "jsonpath={.status.availableReplicas}",
        )


class TestFormatTimeout:
    @pytest.mark.parametrize("seconds,expected", [
        (300, "5m0s"), (60, "1m0s"), (45, "45s"), (3725, "1h2m5s"), (0, "0s"),
    ])
    def test_format(self, seconds, expected):
        assert format_timeout(seconds) == expected


class TestDiagnosticsReporter:
    def test_lists_pods_for_selector(self, executor, tmp_path):
        reporter = DiagnosticsReporter(kubectl_client(executor, str(tmp_path)))
        reporter.report("registry", "registry", "app=registry")
        assert executor.args_for("kubectl") == [
            ("get", "pods", "-n", "registry", "-l", "app=registry", "-o", "wide"),
        ]

    def test_failures_are_swallowed(self, executor, tmp_path):
        executor.fail("kubectl", ["get", "pods"])
        reporter = DiagnosticsReporter(kubectl_client(executor, str(tmp_path)))
        reporter.report("registry", "registry", "app=registry")

    def test_validation_failure_swallowed(self, executor, tmp_path):
        reporter = DiagnosticsReporter(kubectl_client(executor, str(tmp_path)))
        reporter.report("registry", "registry", "app=registry\n")
        assert executor.calls == []
