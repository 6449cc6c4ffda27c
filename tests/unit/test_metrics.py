"""Unit tests for metrics collection against an in-memory reader."""

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from agentbox.lib.metrics import MetricsCollector, RunMetrics, RunOutcome


@pytest.fixture
def reader():
    return InMemoryMetricReader()


@pytest.fixture
def collector(reader):
    provider = MeterProvider(metric_readers=[reader])
    return MetricsCollector(provider.get_meter("agentbox-test"))


def _points(reader, name):
    data = reader.get_metrics_data()
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    return list(metric.data.data_points)
    return []


class TestMetricsCollector:
    """Instrument recording."""

    def test_run_outcomes(self, collector, reader):
        collector.record_run(RunMetrics(workflow_id="wf", outcome=RunOutcome.COMPLETED, duration_ms=120))
        collector.record_run(RunMetrics(
            workflow_id="wf", outcome=RunOutcome.TIMEOUT, duration_ms=50, error_type="ExecutionTimeout"
        ))

        runs = _points(reader, "agentbox_runs_total")
        by_outcome = {point.attributes["outcome"]: point.value for point in runs}
        assert by_outcome == {"completed": 1, "timeout": 1}

        [timeouts] = _points(reader, "agentbox_timeouts_total")
        assert timeouts.value == 1

    def test_blocked_commands_and_tools(self, collector, reader):
        collector.record_tool_invocation("shell", "Bash")
        collector.record_tool_invocation("shell", "Bash")
        collector.record_command_blocked("Command matches denied pattern root_deletion")

        [tools] = _points(reader, "agentbox_tool_invocations_total")
        assert tools.value == 2
        [blocked] = _points(reader, "agentbox_commands_blocked_total")
        assert blocked.value == 1

    def test_active_workspaces(self, collector, reader):
        collector.workspace_created()
        collector.workspace_created()
        collector.workspace_destroyed()

        [active] = _points(reader, "agentbox_workspaces_active")
        assert active.value == 1
