"""
Metrics collection for supervised agent runs.

Provides counters and histograms for runs, tool invocations, policy blocks,
timeouts and workspaces using OpenTelemetry metrics. Instruments are no-ops
until a MeterProvider is installed (see agentbox.lib.observability).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from opentelemetry import metrics


class RunOutcome(Enum):
    """Terminal outcome of one agent run."""
    COMPLETED = "completed"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass
class RunMetrics:
    """Metrics for a single agent run."""
    workflow_id: str
    outcome: RunOutcome
    duration_ms: int
    tool_invocations: int = 0
    error_type: Optional[str] = None


class MetricsCollector:
    """Collects and manages agentbox metrics."""

    def __init__(self, meter: metrics.Meter):
        self.meter = meter
        self._setup_instruments()

    def _setup_instruments(self) -> None:
        """Setup OpenTelemetry metric instruments."""
        self.runs_total = self.meter.create_counter(
            name="agentbox_runs_total",
            description="Agent runs by outcome",
            unit="1"
        )

        self.run_duration = self.meter.create_histogram(
            name="agentbox_run_duration_ms",
            description="Duration of agent runs",
            unit="ms"
        )

        self.tool_invocations = self.meter.create_counter(
            name="agentbox_tool_invocations_total",
            description="Tool invocations observed by tool kind",
            unit="1"
        )

        self.commands_blocked = self.meter.create_counter(
            name="agentbox_commands_blocked_total",
            description="Shell commands rejected by policy",
            unit="1"
        )

        self.timeouts = self.meter.create_counter(
            name="agentbox_timeouts_total",
            description="Agent runs abandoned at their deadline",
            unit="1"
        )

        self.active_workspaces = self.meter.create_up_down_counter(
            name="agentbox_workspaces_active",
            description="Workspaces currently allocated",
            unit="1"
        )

    def record_run(self, run: RunMetrics) -> None:
        """Record the outcome of one agent run."""
        attributes: Dict[str, str] = {
            "workflow_id": run.workflow_id,
            "outcome": run.outcome.value,
        }
        if run.error_type:
            attributes["error_type"] = run.error_type

        self.runs_total.add(1, attributes)
        self.run_duration.record(run.duration_ms, attributes)

        if run.outcome == RunOutcome.TIMEOUT:
            self.timeouts.add(1, {"workflow_id": run.workflow_id})

    def record_tool_invocation(self, tool_kind: str, tool_name: str) -> None:
        self.tool_invocations.add(1, {"tool_kind": tool_kind, "tool": tool_name})

    def record_command_blocked(self, reason: str) -> None:
        self.commands_blocked.add(1, {"reason": reason})

    def workspace_created(self) -> None:
        self.active_workspaces.add(1)

    def workspace_destroyed(self) -> None:
        self.active_workspaces.add(-1)


_metrics_collector: Optional[MetricsCollector] = None


def initialize_metrics(meter: Optional[metrics.Meter] = None) -> MetricsCollector:
    """Initialize the global metrics collector."""
    global _metrics_collector
    _metrics_collector = MetricsCollector(meter or metrics.get_meter("agentbox"))
    return _metrics_collector


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector, creating it on first use."""
    if _metrics_collector is None:
        return initialize_metrics()
    return _metrics_collector
