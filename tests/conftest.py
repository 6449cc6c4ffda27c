"""Shared fixtures: scripted agent streams standing in for the external SDK."""

import asyncio
from typing import Any, Dict, List, Optional, Union

import pytest

from agentbox.services.agent_stream import AgentRequest, BaseAgentStream
from agentbox.services.audit_sink import AuditSink
from agentbox.services.execution_supervisor import ExecutionSupervisor
from agentbox.services.workspace_manager import WorkspaceManager


ScriptStep = Union[Dict[str, Any], BaseException]


class ScriptedAgentStream(BaseAgentStream):
    """Yields a fixed message script per call; exceptions in the script are raised."""

    name = "scripted"

    def __init__(self, *scripts: List[ScriptStep]):
        super().__init__()
        self.scripts = list(scripts) or [[{"type": "result", "result": "done"}]]
        self.requests: List[AgentRequest] = []
        self.environments: List[Dict[str, str]] = []
        self.closed = 0

    async def stream(self, request: AgentRequest):
        self.requests.append(request)
        self.environments.append(dict(request.environment))
        script = self.scripts[min(len(self.requests), len(self.scripts)) - 1]

        try:
            for step in script:
                if isinstance(step, BaseException):
                    raise step
                await asyncio.sleep(0)
                yield step
        finally:
            self.closed += 1


class HangingAgentStream(BaseAgentStream):
    """Starts and then never yields, until cancelled."""

    name = "hanging"

    def __init__(self):
        super().__init__()
        self.started = 0
        self.cancelled = 0

    async def stream(self, request: AgentRequest):
        self.started += 1
        try:
            await asyncio.Event().wait()
            yield {"type": "text", "text": "unreachable"}
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


@pytest.fixture
def audit_sink():
    """Fresh in-memory audit sink."""
    return AuditSink()


@pytest.fixture
def workspace_base(tmp_path):
    """Base directory for default workspaces."""
    base = tmp_path / "workspaces"
    base.mkdir()
    return base


@pytest.fixture
def workspace_manager(workspace_base, audit_sink):
    """WorkspaceManager rooted in the test's temporary directory."""
    return WorkspaceManager(base_directory=str(workspace_base), audit_sink=audit_sink)


@pytest.fixture
def make_supervisor(workspace_manager, audit_sink):
    """Factory building a supervisor around a given agent stream."""
    def _make(agent_stream: BaseAgentStream, api_key: Optional[str] = "sk-test-key") -> ExecutionSupervisor:
        return ExecutionSupervisor(
            agent_stream=agent_stream,
            workspace_manager=workspace_manager,
            audit_sink=audit_sink,
            api_key=api_key
        )
    return _make


@pytest.fixture
def remaining_workspaces(workspace_base):
    """Lists workspace leaf directories still present under the base directory."""
    def _list() -> List[str]:
        root = workspace_base / "agentbox"
        if not root.exists():
            return []
        return [str(leaf) for workflow in root.iterdir() for leaf in workflow.iterdir()]
    return _list
