"""agentbox services.

Workspace allocation, policy evaluation, audit recording, agent streaming and
the execution supervisor that ties them together.
"""

from .audit_sink import AuditSink
from .workspace_manager import WorkspaceManager
from .policy_engine import (
    PolicyEnforcer,
    build_sandboxed_environment,
    filter_command,
    find_denied_pattern,
    is_command_allowed,
    is_path_contained,
)
from .result_translator import translate
from .prompt import SYSTEM_MESSAGE, compose_prompt
from .agent_stream import AgentRequest, BaseAgentStream, ClaudeAgentStream
from .execution_supervisor import ExecutionSupervisor

__all__ = [
    "AuditSink",
    "WorkspaceManager",
    "PolicyEnforcer",
    "build_sandboxed_environment",
    "filter_command",
    "find_denied_pattern",
    "is_command_allowed",
    "is_path_contained",
    "translate",
    "SYSTEM_MESSAGE",
    "compose_prompt",
    "AgentRequest",
    "BaseAgentStream",
    "ClaudeAgentStream",
    "ExecutionSupervisor",
]
