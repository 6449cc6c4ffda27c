"""agentbox data models.

This package contains the data models for agent supervision: workspace
identity, capability policies, typed agent messages, audit records and the
per-run output record.
"""

from .workspace_context import WorkspaceContext
from .sandbox_policy import (
    SandboxPolicy,
    AgentOptions,
    parse_allowed_commands,
)
from .agent_message import (
    AgentMessage,
    TextMessage,
    ToolUseMessage,
    ToolResultMessage,
    ResultMessage,
    UnknownMessage,
    ToolInvocation,
    ToolKind,
    classify_tool,
    parse_agent_message,
)
from .audit_record import AuditRecord, AuditAction
from .output_record import AgentOutputRecord

__all__ = [
    # WorkspaceContext
    "WorkspaceContext",
    # SandboxPolicy
    "SandboxPolicy",
    "AgentOptions",
    "parse_allowed_commands",
    # AgentMessage
    "AgentMessage",
    "TextMessage",
    "ToolUseMessage",
    "ToolResultMessage",
    "ResultMessage",
    "UnknownMessage",
    "ToolInvocation",
    "ToolKind",
    "classify_tool",
    "parse_agent_message",
    # AuditRecord
    "AuditRecord",
    "AuditAction",
    # AgentOutputRecord
    "AgentOutputRecord",
]
