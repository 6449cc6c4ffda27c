"""Typed agent messages and tool invocations parsed at the stream boundary."""

import json
from enum import Enum
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentbox.lib.errors import UpstreamStreamError


def _as_text(value: Any) -> str:
    """Render a non-string payload value as text; None becomes empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class TextMessage(BaseModel):
    """Plain text emitted by the agent."""

    type: Literal["text"] = "text"
    text: str = ""

    @field_validator('text', mode='before')
    def coerce_text(cls, v):
        return _as_text(v)


class ToolUseMessage(BaseModel):
    """A request by the agent to invoke a tool."""

    type: Literal["tool_use"] = "tool_use"
    tool: str = Field(..., min_length=1, description="Tool name as reported by the agent")
    input: Any = Field(default_factory=dict, description="Free-form tool input")
    id: Optional[str] = Field(None, description="Tool call correlation identifier")

    @field_validator('tool', mode='before')
    def coerce_tool(cls, v):
        if v is None:
            return v
        return v if isinstance(v, str) else str(v)

    @field_validator('id', mode='before')
    def coerce_id(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ToolResultMessage(BaseModel):
    """The outcome of a previously requested tool invocation."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: Optional[str] = None
    content: Any = None
    is_error: Optional[bool] = False

    @field_validator('tool_use_id', mode='before')
    def coerce_tool_use_id(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ResultMessage(BaseModel):
    """The agent's final output for the run."""

    type: Literal["result"] = "result"
    result: str = ""
    is_error: Optional[bool] = False

    @field_validator('result', mode='before')
    def coerce_result(cls, v):
        return _as_text(v)


class UnknownMessage(BaseModel):
    """Any message kind outside the closed set, kept with its raw payload."""

    model_config = ConfigDict(frozen=True)

    type: str = "unknown"
    raw: Dict[str, Any] = Field(default_factory=dict)


AgentMessage = Union[TextMessage, ToolUseMessage, ToolResultMessage, ResultMessage, UnknownMessage]

_MESSAGE_TYPES = {
    "text": TextMessage,
    "tool_use": ToolUseMessage,
    "tool_result": ToolResultMessage,
    "result": ResultMessage,
}


def parse_agent_message(raw: Mapping[str, Any]) -> AgentMessage:
    """Parse a raw stream payload into a typed message.

    Unknown kinds, and non-tool kinds whose payload does not validate, become
    an UnknownMessage carrying the raw payload rather than failing the run.
    A tool_use payload that does not validate cannot be audited or filtered,
    so it fails the run.

    Raises:
        UpstreamStreamError: If a tool_use payload is malformed
    """
    payload = dict(raw)
    msg_type = payload.get("type")
    model = _MESSAGE_TYPES.get(msg_type) if isinstance(msg_type, str) else None

    if model is not None:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            if model is ToolUseMessage:
                raise UpstreamStreamError(
                    f"Malformed tool_use message: {e.error_count()} validation error(s)"
                ) from e

    return UnknownMessage(
        type=msg_type if isinstance(msg_type, str) and msg_type else "unknown",
        raw=payload
    )


class ToolKind(str, Enum):
    """Capability class of a requested tool invocation."""

    SHELL = "shell"
    FILE_READ = "file_read"
    FILE_WRITE = "file_write"
    CODE_EXEC = "code_exec"
    OTHER = "other"


SHELL_TOOLS = {"bash", "execute_command"}
FILE_READ_TOOLS = {"read", "glob", "grep", "ls", "notebookread"}
FILE_WRITE_TOOLS = {"write", "edit", "multiedit", "notebookedit"}
CODE_EXEC_TOOLS = {"code_execution", "execute_code", "python", "node"}


def classify_tool(tool_name: str) -> ToolKind:
    """Map a tool name onto its capability class (case-insensitive)."""
    name = tool_name.strip().lower()
    if name in SHELL_TOOLS:
        return ToolKind.SHELL
    if name in FILE_READ_TOOLS:
        return ToolKind.FILE_READ
    if name in FILE_WRITE_TOOLS:
        return ToolKind.FILE_WRITE
    if name in CODE_EXEC_TOOLS:
        return ToolKind.CODE_EXEC
    return ToolKind.OTHER


class ToolInvocation(BaseModel):
    """A single requested action, alive only until it is permitted or rejected."""

    model_config = ConfigDict(frozen=True)

    kind: ToolKind
    tool: str
    input: Any = Field(default_factory=dict)
    correlation_id: Optional[str] = None

    @classmethod
    def from_message(cls, message: ToolUseMessage) -> "ToolInvocation":
        return cls(
            kind=classify_tool(message.tool),
            tool=message.tool,
            input=message.input,
            correlation_id=message.id,
        )

    @property
    def command(self) -> Optional[str]:
        """The shell command string carried by the input, if any."""
        if not isinstance(self.input, Mapping):
            return None
        command = self.input.get("command") or self.input.get("cmd")
        if isinstance(command, str):
            return command
        return None
