"""Error taxonomy for agent supervision.

Every error is a local, per-run condition. None of them corrupt shared state,
and all of them carry the index of the input item that produced them when one
is known.
"""

from typing import Optional


class AgentboxError(Exception):
    """Base class for all supervision errors."""

    def __init__(self, message: str, item_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.item_index = item_index

    def with_item_index(self, item_index: int) -> "AgentboxError":
        """Attach the input item index if none was recorded yet."""
        if self.item_index is None:
            self.item_index = item_index
        return self

    def to_error_record(self) -> dict:
        return {"error": self.message, "itemIndex": self.item_index}


class InvalidConfiguration(AgentboxError):
    """Raised for malformed configuration, e.g. a relative workspace path."""


class ForbiddenPath(AgentboxError):
    """Raised when a workspace path falls inside a sensitive system directory."""


class WorkspaceCreationFailed(AgentboxError):
    """Raised when the workspace directory cannot be created."""


class MissingInput(AgentboxError):
    """Raised when an input item carries no prompt."""


class CommandBlocked(AgentboxError):
    """Raised when the agent requests a command rejected by the policy."""

    def __init__(self, command: str, item_index: Optional[int] = None):
        super().__init__(f"Command blocked by security filters: {command}", item_index)
        self.command = command


class ExecutionTimeout(AgentboxError):
    """Raised when the agent run exceeds its deadline."""

    def __init__(self, timeout_ms: int, item_index: Optional[int] = None):
        super().__init__(f"Agent execution timeout after {timeout_ms}ms", item_index)
        self.timeout_ms = timeout_ms


class UpstreamStreamError(AgentboxError):
    """Raised when the agent collaborator fails or cannot be constructed."""


class CredentialMissing(AgentboxError):
    """Raised when no API credential is configured for the agent call."""
