"""SandboxPolicy and AgentOptions models with capability grants."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_ALLOWED_COMMANDS = "node,python3,npm,pip,git"
DEFAULT_TIMEOUT_MS = 300000
DEFAULT_MAX_TURNS = 10


def parse_allowed_commands(value: str) -> List[str]:
    """Split a comma-separated command list, dropping blank entries."""
    return [cmd.strip() for cmd in value.split(",") if cmd.strip()]


class SandboxPolicy(BaseModel):
    """
    Capability grant for one run.

    Immutable for the lifetime of the run. The workspace path is attached after
    the workspace exists through bind_workspace(), which returns a new policy.
    """

    model_config = ConfigDict(frozen=True)

    workspace_path: str = Field(default="", description="Workspace the agent is confined to")
    enable_file_access: bool = Field(default=True, description="Allow file reads and writes")
    enable_code_execution: bool = Field(default=True, description="Allow code execution")
    enable_bash_commands: bool = Field(default=False, description="Allow shell commands")
    allowed_commands: Tuple[str, ...] = Field(
        default_factory=lambda: tuple(parse_allowed_commands(DEFAULT_ALLOWED_COMMANDS)),
        description="Ordered allowlist of base command names"
    )
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Run deadline in milliseconds")

    def bind_workspace(self, workspace_path: str) -> "SandboxPolicy":
        """Return a copy of this policy confined to the given workspace."""
        return self.model_copy(update={"workspace_path": workspace_path})

    def to_summary(self) -> Dict[str, Any]:
        """Generate a summary of the policy for audit events."""
        return {
            "enableFileAccess": self.enable_file_access,
            "enableCodeExecution": self.enable_code_execution,
            "enableBashCommands": self.enable_bash_commands,
            "allowedCommands": list(self.allowed_commands),
            "timeoutMs": self.timeout_ms,
        }


class AgentOptions(BaseModel):
    """
    Caller-supplied configuration bundle for a batch of agent runs.

    Accepts both the camelCase option names of the external interface and the
    snake_case field names.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    system_message: Optional[str] = Field(None, alias="systemMessage", description="Prepended instructions")
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, gt=0, alias="maxTurns", description="Upper bound on agent turns")
    enable_file_access: bool = Field(default=True, alias="enableFileAccess")
    enable_code_execution: bool = Field(default=True, alias="enableCodeExecution")
    enable_bash_commands: bool = Field(default=False, alias="enableBashCommands")
    allowed_commands: str = Field(default=DEFAULT_ALLOWED_COMMANDS, alias="allowedCommands")
    workspace_path: Optional[str] = Field(None, alias="workspacePath", description="Absolute workspace override")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, alias="timeoutMs")
    return_intermediate_steps: bool = Field(default=False, alias="returnIntermediateSteps")
    enable_streaming: bool = Field(default=True, alias="enableStreaming")

    @field_validator('allowed_commands', mode='before')
    def join_command_list(cls, v):
        """Accept a YAML list as well as the comma-separated form."""
        if isinstance(v, (list, tuple)):
            return ",".join(str(cmd) for cmd in v)
        return v

    @field_validator('workspace_path')
    def normalize_workspace_path(cls, v):
        """Treat a blank workspace override as no override."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def allowed_command_list(self) -> List[str]:
        return parse_allowed_commands(self.allowed_commands)

    @property
    def include_intermediate_steps(self) -> bool:
        """Whether the full translated message sequence is returned."""
        return self.enable_streaming and self.return_intermediate_steps

    def to_sandbox_policy(self) -> SandboxPolicy:
        """Build the run's capability grant from these options."""
        return SandboxPolicy(
            enable_file_access=self.enable_file_access,
            enable_code_execution=self.enable_code_execution,
            enable_bash_commands=self.enable_bash_commands,
            allowed_commands=tuple(self.allowed_command_list),
            timeout_ms=self.timeout_ms,
        )
