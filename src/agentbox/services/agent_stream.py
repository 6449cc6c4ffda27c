"""Agent stream interface and the Claude Agent SDK adapter."""

import asyncio
import logging
import os
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from agentbox.lib.errors import UpstreamStreamError
from agentbox.models.sandbox_policy import SandboxPolicy


logger = logging.getLogger(__name__)

CREDENTIAL_ENV_VAR = "ANTHROPIC_API_KEY"

FILE_TOOLS = ["Read", "Write", "Edit", "MultiEdit", "Glob", "Grep", "NotebookEdit"]
SHELL_TOOLS = ["Bash"]

# Single writer for process-wide credential injection, one lock per event loop.
_environment_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def _environment_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _environment_locks.get(loop)
    if lock is None:
        lock = _environment_locks[loop] = asyncio.Lock()
    return lock


@dataclass
class AgentRequest:
    """Everything the agent collaborator needs for one call."""
    prompt: str
    max_turns: int
    workspace_path: str
    policy: SandboxPolicy
    environment: Dict[str, str] = field(default_factory=dict)


@asynccontextmanager
async def scoped_environment_credential(name: str, value: str) -> AsyncIterator[Dict[str, str]]:
    """Install a credential into os.environ for the duration of one call.

    Concurrent holders are serialized, and the variable is restored on every
    exit path including cancellation.
    """
    async with _environment_lock():
        previous = os.environ.get(name)
        os.environ[name] = value
        try:
            yield {}
        finally:
            if previous is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = previous


class BaseAgentStream(ABC):
    """Base class for agent collaborators yielding a message stream."""

    name = "agent"

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    def stream(self, request: AgentRequest) -> AsyncIterator[Mapping[str, Any]]:
        """Start the agent and yield its raw messages in order.

        Args:
            request: Composed prompt, turn limit and sandbox settings

        Returns:
            Async iterator of raw message mappings carrying a "type" key
        """

    @asynccontextmanager
    async def credential_scope(self, api_key: str) -> AsyncIterator[Dict[str, str]]:
        """Scope a credential to a single call.

        Yields the environment entries carrying the credential, which are
        cleared when the scope exits.
        """
        credential = {CREDENTIAL_ENV_VAR: api_key}
        try:
            yield credential
        finally:
            credential.clear()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class ClaudeAgentStream(BaseAgentStream):
    """Agent stream backed by the Claude Agent SDK."""

    name = "claude_agent"

    def __init__(
        self,
        model: Optional[str] = None,
        inject_environment: bool = False,
        sandbox_environment: bool = True
    ):
        """Initialize the Claude Agent SDK adapter.

        Args:
            model: Model override passed to the SDK
            inject_environment: Install the credential into os.environ instead
                of passing it per call
            sandbox_environment: Pass the sandboxed environment to the agent
                process; when False only the credential is passed
        """
        super().__init__()
        self.model = model
        self.inject_environment = inject_environment
        self.sandbox_environment = sandbox_environment

    def credential_scope(self, api_key: str):
        if self.inject_environment:
            return scoped_environment_credential(CREDENTIAL_ENV_VAR, api_key)
        return super().credential_scope(api_key)

    async def stream(self, request: AgentRequest) -> AsyncIterator[Mapping[str, Any]]:
        query, options = self._build_query(request)

        self.logger.info(
            f"Starting Claude agent in {request.workspace_path} (max_turns={request.max_turns})"
        )
        async for message in query(prompt=request.prompt, options=options):
            for raw in self.flatten_message(message):
                yield raw

    def _build_query(self, request: AgentRequest):
        try:
            from claude_agent_sdk import ClaudeAgentOptions, query
        except ImportError as e:
            raise UpstreamStreamError(
                "Failed to load Claude Agent SDK. Make sure claude-agent-sdk is installed."
            ) from e

        environment = dict(request.environment)
        if not self.sandbox_environment:
            environment = {k: v for k, v in environment.items() if k == CREDENTIAL_ENV_VAR}

        try:
            options = ClaudeAgentOptions(
                model=self.model,
                max_turns=request.max_turns,
                cwd=request.workspace_path,
                env=environment,
                disallowed_tools=self.disallowed_tools(request.policy),
            )
        except (TypeError, ValueError) as e:
            raise UpstreamStreamError(f"Failed to configure Claude Agent SDK: {e}") from e

        return query, options

    @staticmethod
    def disallowed_tools(policy: SandboxPolicy) -> List[str]:
        """Map disabled capability classes onto SDK tool names."""
        disallowed: List[str] = []
        if not policy.enable_file_access:
            disallowed.extend(FILE_TOOLS)
        if not policy.enable_bash_commands:
            disallowed.extend(SHELL_TOOLS)
        return disallowed

    @staticmethod
    def flatten_message(message: Any) -> List[Dict[str, Any]]:
        """Flatten an SDK message into raw mappings, one per content block.

        Args:
            message: SDK message object or mapping

        Returns:
            Raw message mappings with a "type" key
        """
        if isinstance(message, Mapping):
            return [dict(message)]

        content = getattr(message, "content", None)
        if isinstance(content, list):
            flattened = []
            for block in content:
                if hasattr(block, "tool_use_id"):
                    flattened.append({
                        "type": "tool_result",
                        "tool_use_id": block.tool_use_id,
                        "content": getattr(block, "content", None),
                        "is_error": getattr(block, "is_error", False),
                    })
                elif hasattr(block, "name") and hasattr(block, "input"):
                    flattened.append({
                        "type": "tool_use",
                        "tool": block.name,
                        "input": block.input,
                        "id": getattr(block, "id", None),
                    })
                elif hasattr(block, "thinking"):
                    flattened.append({"type": "thinking", "thinking": block.thinking})
                elif hasattr(block, "text"):
                    flattened.append({"type": "text", "text": block.text})
                else:
                    flattened.append({"type": type(block).__name__, "block": repr(block)})
            return flattened

        if hasattr(message, "result") and hasattr(message, "num_turns"):
            return [{
                "type": "result",
                "result": message.result,
                "is_error": getattr(message, "is_error", False),
                "num_turns": message.num_turns,
                "total_cost_usd": getattr(message, "total_cost_usd", None),
            }]

        if isinstance(content, str):
            return [{"type": "user", "content": content}]

        if hasattr(message, "subtype"):
            return [{
                "type": "system",
                "subtype": message.subtype,
                "data": getattr(message, "data", None),
            }]

        return [{"type": type(message).__name__, "raw": repr(message)}]
