"""Policy engine: path containment, command filtering and process environment.

Every predicate here is total. Rejection is expressed as ``False`` or
``None``, never as an exception, so callers always fall back to deny.

These checks are advisory filters, not a security boundary. Symlink
traversal, command substitution or encoded payloads can evade them; run the
agent under process-level isolation when that matters.
"""

import logging
import os
import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from agentbox.models.agent_message import ToolInvocation, ToolKind
from agentbox.models.sandbox_policy import SandboxPolicy


logger = logging.getLogger(__name__)

SANDBOX_PATH = "/usr/local/bin:/usr/bin:/bin"
SANDBOX_SHELL = "/bin/sh"
SANDBOX_USER = "agentbox-agent"

# Ordered; the first match wins.
DENIED_COMMAND_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    ("root_deletion", re.compile(r"rm\s+-rf\s+/", re.IGNORECASE)),
    ("privilege_escalation", re.compile(r"sudo", re.IGNORECASE)),
    ("world_writable_chmod", re.compile(r"chmod\s+777", re.IGNORECASE)),
    ("curl_pipe_shell", re.compile(r"curl.*\|.*sh", re.IGNORECASE)),
    ("wget_pipe_shell", re.compile(r"wget.*\|.*sh", re.IGNORECASE)),
    ("block_device_write", re.compile(r">\s*/dev/(?:sd|hd|vd|xvd|nvme|mmcblk)", re.IGNORECASE)),
    ("filesystem_creation", re.compile(r"mkfs", re.IGNORECASE)),
    ("disk_duplication", re.compile(r"dd\s+if=", re.IGNORECASE)),
    ("fork_bomb", re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:")),
]


def is_path_contained(candidate_path: str, workspace_path: str) -> bool:
    """Check that a path stays inside the workspace.

    Absolute candidates are always rejected, even when they point inside the
    workspace. Relative candidates are resolved against the workspace and
    rejected when the result climbs out of it through a ``..`` segment.

    Args:
        candidate_path: Path requested by the agent
        workspace_path: Workspace root

    Returns:
        True if the path is contained in the workspace
    """
    try:
        if os.path.isabs(candidate_path):
            return False

        resolved_workspace = os.path.realpath(workspace_path)
        resolved_path = os.path.realpath(os.path.join(resolved_workspace, candidate_path))
        relative_path = os.path.relpath(resolved_path, resolved_workspace)
    except (TypeError, ValueError, OSError):
        return False

    return relative_path.split(os.sep)[0] != os.pardir


def is_command_allowed(command: str, allowed_commands: Iterable[str]) -> bool:
    """Check the base command (first whitespace-separated token) against the allowlist.

    Comparison is exact and case-sensitive.
    """
    if not isinstance(command, str):
        return False

    tokens = command.split()
    if not tokens:
        return False

    return tokens[0] in set(allowed_commands)


def find_denied_pattern(command: str) -> Optional[str]:
    """Return the label of the first denylisted pattern the command matches."""
    if not isinstance(command, str):
        return None

    for label, pattern in DENIED_COMMAND_PATTERNS:
        if pattern.search(command):
            return label
    return None


def filter_command(command: str, policy: SandboxPolicy) -> Optional[str]:
    """Filter a shell command through the policy.

    Deny takes precedence over allow: a denylisted pattern rejects the command
    even when its base command is on the allowlist.

    Args:
        command: Command string requested by the agent
        policy: Capability grant for the run

    Returns:
        The unchanged command if permitted, None otherwise
    """
    if not policy.enable_bash_commands:
        return None

    if find_denied_pattern(command) is not None:
        return None

    if not is_command_allowed(command, policy.allowed_commands):
        return None

    return command


def build_sandboxed_environment(workspace_path: str) -> Dict[str, str]:
    """Create a minimal process environment rooted at the workspace.

    Nothing is inherited from the current process environment.
    """
    return {
        "HOME": workspace_path,
        "PATH": SANDBOX_PATH,
        "WORKSPACE": workspace_path,
        "SHELL": SANDBOX_SHELL,
        "USER": SANDBOX_USER,
    }


class PolicyEnforcer:
    """Evaluates tool invocations against one run's SandboxPolicy."""

    def __init__(self, policy: SandboxPolicy):
        self.policy = policy
        self.logger = logging.getLogger(__name__)

    def evaluate(self, invocation: ToolInvocation) -> Dict[str, Any]:
        """Decide whether a tool invocation may proceed.

        Only shell invocations are gated. A shell invocation without a command
        string carries nothing to filter and is let through.

        Args:
            invocation: Tool invocation requested by the agent

        Returns:
            Validation result with allowed status and details
        """
        if invocation.kind != ToolKind.SHELL:
            return {
                "allowed": True,
                "reason": f"Tool kind {invocation.kind.value} is not gated",
                "action_required": "none",
                "command": None
            }

        command = invocation.command
        if command is None:
            return {
                "allowed": True,
                "reason": "No command string to filter",
                "action_required": "none",
                "command": None
            }

        if filter_command(command, self.policy) is not None:
            return {
                "allowed": True,
                "reason": "Command permitted by policy",
                "action_required": "none",
                "command": command
            }

        return {
            "allowed": False,
            "reason": self._rejection_reason(command),
            "action_required": "block",
            "command": command
        }

    def _rejection_reason(self, command: str) -> str:
        if not self.policy.enable_bash_commands:
            return "Bash commands are disabled by policy"

        denied = find_denied_pattern(command)
        if denied is not None:
            return f"Command matches denied pattern {denied}"

        return "Command is not in allowed commands list"
