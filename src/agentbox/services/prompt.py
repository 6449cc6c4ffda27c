"""Prompt text sent to the supervised agent."""

from agentbox.models.sandbox_policy import SandboxPolicy


SYSTEM_MESSAGE = """You are an AI assistant with the ability to execute code, read and write files, and run commands in a sandboxed environment.

You have access to:
- File system operations (within the designated workspace)
- Code execution capabilities (Node.js, Python)
- Command-line tools (limited to approved commands)

Important guidelines:
1. Always work within the provided workspace directory
2. Verify file paths before reading or writing
3. Be cautious with destructive operations
4. Provide clear explanations of what you're doing
5. Return actionable results and summaries

Your responses should be helpful, accurate, and focused on solving the user's problem efficiently."""


def _enabled(flag: bool) -> str:
    return "ENABLED" if flag else "DISABLED"


def compose_prompt(system_message: str, workspace_path: str, policy: SandboxPolicy, user_prompt: str) -> str:
    """Combine system message, workspace description, capability summary and user request."""
    if policy.enable_bash_commands:
        bash = f"ENABLED (allowed: {', '.join(policy.allowed_commands)})"
    else:
        bash = "DISABLED"

    return (
        f"{system_message}\n"
        f"\n"
        f"You are working in a sandboxed workspace at: {workspace_path}\n"
        f"\n"
        f"Security constraints:\n"
        f"- File access: {_enabled(policy.enable_file_access)}\n"
        f"- Code execution: {_enabled(policy.enable_code_execution)}\n"
        f"- Bash commands: {bash}\n"
        f"\n"
        f"User request:\n"
        f"{user_prompt}"
    )
