"""Unit tests for result translation and prompt composition."""

import pytest

from agentbox.models.agent_message import parse_agent_message
from agentbox.models.sandbox_policy import SandboxPolicy
from agentbox.services.prompt import SYSTEM_MESSAGE, compose_prompt
from agentbox.services.result_translator import translate


class TestTranslate:
    """Translation of each message kind."""

    def test_text(self):
        message = parse_agent_message({"type": "text", "text": "Looking at the files"})
        assert translate(message, False) == {"type": "text", "text": "Looking at the files"}

    def test_tool_use_with_detail(self):
        message = parse_agent_message({
            "type": "tool_use", "tool": "Bash", "input": {"command": "ls"}, "id": "toolu_1"
        })

        assert translate(message, True) == {
            "type": "tool_use",
            "tool": "Bash",
            "toolInput": {"command": "ls"},
            "toolCallId": "toolu_1",
        }

    def test_tool_use_without_detail(self):
        message = parse_agent_message({"type": "tool_use", "tool": "Bash", "input": {"command": "ls"}})
        assert translate(message, False) == {"type": "tool_use"}

    def test_tool_result(self):
        message = parse_agent_message({"type": "tool_result", "tool_use_id": "toolu_1", "content": "a.txt"})

        assert translate(message, True) == {"type": "tool_result", "toolCallId": "toolu_1", "toolResult": "a.txt"}
        assert translate(message, False) == {"type": "tool_result"}

    @pytest.mark.parametrize("include_detail", [True, False])
    def test_result(self, include_detail):
        message = parse_agent_message({"type": "result", "result": "All done"})
        assert translate(message, include_detail) == {"type": "result", "output": "All done"}

    def test_unknown_kind_passes_through(self):
        raw = {"type": "system", "subtype": "init", "data": {"cwd": "/tmp"}}
        assert translate(parse_agent_message(raw), False) == {"type": "system", "message": raw}


class TestComposePrompt:
    """Prompt layout."""

    def test_layout_with_bash_disabled(self):
        prompt = compose_prompt("SYSTEM", "/tmp/ws", SandboxPolicy(enable_file_access=False), "List files")

        assert prompt == (
            "SYSTEM\n"
            "\n"
            "You are working in a sandboxed workspace at: /tmp/ws\n"
            "\n"
            "Security constraints:\n"
            "- File access: DISABLED\n"
            "- Code execution: ENABLED\n"
            "- Bash commands: DISABLED\n"
            "\n"
            "User request:\n"
            "List files"
        )

    def test_bash_lists_allowed_commands(self):
        policy = SandboxPolicy(enable_bash_commands=True, allowed_commands=("node", "git"))

        prompt = compose_prompt(SYSTEM_MESSAGE, "/tmp/ws", policy, "Run tests")

        assert prompt.startswith(SYSTEM_MESSAGE)
        assert "- Bash commands: ENABLED (allowed: node, git)" in prompt
        assert prompt.endswith("User request:\nRun tests")
