"""Translate typed agent messages into uniform output records."""

from typing import Any, Dict

from agentbox.models.agent_message import (
    AgentMessage,
    ResultMessage,
    TextMessage,
    ToolResultMessage,
    ToolUseMessage,
    UnknownMessage,
)


def translate(message: AgentMessage, include_detail: bool) -> Dict[str, Any]:
    """Convert an agent message into an output record entry.

    Tool fields are only populated when include_detail is set, which keeps
    the default output compact. Unknown kinds pass through with their raw
    payload attached.

    Args:
        message: Parsed agent message
        include_detail: Whether to include tool invocation details

    Returns:
        Output record entry tagged with the message type
    """
    entry: Dict[str, Any] = {"type": message.type}

    if isinstance(message, TextMessage):
        entry["text"] = message.text
    elif isinstance(message, ToolUseMessage):
        if include_detail:
            entry["tool"] = message.tool
            entry["toolInput"] = message.input
            entry["toolCallId"] = message.id
    elif isinstance(message, ToolResultMessage):
        if include_detail:
            entry["toolCallId"] = message.tool_use_id
            entry["toolResult"] = message.content
    elif isinstance(message, ResultMessage):
        entry["output"] = message.result
    elif isinstance(message, UnknownMessage):
        entry["message"] = message.raw

    return entry
