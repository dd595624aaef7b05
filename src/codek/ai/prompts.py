"""System prompt assembly.

The prompt is rebuilt for each conversation from the registry's tool list so
the human-readable catalogue always matches the schema sent with requests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from .orchestration.tools.types import ParameterType, ToolDefinition
from .orchestration.types import Message

__all__ = [
    "BASE_ROLE",
    "assemble_system_prompt",
    "format_tool_catalogue",
    "with_system_prompt",
]

BASE_ROLE = (
    "You are CodeK, an AI programming assistant working inside the user's "
    "project workspace."
)

CLOSING_LINE = "You may begin."


def _tool_usage_section() -> str:
    return """## Tool Usage Guidelines
- You have access to a set of tools to interact with the user's workspace.
- Request a tool through the function-calling interface, giving the tool name and a JSON object of arguments.
- The system will execute the tool and return the result to you in a subsequent 'tool' role message with the corresponding `tool_call_id`.
- Tool results are JSON. A result with an `error` field means the call failed; read the message and adjust.
- Use tools proactively when you need information or to perform actions based on the conversation.
- Only use the tools provided below. Do not try to guess tool names or parameters. Do not invent tools."""


def _general_rules_section() -> str:
    return """## General Rules
- Be concise and helpful.
- Answer truthfully based on the provided context and tool results.
- If you don't know the answer or a tool fails, state that clearly.
- Format your responses using Markdown.
- Line numbers used by the file tools are 1-based and inclusive."""


def format_tool_catalogue(tools: Iterable[ToolDefinition]) -> str:
    """Render the ``## Available Tools`` section in the given order."""
    lines = ["## Available Tools"]
    count = 0
    for tool in tools:
        count += 1
        lines.append(f"### `{tool.name}`")
        lines.append(tool.description)
        if tool.parameters:
            lines.append("Parameters:")
            for param in tool.parameters:
                requirement = "required" if param.required else "optional"
                lines.append(
                    f"- `{param.name}`: ({param.type or ParameterType.STRING}, {requirement}) - {param.description}"
                )
        if tool.requires_approval:
            lines.append("This tool asks the user for approval before it runs.")
        lines.append("")
    if count == 0:
        lines.append("No tools are currently available.")
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def assemble_system_prompt(
    tools: Iterable[ToolDefinition],
    custom_instructions: str | None = None,
    *,
    now: datetime | None = None,
) -> str:
    """Build the system prompt for a conversation.

    Args:
        tools: Tool definitions, typically ``registry.list_tools()``.
        custom_instructions: Extra user-provided instructions, appended when
            non-blank.
        now: Timestamp to embed; defaults to the current local time.

    Returns:
        The complete prompt text.
    """
    timestamp = (now or datetime.now()).isoformat(timespec="seconds")
    sections = [
        BASE_ROLE,
        _tool_usage_section(),
        format_tool_catalogue(tools),
        _general_rules_section(),
        f"Current Date and Time: {timestamp}",
    ]
    if custom_instructions and custom_instructions.strip():
        sections.append(f"## Custom Instructions\n{custom_instructions.strip()}")
    sections.append(CLOSING_LINE)
    return "\n\n".join(sections)


def with_system_prompt(messages: Sequence[Message], prompt: str) -> list[Message]:
    """Return ``messages`` led by ``prompt``, replacing an existing leading system message."""
    system = Message.system(prompt)
    if messages and messages[0].role == "system":
        return [system, *messages[1:]]
    return [system, *messages]
