"""Core message types for the orchestration loop.

These frozen dataclasses make up the conversation log. A message is immutable
once placed into the log; the orchestrator copies the log into its own
working list before appending assistant and tool messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

__all__ = [
    "MessageRole",
    "MESSAGE_ROLES",
    "ToolCallRequest",
    "Message",
]

MessageRole = Literal["system", "user", "assistant", "tool"]
MESSAGE_ROLES: tuple[str, ...] = ("system", "user", "assistant", "tool")


# -----------------------------------------------------------------------------
# Tool Call Request
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolCallRequest:
    """A complete tool call requested by the model.

    Attributes:
        id: Identifier assigned by the model; correlates the tool result.
        name: Name of the tool to invoke.
        arguments_json: Raw JSON argument string, exactly as streamed.
        type: Always ``"function"`` for chat-completion tool calls.
    """

    id: str
    name: str
    arguments_json: str = ""
    type: str = "function"

    def to_wire(self) -> dict[str, Any]:
        """Convert to the chat-completions ``tool_calls`` entry format."""
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


# -----------------------------------------------------------------------------
# Message
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Message:
    """Immutable chat message.

    Attributes:
        role: The role of the message sender.
        content: Text content; ``None`` for assistant messages carrying tool calls.
        tool_calls: Tool calls requested by the assistant.
        tool_call_id: ID linking a tool result to its call.
    """

    role: MessageRole
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if self.role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        if self.tool_calls is not None and not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.role == "tool":
            if not self.tool_call_id:
                raise ValueError("Tool messages require a tool_call_id")
            if self.content is None:
                raise ValueError("Tool messages require content")
        if self.role == "assistant" and self.tool_calls and self.content is not None:
            raise ValueError("Assistant messages carrying tool calls must have no content")

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def system(cls, content: str) -> Message:
        """Create a system message."""
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        """Create a user message."""
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None) -> Message:
        """Create a plain assistant reply."""
        return cls(role="assistant", content=content)

    @classmethod
    def assistant_tool_calls(cls, tool_calls: Sequence[ToolCallRequest]) -> Message:
        """Create the assistant message announcing a batch of tool calls."""
        return cls(role="assistant", content=None, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> Message:
        """Create a tool result message."""
        return cls(role="tool", content=content, tool_call_id=tool_call_id)
