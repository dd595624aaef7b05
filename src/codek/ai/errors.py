"""Error taxonomy shared by the transport, the executor and the orchestrator.

Errors raised inside tool execution never leave the executor: they are turned
into conversation data tagged with an :class:`ErrorKind`. Configuration and
transport errors are fatal to the current run and surface through the error
callback.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

__all__ = [
    "ErrorKind",
    "OrchestrationError",
    "ConfigurationError",
    "TransportError",
    "TooManyTurnsError",
    "TurnCancelledError",
]


class ErrorKind(str, Enum):
    """Machine-readable error categories reported to callbacks and tools."""

    CONFIGURATION = "ConfigurationError"
    TRANSPORT = "TransportError"
    MALFORMED_STREAM_LINE = "MalformedStreamLine"
    TOOL_NOT_FOUND = "ToolNotFound"
    INVALID_ARGUMENTS = "InvalidArguments"
    TOOL_INTERNAL_ERROR = "ToolInternalError"
    APPROVAL_DENIED = "ApprovalDenied"
    TOO_MANY_TURNS = "TooManyTurns"
    CANCELLED = "Cancelled"
    INTERNAL = "InternalError"

    def __str__(self) -> str:
        return self.value


class OrchestrationError(Exception):
    """Base class for errors that end a conversation run."""

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(OrchestrationError):
    """Raised when the credential or endpoint is missing."""

    kind = ErrorKind.CONFIGURATION


class TransportError(OrchestrationError):
    """Raised on connection failures, timeouts and non-2xx responses."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class TooManyTurnsError(OrchestrationError):
    """Raised when the model keeps requesting tools past the turn limit."""

    kind = ErrorKind.TOO_MANY_TURNS

    def __init__(self, max_turns: int) -> None:
        self.max_turns = max_turns
        super().__init__(f"Conversation exceeded the maximum of {max_turns} turns")


class TurnCancelledError(OrchestrationError):
    """Raised when a run is cancelled through :meth:`ChatOrchestrator.cancel`."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Turn cancelled") -> None:
        super().__init__(message)
