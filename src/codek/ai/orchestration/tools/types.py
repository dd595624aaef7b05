"""Tool system types for the orchestration loop.

This module defines the tool definition consumed by the request builder and
the prompt assembler, plus the protocol every executable tool follows.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping, Protocol, runtime_checkable

__all__ = [
    "ParameterType",
    "ParameterSpec",
    "ToolDefinition",
    "ToolHandler",
    "AsyncToolHandler",
    "Tool",
    "SimpleTool",
]


# -----------------------------------------------------------------------------
# Parameter Types
# -----------------------------------------------------------------------------


class ParameterType:
    """Parameter type names understood by the request builder."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


# -----------------------------------------------------------------------------
# Tool Definition
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ParameterSpec:
    """A single tool parameter.

    Attributes:
        name: Argument key the model must use.
        description: Human-readable description shown to the model.
        type: One of :class:`ParameterType`; unknown values serialise as string.
        required: Whether the model must always supply the argument.
    """

    name: str
    description: str = ""
    type: str = ParameterType.STRING
    required: bool = False


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    """Specification for a tool's interface.

    Attributes:
        name: Unique identifier for the tool.
        description: What the tool does, shown to the model.
        parameters: Ordered parameter specifications.
        requires_approval: Whether a user must approve each call.
    """

    name: str
    description: str
    parameters: tuple[ParameterSpec, ...] = field(default_factory=tuple)
    requires_approval: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool definitions require a name")
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def required_parameters(self) -> tuple[str, ...]:
        return tuple(param.name for param in self.parameters if param.required)


# -----------------------------------------------------------------------------
# Tool Handler Types
# -----------------------------------------------------------------------------

# Synchronous tool handler
ToolHandler = Callable[[Mapping[str, str]], Any]

# Asynchronous tool handler
AsyncToolHandler = Callable[[Mapping[str, str]], Coroutine[Any, Any, Any]]


# -----------------------------------------------------------------------------
# Tool Protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class Tool(Protocol):
    """Protocol for tool implementations.

    Tools receive a flat string-keyed, string-valued argument map and return
    a JSON string (or a JSON-serialisable value). Raising is allowed; the
    executor turns every exception into an error result.
    """

    @property
    def name(self) -> str:
        """Get the tool's unique name."""
        ...

    @property
    def definition(self) -> ToolDefinition:
        """Get the tool's definition."""
        ...

    async def execute(self, arguments: Mapping[str, str]) -> Any:
        """Execute the tool with the given arguments."""
        ...


# -----------------------------------------------------------------------------
# Simple Tool Implementation
# -----------------------------------------------------------------------------


@dataclass
class SimpleTool:
    """Tool implementation wrapping a callable.

    Synchronous handlers run in a worker thread so blocking file or network
    I/O does not stall the event loop.

    Example:
        def my_handler(args: Mapping[str, str]) -> str:
            return json.dumps({"greeting": f"Hello, {args.get('name', 'World')}!"})

        tool = SimpleTool(
            definition=ToolDefinition(name="greet", description="Greet someone"),
            handler=my_handler,
        )
    """

    definition: ToolDefinition
    handler: ToolHandler | AsyncToolHandler
    _is_async: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self._is_async = inspect.iscoroutinefunction(self.handler)

    @property
    def name(self) -> str:
        """Get the tool's name from its definition."""
        return self.definition.name

    async def execute(self, arguments: Mapping[str, str]) -> Any:
        """Execute the tool handler."""
        if self._is_async:
            return await self.handler(arguments)  # type: ignore[misc]
        return await asyncio.to_thread(self.handler, arguments)
