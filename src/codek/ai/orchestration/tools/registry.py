"""Tool registry for the orchestration loop.

This module provides a registry for managing tool registrations. Tools are
registered once, before the orchestrator starts, and the registry is only
read afterwards, which keeps lookups safe from concurrent tool executions.
"""

from __future__ import annotations

import logging
from typing import Iterator

from .types import AsyncToolHandler, SimpleTool, Tool, ToolDefinition, ToolHandler

__all__ = [
    "ToolRegistry",
    "DuplicateToolError",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class DuplicateToolError(Exception):
    """Raised when attempting to register a tool with a name that already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


# -----------------------------------------------------------------------------
# Tool Registry
# -----------------------------------------------------------------------------


class ToolRegistry:
    """Registry mapping tool names to executable tools.

    Registration order is preserved so the outbound tool schema and the
    system prompt catalogue are reproducible.

    Example:
        registry = ToolRegistry()

        # Register a Tool instance
        registry.register(my_tool)

        # Register a function with a definition
        registry.register_function(
            ToolDefinition(name="greet", description="Greet"),
            lambda args: f"Hello, {args['name']}!",
        )
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> Tool:
        """Register a tool implementation.

        Args:
            tool: The tool to register.

        Returns:
            The registered tool.

        Raises:
            DuplicateToolError: If the tool name is already registered.
        """
        name = tool.name
        if name in self._tools:
            raise DuplicateToolError(name)
        self._tools[name] = tool
        LOGGER.debug("Registered tool: %s", name)
        return tool

    def register_function(
        self,
        definition: ToolDefinition,
        handler: ToolHandler | AsyncToolHandler,
    ) -> Tool:
        """Register a sync or async function as a tool.

        Raises:
            DuplicateToolError: If the tool name is already registered.
        """
        return self.register(SimpleTool(definition=definition, handler=handler))

    def get(self, name: str) -> Tool | None:
        """Get a tool by name, or ``None`` when it is not registered."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[ToolDefinition]:
        """List tool definitions in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
