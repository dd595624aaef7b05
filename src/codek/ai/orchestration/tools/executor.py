"""Tool executor for the orchestration loop.

This module provides the ToolExecutor class that parses model-supplied
arguments, runs registered tools and wraps every outcome, success or
failure, in a :class:`ToolExecutionResult`. Nothing raised by a tool
escapes this boundary: a crashed tool still yields a ``tool`` message so the
conversation can continue.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Mapping, Sequence

from ...errors import ErrorKind
from ...tools.errors import ToolError
from ..types import ToolCallRequest
from .registry import ToolRegistry
from .types import Tool, ToolDefinition

__all__ = [
    "ToolExecutor",
    "ExecutorConfig",
    "ToolExecutionResult",
    "ApprovalHook",
    "parse_tool_arguments",
    "format_tool_result_content",
]

LOGGER = logging.getLogger(__name__)

# Called before running a tool flagged ``requires_approval``.
ApprovalHook = Callable[[ToolDefinition, Mapping[str, str]], "bool | Awaitable[bool]"]


# -----------------------------------------------------------------------------
# Executor Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ExecutorConfig:
    """Configuration for the tool executor.

    Attributes:
        default_timeout: Timeout per tool call in seconds; ``None`` disables it.
        log_arguments: Whether to log tool arguments (may contain file content).
        log_results: Whether to log tool results.
    """

    default_timeout: float | None = None
    log_arguments: bool = False
    log_results: bool = False


# -----------------------------------------------------------------------------
# Result Type
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolExecutionResult:
    """Uniform envelope for a single tool invocation.

    Attributes:
        tool_name: Name of the tool that was called.
        success: Whether execution succeeded.
        result_payload: JSON string sent back to the model.
        tool_call_id: The ID of the originating tool call.
        arguments_used: Parsed arguments, when parsing succeeded.
        error_kind: Failure category, ``None`` on success.
        duration_ms: Execution time in milliseconds.
    """

    tool_name: str
    success: bool
    result_payload: str
    tool_call_id: str = ""
    arguments_used: Mapping[str, str] | None = None
    error_kind: ErrorKind | None = None
    duration_ms: float = 0.0

    @classmethod
    def from_success(
        cls,
        tool_name: str,
        result: Any,
        *,
        arguments: Mapping[str, str] | None = None,
        duration_ms: float = 0.0,
    ) -> ToolExecutionResult:
        """Create a successful result."""
        return cls(
            tool_name=tool_name,
            success=True,
            result_payload=format_tool_result_content(result),
            arguments_used=arguments,
            duration_ms=duration_ms,
        )

    @classmethod
    def from_error(
        cls,
        tool_name: str,
        kind: ErrorKind,
        message: str,
        *,
        arguments: Mapping[str, str] | None = None,
        extra: Mapping[str, Any] | None = None,
        duration_ms: float = 0.0,
    ) -> ToolExecutionResult:
        """Create a failed result with an error-shaped JSON payload."""
        payload: dict[str, Any] = {"error": message, "kind": kind.value, "tool": tool_name}
        if extra:
            payload.update(extra)
        return cls(
            tool_name=tool_name,
            success=False,
            result_payload=json.dumps(payload, ensure_ascii=False),
            arguments_used=arguments,
            error_kind=kind,
            duration_ms=duration_ms,
        )

    def with_call_id(self, tool_call_id: str) -> ToolExecutionResult:
        return replace(self, tool_call_id=tool_call_id)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------


def parse_tool_arguments(arguments_json: str | None) -> dict[str, str]:
    """Parse tool arguments into a flat string-keyed, string-valued map.

    Scalars are coerced to their string form (``5`` -> ``"5"``, ``true`` ->
    ``"true"``) and JSON ``null`` values are dropped.

    Raises:
        ValueError: If the text is not a JSON object of scalar values.
    """
    if arguments_json is None or not arguments_json.strip():
        return {}

    try:
        parsed = json.loads(arguments_json)
    except json.JSONDecodeError as e:
        raise ValueError(str(e)) from e

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(parsed).__name__}")

    arguments: dict[str, str] = {}
    for key, value in parsed.items():
        if value is None:
            continue
        if isinstance(value, str):
            arguments[key] = value
        elif isinstance(value, (bool, int, float)):
            arguments[key] = json.dumps(value)
        else:
            raise ValueError(f"Argument '{key}' must be a string, number or boolean")
    return arguments


def format_tool_result_content(result: Any) -> str:
    """Format a tool's return value for inclusion in a ``tool`` message."""
    if result is None:
        return "null"

    if isinstance(result, str):
        return result

    if isinstance(result, (dict, list, bool, int, float)):
        try:
            return json.dumps(result, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(result)

    return str(result)


# -----------------------------------------------------------------------------
# Tool Executor
# -----------------------------------------------------------------------------


class ToolExecutor:
    """Executor for running tools from a registry.

    Example:
        registry = ToolRegistry()
        registry.register(my_tool)

        executor = ToolExecutor(registry)
        result = await executor.execute("my_tool", '{"arg": "value"}')
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: ExecutorConfig | None = None,
        *,
        approval_hook: ApprovalHook | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            registry: The tool registry to use.
            config: Optional executor configuration.
            approval_hook: Consulted before tools that require approval; when
                omitted every call is approved.
        """
        self._registry = registry
        self._config = config or ExecutorConfig()
        self._approval_hook = approval_hook

    @property
    def registry(self) -> ToolRegistry:
        """Get the underlying tool registry."""
        return self._registry

    @property
    def config(self) -> ExecutorConfig:
        """Get the executor configuration."""
        return self._config

    def list_tools(self) -> list[ToolDefinition]:
        return self._registry.list_tools()

    async def execute(
        self,
        name: str,
        arguments_json: str,
        *,
        call_id: str = "",
    ) -> ToolExecutionResult:
        """Execute a tool by name with raw JSON arguments.

        Never raises for tool-side problems; unknown tools, bad arguments,
        denied approvals and tool exceptions all come back as failed results.

        Args:
            name: Name of the tool to execute.
            arguments_json: Arguments exactly as streamed by the model.
            call_id: ID of the originating tool call.

        Returns:
            The execution result tagged with ``call_id``.
        """
        result = await self._execute(name, arguments_json, call_id)
        return result.with_call_id(call_id)

    async def execute_calls(
        self,
        calls: Sequence[ToolCallRequest],
    ) -> list[ToolExecutionResult]:
        """Execute tool calls concurrently and wait for all of them.

        Returns:
            Results in the same order as ``calls``.
        """
        if not calls:
            return []
        tasks = [self.execute(call.name, call.arguments_json, call_id=call.id) for call in calls]
        return list(await asyncio.gather(*tasks))

    async def _execute(self, name: str, arguments_json: str, call_id: str) -> ToolExecutionResult:
        tool = self._registry.get(name)
        if tool is None:
            LOGGER.warning("Tool '%s' not found (call_id=%s)", name, call_id)
            return ToolExecutionResult.from_error(
                name, ErrorKind.TOOL_NOT_FOUND, f"Tool not found: {name}"
            )

        try:
            arguments = parse_tool_arguments(arguments_json)
        except ValueError as e:
            LOGGER.warning("Failed to parse arguments for tool %s: %s", name, e)
            return ToolExecutionResult.from_error(
                name,
                ErrorKind.INVALID_ARGUMENTS,
                f"Invalid JSON arguments for tool {name}: {e}",
            )

        if self._config.log_arguments:
            LOGGER.debug(
                "Executing tool %s (call_id=%s) with arguments: %s",
                name,
                call_id,
                arguments,
            )
        else:
            LOGGER.debug("Executing tool %s (call_id=%s)", name, call_id)

        if tool.definition.requires_approval and not await self._approve(tool.definition, arguments):
            LOGGER.info("Tool %s was not approved (call_id=%s)", name, call_id)
            return ToolExecutionResult.from_error(
                name,
                ErrorKind.APPROVAL_DENIED,
                f"The user declined to run tool {name}",
                arguments=arguments,
            )

        start_time = time.perf_counter()
        try:
            raw_result = await self._run(tool, arguments)
        except TimeoutError:
            duration_ms = (time.perf_counter() - start_time) * 1000
            LOGGER.warning(
                "Tool %s timed out after %.1fms (timeout=%ss)",
                name,
                duration_ms,
                self._config.default_timeout,
            )
            return ToolExecutionResult.from_error(
                name,
                ErrorKind.TOOL_INTERNAL_ERROR,
                f"Internal error executing tool {name}: timed out after {self._config.default_timeout}s",
                arguments=arguments,
                duration_ms=duration_ms,
            )
        except ToolError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            LOGGER.warning("Tool %s failed after %.1fms: %s", name, duration_ms, e)
            return ToolExecutionResult.from_error(
                name,
                ErrorKind.TOOL_INTERNAL_ERROR,
                f"Internal error executing tool {name}: {e.message}",
                arguments=arguments,
                extra=e.to_dict(),
                duration_ms=duration_ms,
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            error_msg = str(e) or type(e).__name__
            LOGGER.warning("Tool %s failed after %.1fms: %s", name, duration_ms, error_msg, exc_info=True)
            return ToolExecutionResult.from_error(
                name,
                ErrorKind.TOOL_INTERNAL_ERROR,
                f"Internal error executing tool {name}: {error_msg}",
                arguments=arguments,
                duration_ms=duration_ms,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        result = ToolExecutionResult.from_success(
            name, raw_result, arguments=arguments, duration_ms=duration_ms
        )
        if self._config.log_results:
            LOGGER.debug(
                "Tool %s completed in %.1fms with result: %s",
                name,
                duration_ms,
                result.result_payload,
            )
        else:
            LOGGER.debug("Tool %s completed in %.1fms", name, duration_ms)
        return result

    async def _run(self, tool: Tool, arguments: Mapping[str, str]) -> Any:
        timeout = self._config.default_timeout
        if timeout is not None and timeout > 0:
            return await asyncio.wait_for(tool.execute(arguments), timeout=timeout)
        return await tool.execute(arguments)

    async def _approve(self, definition: ToolDefinition, arguments: Mapping[str, str]) -> bool:
        if self._approval_hook is None:
            return True
        try:
            decision = self._approval_hook(definition, arguments)
            if inspect.isawaitable(decision):
                decision = await decision
        except Exception:
            LOGGER.exception("Approval hook failed for tool %s; treating as denied", definition.name)
            return False
        return bool(decision)
