"""Tool system for the orchestration loop.

This package provides the tool registry, executor, and related types
for managing and executing tools requested by the model.

Example:
    from codek.ai.orchestration.tools import (
        ParameterSpec,
        ToolDefinition,
        ToolExecutor,
        ToolRegistry,
    )

    # Create registry and register tools
    registry = ToolRegistry()
    registry.register_function(
        ToolDefinition(
            name="greet",
            description="Greet someone",
            parameters=(ParameterSpec(name="name", required=True),),
        ),
        lambda args: f"Hello, {args.get('name', 'World')}!",
    )

    # Create executor and run tools
    executor = ToolExecutor(registry)
    result = await executor.execute("greet", '{"name": "Alice"}')
"""

from .types import (
    ParameterType,
    ParameterSpec,
    ToolDefinition,
    ToolHandler,
    AsyncToolHandler,
    Tool,
    SimpleTool,
)

from .registry import (
    ToolRegistry,
    DuplicateToolError,
)

from .executor import (
    ToolExecutor,
    ExecutorConfig,
    ToolExecutionResult,
    ApprovalHook,
    parse_tool_arguments,
    format_tool_result_content,
)

__all__ = [
    # types.py
    "ParameterType",
    "ParameterSpec",
    "ToolDefinition",
    "ToolHandler",
    "AsyncToolHandler",
    "Tool",
    "SimpleTool",
    # registry.py
    "ToolRegistry",
    "DuplicateToolError",
    # executor.py
    "ToolExecutor",
    "ExecutorConfig",
    "ToolExecutionResult",
    "ApprovalHook",
    "parse_tool_arguments",
    "format_tool_result_content",
]
