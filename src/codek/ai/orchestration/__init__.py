"""Streaming chat orchestration: messages, parsing, tools and the turn loop."""

from .types import (
    MESSAGE_ROLES,
    Message,
    MessageRole,
    ToolCallRequest,
)

from .request_builder import (
    build_request,
    map_parameter_type,
    serialize_message,
    tool_to_schema,
)

from .stream_parser import (
    DONE_SENTINEL,
    MAX_TOOL_CALL_INDEX,
    FragmentAccumulator,
    StreamOutcome,
    StreamParser,
    StreamState,
    ToolCallFragment,
)

from .callbacks import (
    CallbackDispatcher,
    FunctionCallback,
    StreamingCallback,
)

from .orchestrator import (
    ChatOrchestrator,
    ChatTransport,
    ConversationResult,
    OrchestratorConfig,
    OrchestratorState,
    TurnState,
)

from .tools import (
    DuplicateToolError,
    ExecutorConfig,
    ParameterSpec,
    ParameterType,
    SimpleTool,
    Tool,
    ToolDefinition,
    ToolExecutionResult,
    ToolExecutor,
    ToolRegistry,
)

__all__ = [
    # types.py
    "MESSAGE_ROLES",
    "Message",
    "MessageRole",
    "ToolCallRequest",
    # request_builder.py
    "build_request",
    "map_parameter_type",
    "serialize_message",
    "tool_to_schema",
    # stream_parser.py
    "DONE_SENTINEL",
    "MAX_TOOL_CALL_INDEX",
    "FragmentAccumulator",
    "StreamOutcome",
    "StreamParser",
    "StreamState",
    "ToolCallFragment",
    # callbacks.py
    "CallbackDispatcher",
    "FunctionCallback",
    "StreamingCallback",
    # orchestrator.py
    "ChatOrchestrator",
    "ChatTransport",
    "ConversationResult",
    "OrchestratorConfig",
    "OrchestratorState",
    "TurnState",
    # tools
    "DuplicateToolError",
    "ExecutorConfig",
    "ParameterSpec",
    "ParameterType",
    "SimpleTool",
    "Tool",
    "ToolDefinition",
    "ToolExecutionResult",
    "ToolExecutor",
    "ToolRegistry",
]
