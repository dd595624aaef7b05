"""Serialise conversation state into chat-completions request payloads."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence, cast

from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

from .tools.types import ParameterType, ToolDefinition
from .types import Message

__all__ = [
    "build_request",
    "serialize_message",
    "tool_to_schema",
    "map_parameter_type",
]

LOGGER = logging.getLogger(__name__)

_TYPE_ALIASES: dict[str, str] = {
    "integer": ParameterType.INTEGER,
    "int": ParameterType.INTEGER,
    "number": ParameterType.NUMBER,
    "float": ParameterType.NUMBER,
    "double": ParameterType.NUMBER,
    "boolean": ParameterType.BOOLEAN,
    "bool": ParameterType.BOOLEAN,
}


def map_parameter_type(type_name: str | None) -> str:
    """Map a parameter type name onto its JSON-schema type (default ``string``)."""
    if not type_name:
        return ParameterType.STRING
    return _TYPE_ALIASES.get(type_name.strip().lower(), ParameterType.STRING)


def tool_to_schema(definition: ToolDefinition) -> ChatCompletionToolParam:
    """Return the function-calling schema entry for ``definition``."""
    properties: Dict[str, Any] = {}
    for param in definition.parameters:
        properties[param.name] = {
            "type": map_parameter_type(param.type),
            "description": param.description,
        }

    parameters: Dict[str, Any] = {"type": "object", "properties": properties}
    required = list(definition.required_parameters)
    if required:
        parameters["required"] = required

    return cast(
        ChatCompletionToolParam,
        {
            "type": "function",
            "function": {
                "name": definition.name,
                "description": definition.description,
                "parameters": parameters,
            },
        },
    )


def serialize_message(message: Message) -> ChatCompletionMessageParam:
    """Convert a :class:`Message` into its wire mapping."""
    payload: Dict[str, Any] = {"role": message.role}

    if message.tool_calls and message.role != "assistant":
        LOGGER.warning(
            "Ignoring tool calls attached to a %s message; only assistant messages carry them",
            message.role,
        )

    if message.role == "assistant" and message.tool_calls:
        payload["content"] = None
        payload["tool_calls"] = [call.to_wire() for call in message.tool_calls]
        return cast(ChatCompletionMessageParam, payload)

    if message.role == "tool":
        payload["tool_call_id"] = message.tool_call_id
        payload["content"] = message.content
        return cast(ChatCompletionMessageParam, payload)

    if message.content is None and message.role != "assistant":
        LOGGER.warning("Serialising %s message with no content as an empty string", message.role)
        payload["content"] = ""
    else:
        payload["content"] = message.content
    return cast(ChatCompletionMessageParam, payload)


def build_request(
    model: str,
    messages: Sequence[Message],
    temperature: float,
    *,
    stream: bool = True,
    tools: Iterable[ToolDefinition] = (),
) -> Dict[str, Any]:
    """Build the outbound request body.

    Args:
        model: Model identifier.
        messages: Conversation log, in order.
        temperature: Sampling temperature.
        stream: Whether to request a server-sent-event stream.
        tools: Tool definitions to expose; when non-empty ``tool_choice`` is
            set to ``"auto"``.

    Returns:
        A JSON-serialisable dict.
    """
    serialized: List[ChatCompletionMessageParam] = [serialize_message(m) for m in messages]
    payload: Dict[str, Any] = {
        "model": model,
        "temperature": temperature,
        "stream": stream,
        "messages": serialized,
    }

    tool_specs = [tool_to_schema(definition) for definition in tools]
    if tool_specs:
        payload["tools"] = tool_specs
        payload["tool_choice"] = "auto"
    return payload
