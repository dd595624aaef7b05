"""Tests for orchestration/request_builder.py."""

from __future__ import annotations

import json

import pytest

from codek.ai.orchestration import (
    Message,
    ParameterSpec,
    ToolCallRequest,
    ToolDefinition,
    build_request,
    map_parameter_type,
    serialize_message,
    tool_to_schema,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("int", "integer"),
        ("Integer", "integer"),
        ("float", "number"),
        ("double", "number"),
        ("bool", "boolean"),
        ("string", "string"),
        ("date", "string"),
        (None, "string"),
    ],
)
def test_map_parameter_type(raw: str | None, expected: str) -> None:
    assert map_parameter_type(raw) == expected


class TestToolSchema:
    def test_schema_lists_properties_and_required(self) -> None:
        definition = ToolDefinition(
            name="readFile",
            description="Read a file",
            parameters=(
                ParameterSpec("filePath", "Path", "string", True),
                ParameterSpec("startLine", "First line", "int"),
            ),
        )

        schema = tool_to_schema(definition)

        assert schema == {
            "type": "function",
            "function": {
                "name": "readFile",
                "description": "Read a file",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "filePath": {"type": "string", "description": "Path"},
                        "startLine": {"type": "integer", "description": "First line"},
                    },
                    "required": ["filePath"],
                },
            },
        }

    def test_required_omitted_when_empty(self) -> None:
        schema = tool_to_schema(ToolDefinition(name="now", description="Time"))

        assert "required" not in schema["function"]["parameters"]
        assert schema["function"]["parameters"]["properties"] == {}


class TestSerializeMessage:
    def test_plain_roles(self) -> None:
        assert serialize_message(Message.system("sys")) == {"role": "system", "content": "sys"}
        assert serialize_message(Message.user("hi")) == {"role": "user", "content": "hi"}
        assert serialize_message(Message.assistant("yo")) == {"role": "assistant", "content": "yo"}

    def test_assistant_with_tool_calls_has_null_content(self) -> None:
        call = ToolCallRequest(id="call_1", name="readFile", arguments_json='{"filePath": "a"}')

        payload = serialize_message(Message.assistant_tool_calls([call]))

        assert payload == {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "readFile", "arguments": '{"filePath": "a"}'},
                }
            ],
        }

    def test_tool_message_carries_call_id(self) -> None:
        payload = serialize_message(Message.tool('{"ok": true}', "call_1"))

        assert payload == {"role": "tool", "tool_call_id": "call_1", "content": '{"ok": true}'}

    def test_missing_user_content_becomes_empty_string(self) -> None:
        payload = serialize_message(Message(role="user", content=None))

        assert payload["content"] == ""

    def test_tool_calls_on_user_message_are_ignored(self) -> None:
        call = ToolCallRequest(id="c", name="t")

        payload = serialize_message(Message(role="user", content="hi", tool_calls=(call,)))

        assert "tool_calls" not in payload


class TestBuildRequest:
    def test_payload_without_tools(self) -> None:
        payload = build_request("gpt-test", [Message.user("hi")], 0.3)

        assert payload == {
            "model": "gpt-test",
            "temperature": 0.3,
            "stream": True,
            "messages": [{"role": "user", "content": "hi"}],
        }

    def test_tools_add_tool_choice_auto(self) -> None:
        tools = [
            ToolDefinition(name="a", description="A"),
            ToolDefinition(name="b", description="B"),
        ]

        payload = build_request("m", [Message.user("hi")], 0.0, tools=tools)

        assert payload["tool_choice"] == "auto"
        assert [entry["function"]["name"] for entry in payload["tools"]] == ["a", "b"]

    def test_payload_is_json_serialisable(self) -> None:
        call = ToolCallRequest(id="c", name="t", arguments_json="{}")
        messages = [
            Message.system("s"),
            Message.user("u"),
            Message.assistant_tool_calls([call]),
            Message.tool("{}", "c"),
        ]

        encoded = json.dumps(build_request("m", messages, 0.2, stream=False))

        assert '"stream": false' in encoded
