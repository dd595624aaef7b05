"""Unit tests for ChatOrchestrator."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Mapping

import pytest

from codek.ai.client import ClientSettings
from codek.ai.errors import ErrorKind, TransportError
from codek.ai.orchestration import (
    ChatOrchestrator,
    FunctionCallback,
    Message,
    OrchestratorConfig,
    OrchestratorState,
    ToolDefinition,
    ToolExecutor,
    ToolRegistry,
)

from tests.helpers import (
    RecordingCallback,
    ScriptedTransport,
    finish_chunk,
    text_chunk,
    text_turn,
    tool_chunk,
    tool_turn,
)


# =============================================================================
# Test Fixtures
# =============================================================================


def make_executor() -> ToolExecutor:
    registry = ToolRegistry()
    registry.register_function(
        ToolDefinition(name="echo", description="Echo the message"),
        lambda args: {"echo": args.get("message", "")},
    )
    return ToolExecutor(registry)


def make_orchestrator(
    transport: ScriptedTransport,
    *,
    max_turns: int = 8,
    model: str | None = None,
) -> ChatOrchestrator:
    return ChatOrchestrator(
        transport,
        make_executor(),
        config=OrchestratorConfig(model=model, max_turns=max_turns),
    )


def conversation() -> list[Message]:
    return [Message.system("You are a test."), Message.user("Hello")]


# =============================================================================
# Plain text
# =============================================================================


class TestTextTurns:
    @pytest.mark.asyncio
    async def test_text_answer_completes(self) -> None:
        transport = ScriptedTransport([text_turn("Hi", " there")])
        recorder = RecordingCallback()
        orchestrator = make_orchestrator(transport)

        result = await orchestrator.run(conversation(), recorder)

        assert result.succeeded
        assert result.state is OrchestratorState.DONE
        assert orchestrator.state is OrchestratorState.DONE
        assert result.text == "Hi there"
        assert result.turns == 1
        assert recorder.events == [("delta", "Hi"), ("delta", " there"), ("complete", "Hi there")]
        assert result.messages[-1] == Message.assistant("Hi there")
        assert transport.closed_streams == 1

    @pytest.mark.asyncio
    async def test_request_payload(self) -> None:
        transport = ScriptedTransport([text_turn("ok")])

        await make_orchestrator(transport).run(conversation())

        payload = transport.payloads[0]
        assert payload["model"] == "test-model"
        assert payload["stream"] is True
        assert payload["temperature"] == 0.2
        assert payload["tool_choice"] == "auto"
        assert [tool["function"]["name"] for tool in payload["tools"]] == ["echo"]
        assert payload["messages"] == [
            {"role": "system", "content": "You are a test."},
            {"role": "user", "content": "Hello"},
        ]

    @pytest.mark.asyncio
    async def test_config_model_overrides_client_model(self) -> None:
        transport = ScriptedTransport([text_turn("ok")])

        await make_orchestrator(transport, model="override-model").run(conversation())

        assert transport.payloads[0]["model"] == "override-model"

    @pytest.mark.asyncio
    async def test_input_messages_not_mutated(self) -> None:
        messages = conversation()

        result = await make_orchestrator(ScriptedTransport([text_turn("ok")])).run(messages)

        assert len(messages) == 2
        assert len(result.messages) == 3

    @pytest.mark.asyncio
    async def test_malformed_lines_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = ScriptedTransport([["data: {oops", text_chunk("fine"), finish_chunk("stop")]])

        with caplog.at_level(logging.DEBUG, logger="codek.ai.orchestration.orchestrator"):
            result = await make_orchestrator(transport).run(conversation())

        assert result.succeeded
        assert result.text == "fine"
        kinds = [getattr(record, "error_kind", None) for record in caplog.records]
        assert ErrorKind.MALFORMED_STREAM_LINE.value in kinds


# =============================================================================
# Tool calls
# =============================================================================


class TestToolTurns:
    @pytest.mark.asyncio
    async def test_tool_round_trip(self) -> None:
        transport = ScriptedTransport(
            [
                tool_turn(("call_1", "echo", '{"message": "ping"}')),
                text_turn("Echoed."),
            ]
        )
        recorder = RecordingCallback()

        result = await make_orchestrator(transport).run(conversation(), recorder)

        assert result.succeeded
        assert result.turns == 2
        assert recorder.terminal == [("complete", "Echoed.")]

        second = transport.payloads[1]["messages"]
        assert second[2] == {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "echo", "arguments": '{"message": "ping"}'},
                }
            ],
        }
        assert second[3]["role"] == "tool"
        assert second[3]["tool_call_id"] == "call_1"
        assert json.loads(second[3]["content"]) == {"echo": "ping"}

    @pytest.mark.asyncio
    async def test_each_call_gets_one_result_in_order(self) -> None:
        transport = ScriptedTransport(
            [
                tool_turn(
                    ("call_a", "echo", '{"message": "a"}'),
                    ("call_b", "missing_tool", "{}"),
                    ("call_c", "echo", "{not json"),
                ),
                text_turn("done"),
            ]
        )

        result = await make_orchestrator(transport).run(conversation())

        tool_messages = [m for m in result.messages if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["call_a", "call_b", "call_c"]
        assert json.loads(tool_messages[1].content or "")["kind"] == "ToolNotFound"
        assert json.loads(tool_messages[2].content or "")["kind"] == "InvalidArguments"
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_crashing_tool_still_answers_the_call(self) -> None:
        def explode(args: Mapping[str, str]) -> None:
            raise RuntimeError('disk "full"')

        registry = ToolRegistry()
        registry.register_function(ToolDefinition(name="explode", description="Fails"), explode)
        transport = ScriptedTransport([tool_turn(("call_1", "explode", "{}")), text_turn("Sorry.")])

        result = await ChatOrchestrator(transport, ToolExecutor(registry)).run(conversation())

        assert result.succeeded
        tool_message = transport.payloads[1]["messages"][-1]
        assert tool_message["tool_call_id"] == "call_1"
        assert json.loads(tool_message["content"])["error"] == (
            'Internal error executing tool explode: disk "full"'
        )

    @pytest.mark.asyncio
    async def test_tool_turn_without_complete_calls_ends_run(self) -> None:
        transport = ScriptedTransport(
            [[tool_chunk(0, arguments="{}"), finish_chunk("tool_calls")]]
        )
        recorder = RecordingCallback()

        result = await make_orchestrator(transport).run(conversation(), recorder)

        assert result.succeeded
        assert result.text == ""
        assert recorder.terminal == [("complete", "")]
        assert len(transport.payloads) == 1

    @pytest.mark.asyncio
    async def test_too_many_turns(self) -> None:
        transport = ScriptedTransport(
            [
                tool_turn(("c1", "echo", "{}")),
                tool_turn(("c2", "echo", "{}")),
            ]
        )
        recorder = RecordingCallback()

        result = await make_orchestrator(transport, max_turns=2).run(conversation(), recorder)

        assert result.state is OrchestratorState.FAILED
        assert result.error_kind is ErrorKind.TOO_MANY_TURNS
        assert len(transport.payloads) == 2
        assert recorder.terminal[0][0] == "error"
        assert recorder.terminal[0][1][0] is ErrorKind.TOO_MANY_TURNS

    @pytest.mark.asyncio
    async def test_too_many_turns_drops_text_of_earlier_tool_turn(self) -> None:
        transport = ScriptedTransport([[text_chunk("Let me check. "), *tool_turn(("c1", "echo", "{}"))]])

        result = await make_orchestrator(transport, max_turns=1).run(conversation())

        assert result.error_kind is ErrorKind.TOO_MANY_TURNS
        assert result.text == ""
        assert result.messages[-1].role == "tool"

    def test_max_turns_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            OrchestratorConfig(max_turns=0)


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        transport = ScriptedTransport(
            [],
            settings=ClientSettings(base_url="http://llm.test/v1", api_key="", model="m"),
        )
        recorder = RecordingCallback()

        result = await make_orchestrator(transport).run(conversation(), recorder)

        assert result.state is OrchestratorState.FAILED
        assert result.error_kind is ErrorKind.CONFIGURATION
        assert transport.payloads == []
        assert recorder.events == [("error", (ErrorKind.CONFIGURATION, "API key is not configured"))]

    @pytest.mark.asyncio
    async def test_missing_endpoint(self) -> None:
        transport = ScriptedTransport(
            [],
            settings=ClientSettings(base_url=" ", api_key="k", model="m"),
        )

        result = await make_orchestrator(transport).run(conversation())

        assert result.error_kind is ErrorKind.CONFIGURATION

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        transport = ScriptedTransport([TransportError("HTTP 500: boom", status_code=500)])
        recorder = RecordingCallback()

        result = await make_orchestrator(transport).run(conversation(), recorder)

        assert result.state is OrchestratorState.FAILED
        assert result.error_kind is ErrorKind.TRANSPORT
        assert result.error_message == "HTTP 500: boom"
        assert recorder.terminal == [("error", (ErrorKind.TRANSPORT, "HTTP 500: boom"))]

    @pytest.mark.asyncio
    async def test_transport_error_on_second_turn_keeps_log(self) -> None:
        transport = ScriptedTransport(
            [tool_turn(("c1", "echo", "{}")), TransportError("Request failed")]
        )

        result = await make_orchestrator(transport).run(conversation())

        assert result.error_kind is ErrorKind.TRANSPORT
        assert result.turns == 2
        assert [m.role for m in result.messages] == ["system", "user", "assistant", "tool"]

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self) -> None:
        transport = ScriptedTransport([text_turn("a", "b", "c")], line_delay=0.02)
        orchestrator = make_orchestrator(transport)

        task = asyncio.create_task(orchestrator.run(conversation()))
        await asyncio.sleep(0.01)
        with pytest.raises(RuntimeError):
            await orchestrator.run(conversation())
        result = await task

        assert result.succeeded


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_aborts_stream(self) -> None:
        lines = [text_chunk(f"chunk{i} ") for i in range(50)] + [finish_chunk("stop")]
        transport = ScriptedTransport([lines], line_delay=0.01)
        first_delta = asyncio.Event()
        recorder = RecordingCallback()

        def on_delta(chunk: str) -> None:
            recorder.on_text_delta(chunk)
            first_delta.set()

        callback = FunctionCallback(
            text_delta=on_delta,
            complete=recorder.on_complete,
            error=recorder.on_error,
        )
        orchestrator = make_orchestrator(transport)

        task = asyncio.create_task(orchestrator.run(conversation(), callback))
        await asyncio.wait_for(first_delta.wait(), timeout=2)
        orchestrator.cancel()
        result = await task

        assert result.state is OrchestratorState.CANCELLED
        assert result.error_kind is ErrorKind.CANCELLED
        assert recorder.terminal == [("error", (ErrorKind.CANCELLED, "Turn cancelled"))]
        assert 0 < len(recorder.deltas) < 50
        assert result.text.startswith("chunk0 ")
        assert transport.closed_streams == 1

    @pytest.mark.asyncio
    async def test_cancel_prevents_next_request(self) -> None:
        orchestrator: ChatOrchestrator

        def echo_then_cancel(args: Mapping[str, str]) -> dict:
            orchestrator.cancel()
            return {"ok": True}

        registry = ToolRegistry()
        registry.register_function(ToolDefinition(name="echo", description="Echo"), echo_then_cancel)
        transport = ScriptedTransport([tool_turn(("c1", "echo", "{}")), text_turn("never")])
        orchestrator = ChatOrchestrator(transport, ToolExecutor(registry))

        result = await orchestrator.run(conversation())

        assert result.state is OrchestratorState.CANCELLED
        assert len(transport.payloads) == 1
        assert result.messages[-1].role == "tool"

    @pytest.mark.asyncio
    async def test_outer_task_cancellation_propagates(self) -> None:
        transport = ScriptedTransport([[text_chunk("x")] * 100], line_delay=0.01)
        recorder = RecordingCallback()
        orchestrator = make_orchestrator(transport)

        task = asyncio.create_task(orchestrator.run(conversation(), recorder))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert orchestrator.state is OrchestratorState.CANCELLED
        assert recorder.terminal == [("error", (ErrorKind.CANCELLED, "Turn cancelled"))]
