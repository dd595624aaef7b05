"""Incremental parser for chat-completions server-sent-event streams.

The parser consumes one line at a time, accumulates text deltas and
reassembles tool calls whose id, name and argument JSON arrive split across
many chunks. One :class:`StreamParser` lives for exactly one turn.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from .types import ToolCallRequest

__all__ = [
    "SSE_DATA_PREFIX",
    "DONE_SENTINEL",
    "MAX_TOOL_CALL_INDEX",
    "StreamState",
    "ToolCallFragment",
    "FragmentAccumulator",
    "StreamOutcome",
    "StreamParser",
]

LOGGER = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Highest tool-call index accepted from the wire; larger values are bogus and
# would otherwise make the accumulator pad an enormous list.
MAX_TOOL_CALL_INDEX = 1024

FINISH_STOP = "stop"
FINISH_TOOL_CALLS = "tool_calls"


class StreamState(str, Enum):
    """Lifecycle of a single turn's stream."""

    STREAMING = "streaming"
    FINALIZING = "finalizing"
    TERMINAL = "terminal"


# -----------------------------------------------------------------------------
# Tool Call Reassembly
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolCallFragment:
    """One ``delta.tool_calls`` entry as it arrived on the wire."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments_chunk: str = ""


@dataclass(slots=True)
class _CallBuilder:
    id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)


class FragmentAccumulator:
    """Index-addressed builders for tool calls under construction.

    The first non-empty ``id`` and ``name`` seen for an index win; argument
    chunks always append in arrival order.
    """

    def __init__(self) -> None:
        self._builders: list[_CallBuilder] = []

    def __len__(self) -> int:
        return len(self._builders)

    def merge(self, fragment: ToolCallFragment) -> None:
        if fragment.index < 0:
            raise ValueError(f"Tool call index must be non-negative, got {fragment.index}")
        while len(self._builders) <= fragment.index:
            self._builders.append(_CallBuilder())
        builder = self._builders[fragment.index]
        if builder.id is None and fragment.id:
            builder.id = fragment.id
        if builder.name is None and fragment.name:
            builder.name = fragment.name
        if fragment.arguments_chunk:
            builder.arguments.append(fragment.arguments_chunk)

    def freeze(self) -> tuple[list[ToolCallRequest], int]:
        """Return the complete tool calls and the number dropped for lacking id or name."""
        calls: list[ToolCallRequest] = []
        dropped = 0
        for index, builder in enumerate(self._builders):
            if not builder.id or not builder.name:
                dropped += 1
                LOGGER.warning(
                    "Dropping tool call at index %s without %s (id=%r, name=%r)",
                    index,
                    "id" if not builder.id else "name",
                    builder.id,
                    builder.name,
                )
                continue
            calls.append(
                ToolCallRequest(
                    id=builder.id,
                    name=builder.name,
                    arguments_json="".join(builder.arguments),
                )
            )
        return calls, dropped

    def clear(self) -> None:
        self._builders.clear()


# -----------------------------------------------------------------------------
# Stream Outcome
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class StreamOutcome:
    """Everything a finished turn produced.

    Attributes:
        text: Concatenation of all text deltas, in arrival order.
        tool_calls: Complete tool calls, populated only when the turn ended
            with ``finish_reason == "tool_calls"``.
        finish_reason: Raw finish reason, ``None`` when the stream ended by
            sentinel or EOF without one.
        dropped_tool_calls: Calls discarded for missing id or name.
        malformed_lines: ``data:`` lines whose payload was not valid JSON.
    """

    text: str
    tool_calls: tuple[ToolCallRequest, ...] = ()
    finish_reason: str | None = None
    dropped_tool_calls: int = 0
    malformed_lines: int = 0

    @property
    def requires_tool_execution(self) -> bool:
        return self.finish_reason == FINISH_TOOL_CALLS


# -----------------------------------------------------------------------------
# Stream Parser
# -----------------------------------------------------------------------------


class StreamParser:
    """State machine over the lines of one streamed response.

    Example:
        parser = StreamParser()
        async for line in lines:
            delta = parser.feed(line)
            if delta:
                await callback.on_text_delta(delta)
            if parser.state is not StreamState.STREAMING:
                break
        outcome = parser.finish()
    """

    def __init__(self) -> None:
        self._state = StreamState.STREAMING
        self._text_parts: list[str] = []
        self._accumulator = FragmentAccumulator()
        self._finish_reason: str | None = None
        self._tool_calls: tuple[ToolCallRequest, ...] = ()
        self._dropped = 0
        self._malformed = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return "".join(self._text_parts)

    @property
    def malformed_lines(self) -> int:
        return self._malformed

    def feed(self, line: str) -> str | None:
        """Process one line of the stream.

        Returns:
            The text delta carried by the line, if any.
        """
        if self._state is not StreamState.STREAMING:
            return None

        line = line.strip()
        if not line.startswith(SSE_DATA_PREFIX):
            return None

        data = line[len(SSE_DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            LOGGER.debug("Stream sentinel received")
            self._state = StreamState.TERMINAL
            return None
        if not data:
            return None

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            self._malformed += 1
            LOGGER.debug("Skipping malformed stream line (%s): %s", exc, data[:200])
            return None
        if not isinstance(chunk, dict):
            self._malformed += 1
            LOGGER.debug("Skipping non-object stream payload: %s", data[:200])
            return None

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        if not isinstance(choice, dict):
            return None

        text: str | None = None
        delta = choice.get("delta")
        if isinstance(delta, dict):
            text = self._apply_content(delta.get("content"))
            tool_calls = delta.get("tool_calls")
            if tool_calls is not None:
                self._apply_tool_calls(tool_calls)

        finish_reason = choice.get("finish_reason")
        if finish_reason is not None:
            self._apply_finish_reason(finish_reason)
        return text

    def finish(self) -> StreamOutcome:
        """Finalize the turn and return what it produced.

        Reaching the end of the stream without a sentinel or finish reason
        counts as a terminal end of turn.
        """
        if self._state is StreamState.STREAMING:
            LOGGER.debug("Stream ended without sentinel or finish reason")
            self._state = StreamState.TERMINAL
        return StreamOutcome(
            text=self.text,
            tool_calls=self._tool_calls,
            finish_reason=self._finish_reason,
            dropped_tool_calls=self._dropped,
            malformed_lines=self._malformed,
        )

    def _apply_content(self, content: Any) -> str | None:
        if content is None:
            return None
        if not isinstance(content, str):
            LOGGER.warning("Ignoring non-string delta content of type %s", type(content).__name__)
            return None
        if not content:
            return None
        self._text_parts.append(content)
        return content

    def _apply_tool_calls(self, raw_calls: Any) -> None:
        if not isinstance(raw_calls, Sequence) or isinstance(raw_calls, str):
            LOGGER.warning("Ignoring malformed delta.tool_calls of type %s", type(raw_calls).__name__)
            return
        for raw in raw_calls:
            fragment = _parse_fragment(raw)
            if fragment is not None:
                self._accumulator.merge(fragment)

    def _apply_finish_reason(self, finish_reason: Any) -> None:
        self._finish_reason = str(finish_reason)
        if self._finish_reason == FINISH_TOOL_CALLS:
            calls, dropped = self._accumulator.freeze()
            self._tool_calls = tuple(calls)
            self._dropped = dropped
            self._accumulator.clear()
            self._state = StreamState.FINALIZING
            LOGGER.debug("Stream finished with %s tool call(s), %s dropped", len(calls), dropped)
            return
        if self._finish_reason != FINISH_STOP:
            LOGGER.warning("Treating finish reason %r as 'stop'", self._finish_reason)
        self._state = StreamState.TERMINAL


def _parse_fragment(raw: Any) -> ToolCallFragment | None:
    if not isinstance(raw, dict):
        LOGGER.warning("Skipping tool call fragment that is not an object: %r", raw)
        return None

    index = raw.get("index")
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        LOGGER.warning("Skipping tool call fragment with invalid index %r", index)
        return None
    if index > MAX_TOOL_CALL_INDEX:
        LOGGER.warning(
            "Skipping tool call fragment with index %s above limit %s",
            index,
            MAX_TOOL_CALL_INDEX,
        )
        return None

    function = raw.get("function")
    if not isinstance(function, dict):
        function = {}

    arguments = function.get("arguments")
    if arguments is None:
        chunk = ""
    elif isinstance(arguments, str):
        chunk = arguments
    else:
        chunk = json.dumps(arguments, ensure_ascii=False)

    call_id = raw.get("id")
    name = function.get("name")
    return ToolCallFragment(
        index=index,
        id=call_id if isinstance(call_id, str) else None,
        name=name if isinstance(name, str) else None,
        arguments_chunk=chunk,
    )
