"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence

from codek.ai.client import ClientSettings
from codek.ai.errors import ErrorKind


def sse(payload: Mapping[str, Any] | str) -> str:
    """Render one ``data:`` line; mappings are JSON-encoded."""
    if isinstance(payload, str):
        return f"data: {payload}"
    return f"data: {json.dumps(payload)}"


def text_chunk(text: str, finish_reason: str | None = None) -> str:
    return sse({"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": finish_reason}]})


def finish_chunk(reason: str) -> str:
    return sse({"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]})


def tool_chunk(
    index: int,
    *,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> str:
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    call: dict[str, Any] = {"index": index, "function": function}
    if call_id is not None:
        call["id"] = call_id
        call["type"] = "function"
    return sse({"choices": [{"index": 0, "delta": {"tool_calls": [call]}, "finish_reason": None}]})


DONE = sse("[DONE]")


def text_turn(*chunks: str) -> list[str]:
    """A complete plain-text turn ending with ``stop`` and the sentinel."""
    return [*(text_chunk(chunk) for chunk in chunks), finish_chunk("stop"), DONE]


def tool_turn(*calls: tuple[str, str, str]) -> list[str]:
    """A complete turn requesting ``(id, name, arguments)`` tool calls."""
    lines = []
    for index, (call_id, name, arguments) in enumerate(calls):
        lines.append(tool_chunk(index, call_id=call_id, name=name))
        lines.append(tool_chunk(index, arguments=arguments))
    lines.extend([finish_chunk("tool_calls"), DONE])
    return lines


class ScriptedTransport:
    """Stand-in for :class:`AIClient` replaying one scripted line list per request.

    Each entry of ``turns`` is either a list of lines or an exception to raise
    when the request is opened. Sent payloads are recorded in ``payloads``.
    """

    def __init__(
        self,
        turns: Iterable[Sequence[str] | BaseException],
        *,
        settings: ClientSettings | None = None,
        line_delay: float = 0.0,
    ) -> None:
        self.settings = settings or ClientSettings(
            base_url="http://llm.test/v1",
            api_key="test-key",
            model="test-model",
        )
        self._turns = list(turns)
        self.payloads: list[dict[str, Any]] = []
        self.closed_streams = 0
        self.line_delay = line_delay

    @asynccontextmanager
    async def stream_lines(self, payload: Mapping[str, Any]) -> AsyncIterator[AsyncIterator[str]]:
        self.payloads.append(json.loads(json.dumps(payload)))
        if not self._turns:
            raise AssertionError("Transport received more requests than scripted")
        turn = self._turns.pop(0)
        if isinstance(turn, BaseException):
            raise turn

        async def _lines() -> AsyncIterator[str]:
            for line in turn:
                if self.line_delay:
                    await asyncio.sleep(self.line_delay)
                yield line

        try:
            yield _lines()
        finally:
            self.closed_streams += 1


class RecordingCallback:
    """Collects every streaming event in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_text_delta(self, chunk: str) -> None:
        self.events.append(("delta", chunk))

    def on_complete(self, full_text: str) -> None:
        self.events.append(("complete", full_text))

    def on_error(self, kind: ErrorKind, message: str) -> None:
        self.events.append(("error", (kind, message)))

    @property
    def deltas(self) -> list[str]:
        return [value for name, value in self.events if name == "delta"]

    @property
    def terminal(self) -> list[tuple[str, Any]]:
        return [event for event in self.events if event[0] in {"complete", "error"}]
