"""Turn orchestrator driving request, stream and tool execution cycles.

One call to :meth:`ChatOrchestrator.run` keeps issuing requests until the
model answers with plain text, a fatal error occurs, the run is cancelled or
the turn limit is exceeded::

    AWAITING_RESPONSE -> TOOL_EXECUTION -> AWAITING_RESPONSE -> ... -> DONE
                      \\-> FAILED | CANCELLED
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncContextManager, AsyncIterator, Mapping, Protocol, Sequence

from ..client import ClientSettings
from ..errors import (
    ConfigurationError,
    ErrorKind,
    OrchestrationError,
    TooManyTurnsError,
    TurnCancelledError,
)
from .callbacks import CallbackDispatcher, StreamingCallback
from .request_builder import build_request
from .stream_parser import StreamOutcome, StreamParser, StreamState
from .tools.executor import ToolExecutor
from .types import Message

__all__ = [
    "ChatTransport",
    "OrchestratorConfig",
    "OrchestratorState",
    "TurnState",
    "ConversationResult",
    "ChatOrchestrator",
]

LOGGER = logging.getLogger(__name__)


class ChatTransport(Protocol):
    """What the orchestrator needs from the HTTP layer; :class:`AIClient` conforms."""

    @property
    def settings(self) -> ClientSettings:
        ...

    def stream_lines(self, payload: Mapping[str, Any]) -> AsyncContextManager[AsyncIterator[str]]:
        ...


# -----------------------------------------------------------------------------
# Configuration & State
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OrchestratorConfig:
    """Configuration for the orchestrator.

    Attributes:
        model: Model identifier; falls back to the transport's settings.
        temperature: Sampling temperature sent with every request.
        max_turns: Upper bound on requests per run, guarding runaway tool loops.
    """

    model: str | None = None
    temperature: float = 0.2
    max_turns: int = 8

    def __post_init__(self) -> None:
        if self.max_turns < 1:
            raise ValueError("max_turns must be at least 1")


class OrchestratorState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    TOOL_EXECUTION = "tool_execution"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class TurnState:
    """State owned by one request and its stream; discarded when the turn resolves."""

    index: int
    parser: StreamParser = field(default_factory=StreamParser)


@dataclass(slots=True, frozen=True)
class ConversationResult:
    """Outcome of a conversation run.

    Attributes:
        state: ``DONE``, ``FAILED`` or ``CANCELLED``.
        text: Final assistant text, or the partial text of the failed turn.
        messages: Working message log including assistant and tool messages.
        turns: Number of requests issued.
        error_kind: Failure category when the run did not succeed.
        error_message: Human-readable failure description.
    """

    state: OrchestratorState
    text: str
    messages: tuple[Message, ...]
    turns: int
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is OrchestratorState.DONE


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------


class ChatOrchestrator:
    """Runs multi-turn conversations with tool calling.

    Example:
        orchestrator = ChatOrchestrator(client, ToolExecutor(registry))
        result = await orchestrator.run(
            [Message.system(prompt), Message.user("Summarise a.txt")],
            FunctionCallback(text_delta=print),
        )
    """

    def __init__(
        self,
        client: ChatTransport,
        executor: ToolExecutor,
        *,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self._client = client
        self._executor = executor
        self._config = config or OrchestratorConfig()
        self._state = OrchestratorState.IDLE
        self._running = False
        self._cancel_requested = False
        self._stream_task: asyncio.Task[StreamOutcome] | None = None

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def cancel(self) -> None:
        """Cancel the running conversation.

        An in-flight stream is aborted immediately, closing the HTTP response.
        Tool calls already executing are allowed to finish, but no further
        request is issued.
        """
        self._cancel_requested = True
        task = self._stream_task
        if task is not None and not task.done():
            LOGGER.info("Cancelling in-flight stream (caller requested cancellation)")
            task.cancel()
        else:
            LOGGER.debug("cancel() called with no stream in flight")

    async def run(
        self,
        messages: Sequence[Message],
        callback: StreamingCallback | None = None,
    ) -> ConversationResult:
        """Run the conversation until the model produces a final answer.

        Fatal errors are reported through ``callback.on_error`` and the
        returned result; they are not raised. Cancelling the task running this
        coroutine still propagates :class:`asyncio.CancelledError`.

        Args:
            messages: Conversation log to start from; it is copied, not mutated.
            callback: Receives text deltas and exactly one terminal event.

        Returns:
            The run's :class:`ConversationResult`.
        """
        if self._running:
            raise RuntimeError("A conversation run is already in progress")
        self._running = True
        self._cancel_requested = False
        try:
            async with CallbackDispatcher(callback) as events:
                return await self._run(list(messages), events)
        finally:
            self._running = False
            self._stream_task = None

    async def _run(self, working: list[Message], events: CallbackDispatcher) -> ConversationResult:
        turn: TurnState | None = None
        turns = 0

        def _failed(state: OrchestratorState, kind: ErrorKind, message: str) -> ConversationResult:
            self._state = state
            events.error(kind, message)
            return ConversationResult(
                state=state,
                text=turn.parser.text if turn is not None else "",
                messages=tuple(working),
                turns=turns,
                error_kind=kind,
                error_message=message,
            )

        try:
            while True:
                turn = None
                if self._cancel_requested:
                    raise TurnCancelledError()
                turns += 1
                if turns > self._config.max_turns:
                    raise TooManyTurnsError(self._config.max_turns)

                model = self._validate_configuration()
                self._state = OrchestratorState.AWAITING_RESPONSE
                turn = TurnState(index=turns)
                payload = build_request(
                    model,
                    working,
                    self._config.temperature,
                    stream=True,
                    tools=self._executor.list_tools(),
                )
                LOGGER.debug(
                    "Turn %d: sending %d message(s) with %d tool(s)",
                    turns,
                    len(working),
                    len(payload.get("tools", ())),
                )
                outcome = await self._stream_turn(payload, turn, events)

                if not outcome.requires_tool_execution:
                    working.append(Message.assistant(outcome.text))
                    return self._done(outcome.text, working, turns, events)

                if not outcome.tool_calls:
                    LOGGER.warning(
                        "Turn %d finished for tool calls but none were complete (%d dropped)",
                        turns,
                        outcome.dropped_tool_calls,
                    )
                    return self._done("", working, turns, events)

                self._state = OrchestratorState.TOOL_EXECUTION
                working.append(Message.assistant_tool_calls(outcome.tool_calls))
                LOGGER.debug(
                    "Turn %d: executing %d tool call(s): %s",
                    turns,
                    len(outcome.tool_calls),
                    ", ".join(call.name for call in outcome.tool_calls),
                )
                results = await self._executor.execute_calls(outcome.tool_calls)
                for result in results:
                    working.append(Message.tool(result.result_payload, result.tool_call_id))
        except TurnCancelledError as exc:
            LOGGER.info("Conversation cancelled after %d turn(s)", turns)
            return _failed(OrchestratorState.CANCELLED, exc.kind, exc.message)
        except OrchestrationError as exc:
            LOGGER.warning("Conversation failed (%s): %s", exc.kind, exc.message)
            return _failed(OrchestratorState.FAILED, exc.kind, exc.message)
        except asyncio.CancelledError:
            self._state = OrchestratorState.CANCELLED
            events.error(ErrorKind.CANCELLED, "Turn cancelled")
            raise
        except Exception as exc:
            LOGGER.exception("Conversation failed with unexpected exception")
            return _failed(OrchestratorState.FAILED, ErrorKind.INTERNAL, str(exc) or type(exc).__name__)

    def _done(
        self,
        text: str,
        working: list[Message],
        turns: int,
        events: CallbackDispatcher,
    ) -> ConversationResult:
        self._state = OrchestratorState.DONE
        events.complete(text)
        LOGGER.debug("Conversation finished after %d turn(s)", turns)
        return ConversationResult(
            state=OrchestratorState.DONE,
            text=text,
            messages=tuple(working),
            turns=turns,
        )

    def _validate_configuration(self) -> str:
        settings = self._client.settings
        if not (settings.api_key or "").strip():
            raise ConfigurationError("API key is not configured")
        if not (settings.base_url or "").strip():
            raise ConfigurationError("Endpoint URL is not configured")
        model = (self._config.model or settings.model or "").strip()
        if not model:
            raise ConfigurationError("Model is not configured")
        return model

    async def _stream_turn(
        self,
        payload: Mapping[str, Any],
        turn: TurnState,
        events: CallbackDispatcher,
    ) -> StreamOutcome:
        task = asyncio.create_task(self._consume_stream(payload, turn, events))
        self._stream_task = task
        if self._cancel_requested:
            task.cancel()
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if (current is not None and current.cancelling()) or not self._cancel_requested:
                raise
            raise TurnCancelledError() from None
        finally:
            self._stream_task = None

    async def _consume_stream(
        self,
        payload: Mapping[str, Any],
        turn: TurnState,
        events: CallbackDispatcher,
    ) -> StreamOutcome:
        parser = turn.parser
        async with self._client.stream_lines(payload) as lines:
            async for line in lines:
                delta = parser.feed(line)
                if delta:
                    events.text_delta(delta)
                if parser.state is not StreamState.STREAMING:
                    break
        outcome = parser.finish()
        if outcome.malformed_lines:
            LOGGER.debug(
                "Turn %d skipped %d malformed stream line(s)",
                turn.index,
                outcome.malformed_lines,
                extra={"error_kind": ErrorKind.MALFORMED_STREAM_LINE.value},
            )
        return outcome
