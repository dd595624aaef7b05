"""Callback contract between the orchestrator and whoever presents its output."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from ..errors import ErrorKind

__all__ = [
    "StreamingCallback",
    "FunctionCallback",
    "CallbackDispatcher",
]

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class StreamingCallback(Protocol):
    """Receives the events of one conversation run.

    Each method may be a plain function or a coroutine function. Exactly one
    of :meth:`on_complete` and :meth:`on_error` is delivered per run.
    """

    def on_text_delta(self, chunk: str) -> None | Awaitable[None]:
        ...

    def on_complete(self, full_text: str) -> None | Awaitable[None]:
        ...

    def on_error(self, kind: ErrorKind, message: str) -> None | Awaitable[None]:
        ...


@dataclass(slots=True)
class FunctionCallback:
    """Adapts loose callables to :class:`StreamingCallback`; missing ones are no-ops."""

    text_delta: Callable[[str], Any] | None = None
    complete: Callable[[str], Any] | None = None
    error: Callable[[ErrorKind, str], Any] | None = None

    def on_text_delta(self, chunk: str) -> Any:
        if self.text_delta is not None:
            return self.text_delta(chunk)
        return None

    def on_complete(self, full_text: str) -> Any:
        if self.complete is not None:
            return self.complete(full_text)
        return None

    def on_error(self, kind: ErrorKind, message: str) -> Any:
        if self.error is not None:
            return self.error(kind, message)
        return None


_Event = tuple[str, tuple[Any, ...]]


class CallbackDispatcher:
    """Serialises callback delivery through a single drain task.

    Producers only enqueue, so the stream read loop never waits on the
    consumer; the drain task delivers events one at a time in order.

    Example:
        async with CallbackDispatcher(callback) as events:
            events.text_delta("Hello")
            events.complete("Hello")
    """

    def __init__(self, callback: StreamingCallback | None) -> None:
        self._callback = callback
        self._queue: asyncio.Queue[_Event | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._terminal_sent = False

    @property
    def terminal_sent(self) -> bool:
        """Whether a complete or error event has already been queued."""
        return self._terminal_sent

    async def __aenter__(self) -> CallbackDispatcher:
        self._task = asyncio.create_task(self._drain())
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def text_delta(self, chunk: str) -> None:
        if self._terminal_sent:
            LOGGER.warning("Dropping text delta queued after the run finished")
            return
        self._queue.put_nowait(("on_text_delta", (chunk,)))

    def complete(self, full_text: str) -> None:
        self._emit_terminal("on_complete", (full_text,))

    def error(self, kind: ErrorKind, message: str) -> None:
        self._emit_terminal("on_error", (kind, message))

    async def aclose(self) -> None:
        """Deliver everything queued so far, then stop the drain task."""
        task = self._task
        if task is None:
            return
        self._task = None
        self._queue.put_nowait(None)
        await task

    def _emit_terminal(self, name: str, args: tuple[Any, ...]) -> None:
        if self._terminal_sent:
            LOGGER.warning("Ignoring %s: a terminal event was already delivered", name)
            return
        self._terminal_sent = True
        self._queue.put_nowait((name, args))

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            name, args = event
            handler = getattr(self._callback, name, None)
            if handler is None:
                continue
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                LOGGER.exception("Streaming callback %s raised", name)
