"""Async HTTP transport for OpenAI-compatible chat-completion endpoints."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Mapping

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import TransportError

__all__ = [
    "ClientSettings",
    "AIClient",
    "RETRYABLE_STATUS_CODES",
]

LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
_MAX_ERROR_BODY_CHARS = 500


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 120.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    chat_path: str = "/chat/completions"
    debug_logging: bool = False

    @property
    def endpoint(self) -> str:
        """Full chat-completions URL, or ``""`` when no base URL is configured."""
        base = (self.base_url or "").strip().rstrip("/")
        if not base:
            return ""
        path = "/" + (self.chat_path or "").strip("/")
        if path == "/" or base.endswith(path):
            return base
        return base + path


def _is_retryable(exc: BaseException) -> bool:
    if not isinstance(exc, TransportError):
        return False
    if exc.status_code is not None:
        return exc.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc.__cause__, (httpx.ConnectError, httpx.ConnectTimeout))


class AIClient:
    """Async client issuing streamed chat-completion requests.

    The client performs no implicit retries: ``max_retries`` defaults to a
    single attempt. Callers that raise it get exponential backoff on connect
    failures and on 429/502/503/504 responses, always before any byte of the
    body has been handed out.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @asynccontextmanager
    async def stream_lines(self, payload: Mapping[str, Any]) -> AsyncIterator[AsyncIterator[str]]:
        """POST ``payload`` and yield an async iterator over the response lines.

        Leaving the context closes the response, which is how an in-flight
        stream is aborted.

        Raises:
            TransportError: On connection failures, timeouts, non-2xx
                responses or errors while reading the body.
        """
        LOGGER.debug(
            "Starting chat completion via %s with %s message(s)",
            payload.get("model"),
            len(payload.get("messages") or ()),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        response = await self._open(payload)
        lines = self._iter_lines(response)
        try:
            yield lines
        finally:
            await lines.aclose()
            await response.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client to release network resources."""
        if self._owns_client:
            await self._http.aclose()

    def _build_client(self, settings: ClientSettings) -> httpx.AsyncClient:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout), headers=headers)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception(_is_retryable),
        )

    def _headers(self, *, stream: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self._settings.organization:
            headers["OpenAI-Organization"] = self._settings.organization
        return headers

    async def _open(self, payload: Mapping[str, Any]) -> httpx.Response:
        async for attempt in self._retrying():
            with attempt:
                return await self._send(payload)
        raise TransportError("Request was never attempted")

    async def _send(self, payload: Mapping[str, Any]) -> httpx.Response:
        endpoint = self._settings.endpoint
        request = self._http.build_request(
            "POST",
            endpoint,
            json=dict(payload),
            headers=self._headers(stream=bool(payload.get("stream"))),
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {endpoint} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {endpoint} failed: {exc}") from exc

        if response.is_success:
            return response

        try:
            body = (await response.aread()).decode(response.encoding or "utf-8", errors="replace")
        except httpx.HTTPError:
            body = ""
        finally:
            await response.aclose()
        LOGGER.warning("Chat completion request failed with HTTP %s", response.status_code)
        snippet = body.strip()[:_MAX_ERROR_BODY_CHARS]
        raise TransportError(
            f"HTTP {response.status_code}: {snippet}" if snippet else f"HTTP {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    async def _iter_lines(self, response: httpx.Response) -> AsyncGenerator[str, None]:
        try:
            async for line in response.aiter_lines():
                yield line
        except httpx.HTTPError as exc:
            raise TransportError(f"Stream interrupted: {exc}") from exc

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)
