"""Streaming chat completion session."""

import asyncio
import json
import logging
from typing import Callable

import httpx

from chadcommit.llm.base import (
    DEFAULT_ENDPOINT,
    CompletionRequest,
    ProviderRejected,
    TransportFailure,
)
from chadcommit.llm.cancellation import CancellationSignal
from chadcommit.llm.sse import SSEParser

logger = logging.getLogger(__name__)

TextSink = Callable[[str], object]


def parse_error_body(body: bytes) -> tuple[str, str]:
    """Pull (code, message) out of an OpenAI error body; code is 'unknown' if absent."""
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return "unknown", ""

    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return "unknown", ""

    code = error.get("code") or error.get("type") or "unknown"
    message = error.get("message") or ""
    return str(code), str(message)


class CompletionSession:
    """Owns one streamed request to the chat completions endpoint.

    start() resolves with the full text, or None when the signal fired.
    The sink always receives the cumulative text, never just the increment.
    """

    DEFAULT_TIMEOUT = 60.0
    CONNECT_TIMEOUT = 10.0

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._transport = transport

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def start(
        self,
        request: CompletionRequest,
        api_key: str,
        signal: CancellationSignal,
        on_text: TextSink,
    ) -> str | None:
        if signal.fired:
            return None

        task = asyncio.ensure_future(self._stream(request, api_key, signal, on_text))
        unsubscribe = signal.subscribe(task.cancel)
        try:
            return await task
        except asyncio.CancelledError:
            if signal.fired and task.cancelled():
                logger.debug("Completion cancelled")
                return None
            raise
        finally:
            unsubscribe()

    async def _stream(
        self,
        request: CompletionRequest,
        api_key: str,
        signal: CancellationSignal,
        on_text: TextSink,
    ) -> str | None:
        timeout = httpx.Timeout(self.timeout, connect=self.CONNECT_TIMEOUT)
        logger.debug("POST %s model=%s", self.endpoint, request.model)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST",
                    self.endpoint,
                    json=request.to_payload(),
                    headers=self._headers(api_key),
                ) as response:
                    if response.status_code != 200:
                        body = await response.aread()
                        code, message = parse_error_body(body)
                        logger.debug("Rejected with %s: %s", response.status_code, body[:200])
                        raise ProviderRejected(response.status_code, code, message)

                    return await self._consume(response, signal, on_text)
        except httpx.HTTPError as e:
            raise TransportFailure(e) from e

    async def _consume(
        self,
        response: httpx.Response,
        signal: CancellationSignal,
        on_text: TextSink,
    ) -> str | None:
        parser = SSEParser()
        text = ""
        chunks = 0

        async for chunk in response.aiter_bytes():
            chunks += 1
            for fragment in parser.feed(chunk):
                if signal.fired:
                    return None
                text += fragment
                on_text(text)
            if parser.done:
                break

        for fragment in parser.close():
            if signal.fired:
                return None
            text += fragment
            on_text(text)

        logger.debug("Stream finished after %d chunks, %d chars", chunks, len(text))
        return None if signal.fired else text
