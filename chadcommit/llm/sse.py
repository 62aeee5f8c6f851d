"""Incremental parser for server-sent chat completion events."""

import json
import logging

from chadcommit.llm.base import MalformedStreamChunk, ProviderRejected

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def extract_delta(event: dict) -> str:
    """Return the text fragment of one chat.completion.chunk, or ''."""
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class SSEParser:
    """Turns arbitrarily chunked response bytes into text fragments.

    Bytes are buffered until a newline arrives, so a line (or a multi-byte
    character) split across chunks is decoded only once it is complete.
    """

    def __init__(self):
        self._buffer = bytearray()
        self.done = False

    def reset(self) -> None:
        self._buffer.clear()
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the fragments of every complete line in it."""
        if self.done:
            return []
        self._buffer.extend(chunk)

        fragments = []
        while not self.done:
            end = self._buffer.find(b"\n")
            if end < 0:
                break
            raw = bytes(self._buffer[:end])
            del self._buffer[:end + 1]
            fragment = self._parse_line(raw)
            if fragment:
                fragments.append(fragment)

        if self.done:
            self._buffer.clear()
        return fragments

    def close(self) -> list[str]:
        """Flush a final line the server closed without terminating."""
        if self.done or not self._buffer:
            self._buffer.clear()
            return []
        raw = bytes(self._buffer)
        self._buffer.clear()
        fragment = self._parse_line(raw)
        return [fragment] if fragment else []

    def _parse_line(self, raw: bytes) -> str:
        line = raw.rstrip(b"\r").decode("utf-8", errors="replace")
        if not line.startswith(DATA_PREFIX):
            return ""

        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            return ""
        if payload == DONE_MARKER:
            logger.debug("Stream end marker received")
            self.done = True
            return ""

        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            raise MalformedStreamChunk(line) from None

        if not isinstance(event, dict):
            raise MalformedStreamChunk(line)

        error = event.get("error")
        if isinstance(error, dict):
            raise ProviderRejected(
                200,
                error.get("code") or error.get("type") or "unknown",
                error.get("message") or "",
            )

        return extract_delta(event)
