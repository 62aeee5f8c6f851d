"""
Tests for the streaming core: SSEParser, CancellationSignal, CompletionSession.

Run with:
    pytest tests/test_streaming.py -v
"""

import asyncio
import json

import httpx
import pytest

from chadcommit.llm import (
    CancellationSignal,
    ChatMessage,
    CompletionRequest,
    CompletionSession,
    MalformedStreamChunk,
    ProviderRejected,
    SSEParser,
    TransportFailure,
)
from chadcommit.llm.session import parse_error_body


def event(content: str | None = None, role: str | None = None) -> bytes:
    """One 'data:' line of a chat.completion.chunk stream."""
    delta = {}
    if role:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    return f"data: {json.dumps({'choices': [{'delta': delta}]})}\n".encode()


DONE = b"data: [DONE]\n"

FIX_BUG_STREAM = event("fix: ") + event("bug") + DONE


def feed_all(parser: SSEParser, chunks) -> str:
    out = []
    for chunk in chunks:
        out.extend(parser.feed(chunk))
    out.extend(parser.close())
    return "".join(out)


@pytest.fixture
def request_body():
    return CompletionRequest(
        messages=(ChatMessage(role="user", content="x"),),
        model="m",
        max_tokens=256,
    )


# ---------------------------------------------------------------------------
# SSEParser
# ---------------------------------------------------------------------------

class TestSSEParser:

    def test_extracts_fragments_in_order(self):
        parser = SSEParser()
        assert parser.feed(event("fix: ") + event("bug")) == ["fix: ", "bug"]

    def test_partial_line_waits_for_newline(self):
        parser = SSEParser()
        line = event("hello")
        assert parser.feed(line[:10]) == []
        assert parser.feed(line[10:]) == ["hello"]

    def test_every_split_point_gives_same_text(self):
        stream = event(role="assistant") + event("feat(ui): ") + event("add ✓ émoji 🚀") + DONE
        expected = "feat(ui): add ✓ émoji 🚀"

        for i in range(len(stream) + 1):
            parser = SSEParser()
            assert feed_all(parser, [stream[:i], stream[i:]]) == expected, f"split at {i}"

    def test_byte_by_byte(self):
        stream = event("héllo ") + event("wörld") + DONE
        parser = SSEParser()
        assert feed_all(parser, [stream[i:i + 1] for i in range(len(stream))]) == "héllo wörld"

    def test_role_only_event_yields_nothing(self):
        parser = SSEParser()
        assert parser.feed(event(role="assistant")) == []

    def test_finish_event_yields_nothing(self):
        parser = SSEParser()
        line = b'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n'
        assert parser.feed(line) == []

    def test_ignores_non_data_lines(self):
        parser = SSEParser()
        chunk = b": keep-alive\n\nevent: message\n" + event("ok") + b"\n"
        assert parser.feed(chunk) == ["ok"]

    def test_crlf_line_endings(self):
        parser = SSEParser()
        chunk = event("a").replace(b"\n", b"\r\n") + b"data: [DONE]\r\n"
        assert parser.feed(chunk) == ["a"]
        assert parser.done

    def test_done_marker_stops_parsing(self):
        parser = SSEParser()
        assert parser.feed(event("a") + DONE + event("b")) == ["a"]
        assert parser.done
        assert parser.feed(event("c")) == []
        assert parser.close() == []

    def test_malformed_json_raises(self):
        parser = SSEParser()
        with pytest.raises(MalformedStreamChunk):
            parser.feed(b'data: {"choices": [\n')

    def test_non_object_json_raises(self):
        parser = SSEParser()
        with pytest.raises(MalformedStreamChunk):
            parser.feed(b"data: [1, 2]\n")

    def test_empty_data_line_ignored(self):
        parser = SSEParser()
        assert parser.feed(b"data:\n" + event("x")) == ["x"]

    def test_in_stream_error_raises_provider_rejected(self):
        parser = SSEParser()
        line = b'data: {"error": {"code": "server_error", "message": "boom"}}\n'
        with pytest.raises(ProviderRejected) as exc_info:
            parser.feed(line)
        assert exc_info.value.code == "server_error"

    def test_close_flushes_unterminated_line(self):
        parser = SSEParser()
        assert parser.feed(event("tail").rstrip(b"\n")) == []
        assert parser.close() == ["tail"]

    def test_reset_clears_state(self):
        parser = SSEParser()
        parser.feed(DONE)
        parser.reset()
        assert not parser.done
        assert parser.feed(event("again")) == ["again"]


# ---------------------------------------------------------------------------
# CancellationSignal
# ---------------------------------------------------------------------------

class TestCancellationSignal:

    def test_fire_runs_subscribers_once(self):
        signal = CancellationSignal()
        calls = []
        signal.subscribe(lambda: calls.append("a"))
        signal.subscribe(lambda: calls.append("b"))

        signal.fire()
        signal.fire()

        assert signal.fired
        assert calls == ["a", "b"]

    def test_unsubscribe(self):
        signal = CancellationSignal()
        calls = []
        unsubscribe = signal.subscribe(lambda: calls.append(1))
        unsubscribe()
        signal.fire()
        assert calls == []

    def test_subscribe_after_fire_runs_immediately(self):
        signal = CancellationSignal()
        signal.fire()
        calls = []
        signal.subscribe(lambda: calls.append(1))
        assert calls == [1]


# ---------------------------------------------------------------------------
# CompletionSession
# ---------------------------------------------------------------------------

def make_session(handler) -> CompletionSession:
    return CompletionSession(endpoint="https://api.test/v1/chat/completions",
                             transport=httpx.MockTransport(handler))


def stream_response(*chunks: bytes) -> httpx.Response:
    async def body():
        for chunk in chunks:
            yield chunk

    return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=body())


class TestCompletionSession:

    @pytest.mark.asyncio
    async def test_end_to_end_fix_bug(self, request_body):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return stream_response(event("fix: "), event("bug"), DONE)

        calls = []
        result = await make_session(handler).start(request_body, "sk-test", CancellationSignal(), calls.append)

        assert calls == ["fix: ", "fix: bug"]
        assert result == "fix: bug"

        sent = seen["request"]
        assert sent.method == "POST"
        assert sent.headers["Authorization"] == "Bearer sk-test"
        assert sent.headers["Content-Type"] == "application/json"
        assert json.loads(sent.content) == {
            "messages": [{"role": "user", "content": "x"}],
            "model": "m",
            "max_tokens": 256,
            "stream": True,
        }

    @pytest.mark.asyncio
    async def test_chunks_split_mid_json(self, request_body):
        pieces = [FIX_BUG_STREAM[i:i + 7] for i in range(0, len(FIX_BUG_STREAM), 7)]
        calls = []
        result = await make_session(lambda r: stream_response(*pieces)).start(
            request_body, "sk", CancellationSignal(), calls.append)

        assert result == "fix: bug"
        assert calls[-1] == "fix: bug"

    @pytest.mark.asyncio
    async def test_connection_close_without_done(self, request_body):
        calls = []
        result = await make_session(lambda r: stream_response(event("fix: "), event("bug"))).start(
            request_body, "sk", CancellationSignal(), calls.append)
        assert result == "fix: bug"

    @pytest.mark.asyncio
    async def test_no_sink_calls_after_done(self, request_body):
        calls = []
        result = await make_session(lambda r: stream_response(event("a"), DONE, event("b"))).start(
            request_body, "sk", CancellationSignal(), calls.append)

        assert result == "a"
        assert calls == ["a"]

    @pytest.mark.asyncio
    async def test_rate_limited(self, request_body):
        def handler(request):
            return httpx.Response(429, json={"error": {"code": "rate_limit"}})

        with pytest.raises(ProviderRejected) as exc_info:
            await make_session(handler).start(request_body, "sk", CancellationSignal(), lambda t: None)

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "rate_limit"

    @pytest.mark.asyncio
    async def test_unparsable_error_body(self, request_body):
        with pytest.raises(ProviderRejected) as exc_info:
            await make_session(lambda r: httpx.Response(500, content=b"oops")).start(
                request_body, "sk", CancellationSignal(), lambda t: None)

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "unknown"

    @pytest.mark.asyncio
    async def test_malformed_chunk_keeps_delivered_text(self, request_body):
        calls = []
        stream = stream_response(event("fix: "), b"data: {not json\n", event("bug"))

        with pytest.raises(MalformedStreamChunk):
            await make_session(lambda r: stream).start(request_body, "sk", CancellationSignal(), calls.append)

        assert calls == ["fix: "]

    @pytest.mark.asyncio
    async def test_connect_error(self, request_body):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportFailure) as exc_info:
            await make_session(handler).start(request_body, "sk", CancellationSignal(), lambda t: None)

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_read_error_mid_stream(self, request_body):
        async def body():
            yield event("fix: ")
            raise httpx.ReadError("connection reset")

        calls = []
        response = httpx.Response(200, content=body())
        with pytest.raises(TransportFailure):
            await make_session(lambda r: response).start(request_body, "sk", CancellationSignal(), calls.append)

        assert calls == ["fix: "]

    @pytest.mark.asyncio
    async def test_already_cancelled(self, request_body):
        signal = CancellationSignal()
        signal.fire()
        requests = []

        def handler(request):
            requests.append(request)
            return stream_response(FIX_BUG_STREAM)

        calls = []
        result = await make_session(handler).start(request_body, "sk", signal, calls.append)

        assert result is None
        assert calls == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_cancel_before_any_bytes(self, request_body):
        entered = asyncio.Event()

        async def handler(request):
            entered.set()
            await asyncio.Event().wait()

        signal = CancellationSignal()
        calls = []
        task = asyncio.create_task(make_session(handler).start(request_body, "sk", signal, calls.append))
        await entered.wait()

        signal.fire()
        result = await task

        assert result is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self, request_body):
        first_delivered = asyncio.Event()
        gate = asyncio.Event()

        async def body():
            yield event("fix: ")
            await gate.wait()
            yield event("bug")
            yield DONE

        calls = []

        def sink(text):
            calls.append(text)
            first_delivered.set()

        signal = CancellationSignal()
        session = make_session(lambda r: httpx.Response(200, content=body()))
        task = asyncio.create_task(session.start(request_body, "sk", signal, sink))
        await first_delivered.wait()

        signal.fire()
        gate.set()
        result = await task

        assert result is None
        assert calls == ["fix: "]

    @pytest.mark.asyncio
    async def test_cancel_inside_sink_drops_rest_of_chunk(self, request_body):
        signal = CancellationSignal()
        calls = []

        def sink(text):
            calls.append(text)
            signal.fire()

        # Both deltas arrive in the same chunk
        session = make_session(lambda r: stream_response(event("fix: ") + event("bug") + DONE))
        result = await session.start(request_body, "sk", signal, sink)

        assert result is None
        assert calls == ["fix: "]


class TestParseErrorBody:

    @pytest.mark.parametrize("body, expected", [
        (b'{"error": {"code": "rate_limit", "message": "slow down"}}', ("rate_limit", "slow down")),
        (b'{"error": {"code": null, "type": "insufficient_quota"}}', ("insufficient_quota", "")),
        (b'{"error": "nope"}', ("unknown", "")),
        (b"", ("unknown", "")),
        (b"<html>bad gateway</html>", ("unknown", "")),
        (b"\xff\xfe", ("unknown", "")),
    ])
    def test_codes(self, body, expected):
        assert parse_error_body(body) == expected
