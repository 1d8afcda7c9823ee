import json

import httpx
import pytest

import mock_upstream
from chatgate.config import Settings
from chatgate.errors import UpstreamError
from chatgate.gateway import create_app
from chatgate.upstream import ProviderClient
from client import extract_delta

SSE_BODY = b'data: {"choices":[{"delta":{"content":"hi"}}]}\n\ndata: [DONE]\n\n'


def _settings(base_url="http://provider", api_key="test-key"):
    return Settings(
        provider_base_url=base_url,
        provider_path="/v1/chat/completions",
        provider_api_key=api_key,
        provider_model="test-model",
        request_timeout=5.0,
        storage_url=None,
        storage_key=None,
        storage_bucket="chat-files",
        storage_timeout=5.0,
        log_level="INFO",
    )


def _provider(handler, **settings):
    return ProviderClient(_settings(**settings), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_open_stream_passes_bytes_through():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=SSE_BODY
        )

    stream = await _provider(handler).open_stream(
        {"model": "m", "stream": True, "messages": [{"role": "user", "content": "hi"}]}
    )
    body = b"".join([chunk async for chunk in stream])
    await stream.aclose()

    assert body == SSE_BODY
    assert stream.status_code == 200
    request = seen[0]
    assert str(request.url) == "http://provider/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer test-key"
    assert json.loads(request.content)["stream"] is True


@pytest.mark.asyncio
async def test_error_status_reads_full_body():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "invalid api key"}})

    with pytest.raises(UpstreamError) as info:
        await _provider(handler).open_stream({"messages": []})

    assert "invalid api key" in info.value.detail


@pytest.mark.asyncio
async def test_connection_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(UpstreamError) as info:
        await _provider(handler).open_stream({"messages": []})

    assert info.value.message == "Upstream request failed"


@pytest.mark.asyncio
async def test_aclose_is_idempotent():
    def handler(request):
        return httpx.Response(200, content=SSE_BODY)

    stream = await _provider(handler).open_stream({"messages": []})
    await stream.aclose()
    await stream.aclose()

    assert stream.closed


@pytest.mark.asyncio
async def test_ping():
    assert await _provider(lambda request: httpx.Response(404)).ping() is True
    assert await _provider(lambda request: httpx.Response(503)).ping() is False


@pytest.mark.asyncio
async def test_relay_against_mock_provider(monkeypatch):
    monkeypatch.setenv("PROVIDER_API_KEY", "test-key")
    provider = ProviderClient(
        _settings(base_url="http://mock"),
        transport=httpx.ASGITransport(app=mock_upstream.app),
    )
    app = create_app(provider_client=provider)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        payload = {"messages": [{"role": "user", "content": "what colour is the sky?"}]}
        async with client.stream("POST", "/chat", json=payload) as resp:
            assert resp.status_code == 200
            lines = [line async for line in resp.aiter_lines()]

    text = "".join(filter(None, (extract_delta(line) for line in lines)))
    assert text == "You said: what colour is the sky?"
    assert "data: [DONE]" in lines


@pytest.mark.asyncio
async def test_mock_provider_rejects_missing_token():
    provider = ProviderClient(
        _settings(base_url="http://mock", api_key=None),
        transport=httpx.ASGITransport(app=mock_upstream.app),
    )

    with pytest.raises(UpstreamError) as info:
        await provider.open_stream({"stream": True, "messages": []})

    assert "Missing bearer token" in info.value.detail


@pytest.mark.parametrize(
    "line,expected",
    [
        ('data: {"choices":[{"delta":{"content":"Hel"}}]}', "Hel"),
        ("data: [DONE]", None),
        ("event: ping", None),
        ("data: not json", None),
        ('data: {"choices":[{"delta":{}}]}', None),
        ("", None),
    ],
)
def test_extract_delta(line, expected):
    assert extract_delta(line) == expected


class BrokenErrorBody(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b'{"error": "overloa'
        raise httpx.ReadError("connection reset")


class ClosingTransport(httpx.MockTransport):
    def __init__(self, handler):
        super().__init__(handler)
        self.closed = False

    async def aclose(self):
        self.closed = True


def _chat_client(provider):
    app = create_app(provider_client=provider)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_error_body_read_failure_is_upstream_error(monkeypatch):
    monkeypatch.setenv("PROVIDER_API_KEY", "test-key")
    transport = ClosingTransport(lambda request: httpx.Response(502, stream=BrokenErrorBody()))
    provider = ProviderClient(_settings(), transport=transport)

    with pytest.raises(UpstreamError) as info:
        await provider.open_stream({"messages": []})
    assert "HTTP 502" in info.value.detail
    assert "overloa" in info.value.detail
    assert transport.closed

    async with _chat_client(provider) as client:
        resp = await client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert resp.status_code == 500
    assert resp.headers["content-type"] == "application/json"
    assert resp.json()["code"] == "upstream_error"


@pytest.mark.asyncio
async def test_unexpected_send_failure_is_json_and_closes_client(monkeypatch):
    monkeypatch.setenv("PROVIDER_API_KEY", "test-key")

    def handler(request):
        raise ValueError("bad provider config")

    transport = ClosingTransport(handler)
    provider = ProviderClient(_settings(), transport=transport)

    async with _chat_client(provider) as client:
        resp = await client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert resp.status_code == 500
    assert resp.headers["content-type"] == "application/json"
    assert resp.json() == {
        "error": "Server error",
        "code": "gateway_error",
        "detail": "bad provider config",
    }
    assert transport.closed
