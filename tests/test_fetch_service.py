from __future__ import annotations

import httpx
import pytest

from fluxgate.proxy_core.fetch.service import UpstreamFetcher, rewrite_passthrough_headers
from fluxgate.proxy_core.models.errors import UpstreamUnreachableError


def _fetcher(handler) -> UpstreamFetcher:
    return UpstreamFetcher(timeout_seconds=5, transport=httpx.MockTransport(handler))


def test_rewrite_passthrough_headers_strips_framing_and_adds_cors():
    upstream = httpx.Headers(
        {
            "Content-Type": "text/html; charset=utf-8",
            "Content-Encoding": "gzip",
            "Content-Length": "1234",
            "Transfer-Encoding": "chunked",
            "Connection": "keep-alive",
            "Keep-Alive": "timeout=5",
            "ETag": '"abc"',
            "Access-Control-Allow-Origin": "https://only.example",
        }
    )

    headers = dict(
        rewrite_passthrough_headers(upstream, proxy_marker="FluxGate/2.1", cache_control="public, max-age=3600")
    )

    assert headers["content-type"] == "text/html; charset=utf-8"
    assert headers["etag"] == '"abc"'
    for dropped in ("content-encoding", "content-length", "transfer-encoding", "connection", "keep-alive"):
        assert dropped not in headers
    assert headers["access-control-allow-origin"] == "*"
    assert headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert headers["x-proxied-by"] == "FluxGate/2.1"
    assert headers["x-proxy-mode"] == "Streaming"
    assert headers["cache-control"] == "public, max-age=3600"


def test_rewrite_passthrough_headers_keeps_repeated_headers_apart():
    upstream = httpx.Headers(
        [
            ("Set-Cookie", "a=1; Path=/"),
            ("Set-Cookie", "b=2; Expires=Wed, 21 Oct 2026 07:28:00 GMT"),
            ("Cache-Control", "no-store"),
        ]
    )

    headers = rewrite_passthrough_headers(upstream, proxy_marker="FluxGate/2.1", cache_control="public, max-age=3600")

    assert [value for name, value in headers if name == "set-cookie"] == [
        "a=1; Path=/",
        "b=2; Expires=Wed, 21 Oct 2026 07:28:00 GMT",
    ]
    assert [value for name, value in headers if name == "cache-control"] == ["public, max-age=3600"]


@pytest.mark.asyncio
async def test_open_sends_identity_headers_and_classifies_response():
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200, headers={"Content-Type": "text/html"}, content=b"<p>hi</p>")

    outcome = await _fetcher(handler).open("https://example.com/", {"User-Agent": "agent/1"})
    body = b"".join([chunk async for chunk in outcome.iter_bytes()])

    assert seen["user-agent"] == "agent/1"
    assert outcome.status_code == 200
    assert outcome.is_html
    assert not outcome.is_json
    assert body == b"<p>hi</p>"
    assert outcome.elapsed_ms >= 0


@pytest.mark.asyncio
async def test_body_can_only_be_read_once():
    def handler(_request):
        return httpx.Response(200, content=b"once")

    outcome = await _fetcher(handler).open("https://example.com/", {})
    assert "".join([chunk async for chunk in outcome.iter_text()]) == "once"

    with pytest.raises(RuntimeError):
        async for _chunk in outcome.iter_bytes():
            pass


@pytest.mark.asyncio
async def test_redirects_are_followed_transparently():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://example.com/new"})
        return httpx.Response(200, headers={"Content-Type": "text/plain"}, content=b"moved")

    outcome = await _fetcher(handler).open("https://example.com/old", {})
    await outcome.aclose()

    assert outcome.status_code == 200
    assert outcome.final_url == "https://example.com/new"
    assert outcome.url == "https://example.com/old"


@pytest.mark.asyncio
async def test_non_2xx_is_returned_not_raised():
    def handler(_request):
        return httpx.Response(404, content=b"missing")

    outcome = await _fetcher(handler).open("https://example.com/nope", {})
    await outcome.aclose()
    assert outcome.status_code == 404


@pytest.mark.asyncio
async def test_network_failure_becomes_upstream_unreachable():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnreachableError):
        await _fetcher(handler).open("https://unreachable.example/", {})
    # A single attempt, no retries.
    assert calls == ["https://unreachable.example/"]
