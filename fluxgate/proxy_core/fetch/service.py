from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Mapping

import httpx

from fluxgate.proxy_core.models.errors import UpstreamUnreachableError
from fluxgate.services import logger as log_service

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
# The body is re-framed by us, so the upstream encoding and length no longer apply.
REFRAMED_HEADERS = frozenset({"content-encoding", "content-length"})

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Expose-Headers": "X-Proxied-By, X-Proxy-Mode",
}


def rewrite_passthrough_headers(
    upstream_headers: httpx.Headers,
    *,
    proxy_marker: str,
    cache_control: str | None = None,
) -> list[tuple[str, str]]:
    """Build the header list for a raw passthrough response.

    Repeated upstream headers (Set-Cookie, Link, ...) stay separate entries.
    """
    replaced = {name.lower(): value for name, value in CORS_HEADERS.items()}
    replaced["x-proxied-by"] = proxy_marker
    replaced["x-proxy-mode"] = "Streaming"
    if cache_control:
        replaced["cache-control"] = cache_control

    headers: list[tuple[str, str]] = []
    for name, value in upstream_headers.multi_items():
        lowered = name.lower()
        if lowered in HOP_BY_HOP_HEADERS or lowered in REFRAMED_HEADERS or lowered in replaced:
            continue
        headers.append((lowered, value))
    headers.extend(replaced.items())
    return headers


@dataclass
class UpstreamOutcome:
    """A received upstream response whose body has not been read yet."""

    url: str
    final_url: str
    status_code: int
    content_type: str
    headers: httpx.Headers
    started: float
    _response: httpx.Response = field(repr=False)
    _client: httpx.AsyncClient = field(repr=False)
    _consumed: bool = field(default=False, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type.lower()

    def _claim_body(self) -> None:
        if self._consumed:
            raise RuntimeError("Upstream body has already been consumed")
        self._consumed = True

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield decoded body bytes as they arrive; single use."""
        self._claim_body()
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise UpstreamUnreachableError(f"Upstream read failed: {exc}") from exc
        finally:
            await self.aclose()

    async def iter_text(self) -> AsyncIterator[str]:
        """Yield decoded body text as it arrives; single use."""
        self._claim_body()
        try:
            async for chunk in self._response.aiter_text():
                yield chunk
        except httpx.HTTPError as exc:
            raise UpstreamUnreachableError(f"Upstream read failed: {exc}") from exc
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()
        await self._client.aclose()


class UpstreamFetcher:
    """Issues the single outbound GET for a proxy request."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        max_redirects: int = 10,
    ):
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self.max_redirects = max_redirects

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )

    async def open(self, url: str, headers: Mapping[str, str]) -> UpstreamOutcome:
        """Send the request and return once response headers are in."""
        started = time.monotonic()
        client = self._client()
        try:
            request = client.build_request("GET", url, headers=dict(headers))
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            duration_ms = int((time.monotonic() - started) * 1000)
            log_service.log_upstream_call(url, duration_ms=duration_ms, error=str(exc))
            raise UpstreamUnreachableError(
                f"Upstream fetch failed: {exc.__class__.__name__}"
            ) from exc
        except BaseException:
            await client.aclose()
            raise

        outcome = UpstreamOutcome(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            headers=response.headers,
            started=started,
            _response=response,
            _client=client,
        )
        log_service.log_upstream_call(
            url,
            status_code=outcome.status_code,
            duration_ms=outcome.elapsed_ms,
            content_type=outcome.content_type,
        )
        return outcome
