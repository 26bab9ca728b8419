from __future__ import annotations

import asyncio
import random
from contextlib import aclosing
from typing import Awaitable, TypeVar

from fluxgate.models.schemas import ProxyData
from fluxgate.proxy_core.assemble.service import assemble
from fluxgate.proxy_core.extract.service import StreamingExtractor
from fluxgate.proxy_core.fetch.service import UpstreamFetcher, UpstreamOutcome
from fluxgate.proxy_core.models.errors import UpstreamTimeoutError
from fluxgate.proxy_core.models.interfaces import ExtractionRequest, OutputFormat
from fluxgate.tools.stealth import choose_identity, delay_gate

T = TypeVar("T")


class ProxyPipeline:
    """validate -> delay -> identity -> fetch -> extract -> assemble.

    Requests are independent; the pipeline holds configuration only.
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        *,
        pipeline_timeout_seconds: float = 30.0,
        delay_jitter_ms: int = 300,
        max_images: int = 50,
        max_links: int = 100,
        service_user_agent: str = "",
        rng: random.Random | None = None,
    ):
        self.fetcher = fetcher
        self.pipeline_timeout_seconds = pipeline_timeout_seconds
        self.delay_jitter_ms = delay_jitter_ms
        self.max_images = max_images
        self.max_links = max_links
        self.service_user_agent = service_user_agent
        self._rng = rng

    async def open_raw(self, request: ExtractionRequest) -> UpstreamOutcome:
        """Fetch for passthrough; the caller owns (and must drain or close) the body."""
        return await self._with_deadline(self._open_upstream(request))

    async def extract(self, request: ExtractionRequest) -> ProxyData:
        if request.output_format is OutputFormat.RAW:
            raise ValueError("Raw passthrough does not go through extraction")
        return await self._with_deadline(self._extract(request))

    async def _open_upstream(self, request: ExtractionRequest) -> UpstreamOutcome:
        await delay_gate(request.delay_ms, jitter_ms=self.delay_jitter_ms, rng=self._rng)
        identity = choose_identity(
            request.target_url,
            override=request.identity_override,
            stealth=request.stealth,
            service_user_agent=self.service_user_agent,
            rng=self._rng,
        )
        return await self.fetcher.open(request.target_url, identity.as_headers())

    async def _extract(self, request: ExtractionRequest) -> ProxyData:
        outcome = await self._open_upstream(request)

        extractor = None
        if outcome.is_html:
            extractor = StreamingExtractor(
                request.target_url,
                selector=request.selector,
                max_images=self.max_images,
                max_links=self.max_links,
            )

        parts: list[str] = []
        try:
            async with aclosing(outcome.iter_text()) as chunks:
                async for chunk in chunks:
                    parts.append(chunk)
                    if extractor is not None:
                        extractor.feed(chunk)
        finally:
            await outcome.aclose()

        document = extractor.close() if extractor is not None else None
        return assemble(
            request,
            status_code=outcome.status_code,
            content_type=outcome.content_type,
            started=outcome.started,
            body="".join(parts),
            document=document,
        )

    async def _with_deadline(self, work: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(work, timeout=self.pipeline_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(
                f"Request exceeded {self.pipeline_timeout_seconds:g}s deadline"
            ) from exc
