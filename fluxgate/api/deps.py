from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query

from fluxgate.config import settings
from fluxgate.proxy_core.fetch.service import UpstreamFetcher
from fluxgate.proxy_core.pipeline import ProxyPipeline


def get_pipeline() -> ProxyPipeline:
    """Build the per-request pipeline from settings."""
    fetcher = UpstreamFetcher(timeout_seconds=settings.upstream_timeout_seconds)
    return ProxyPipeline(
        fetcher,
        pipeline_timeout_seconds=settings.pipeline_timeout_seconds,
        delay_jitter_ms=settings.delay_jitter_ms,
        max_images=settings.max_images,
        max_links=settings.max_links,
        service_user_agent=settings.service_user_agent,
    )


@dataclass
class ProxyQuery:
    url: str | None
    class_name: str | None
    id_name: str | None
    delay: str | None
    delay_ms: str | None
    user_agent: str | None
    referer: str | None
    stealth: bool


def proxy_query(
    url: str | None = Query(default=None, description="Target URL, percent-encoded"),
    class_name: str | None = Query(default=None, alias="class"),
    id_name: str | None = Query(default=None, alias="id"),
    delay: str | None = Query(default=None, description="Artificial delay in seconds"),
    delay_ms: str | None = Query(default=None, description="Artificial delay in milliseconds"),
    ua: str | None = Query(default=None, description="User-Agent override"),
    referer: str | None = Query(default=None),
    stealth: bool | None = Query(default=None),
) -> ProxyQuery:
    return ProxyQuery(
        url=url,
        class_name=class_name,
        id_name=id_name,
        delay=delay,
        delay_ms=delay_ms,
        user_agent=ua,
        referer=referer,
        stealth=settings.stealth_default if stealth is None else stealth,
    )
