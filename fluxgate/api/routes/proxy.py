from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse

from fluxgate.api.deps import ProxyQuery, get_pipeline, proxy_query
from fluxgate.config import settings
from fluxgate.models.schemas import ProxyEnvelope
from fluxgate.proxy_core.fetch.service import rewrite_passthrough_headers
from fluxgate.proxy_core.models.interfaces import OutputFormat
from fluxgate.proxy_core.pipeline import ProxyPipeline
from fluxgate.proxy_core.validation import build_request, parse_format
from fluxgate.services import logger as log_service
from fluxgate.services.stats import StatsSink, get_stats_sink

router = APIRouter(prefix="/api", tags=["proxy"])

FORMAT_ROUTES = ("json", "html", "text", "images", "links", "videos", "class", "id")


async def _record_request(sink: StatsSink, output_format: str) -> None:
    try:
        await sink.increment_stats(output_format)
    except Exception as e:
        log_service.logger.warning(f"Stats increment failed for {output_format}: {e}")


async def _serve(
    output_format: OutputFormat,
    query: ProxyQuery,
    pipeline: ProxyPipeline,
    sink: StatsSink,
    background_tasks: BackgroundTasks,
) -> Response:
    request = build_request(
        url=query.url,
        output_format=output_format,
        class_name=query.class_name,
        id_name=query.id_name,
        delay=query.delay,
        delay_ms=query.delay_ms,
        user_agent=query.user_agent,
        referer=query.referer,
        stealth=query.stealth,
        max_delay_ms=settings.max_delay_ms,
    )

    if output_format is OutputFormat.RAW:
        outcome = await pipeline.open_raw(request)
        headers = rewrite_passthrough_headers(
            outcome.headers,
            proxy_marker=settings.proxy_marker,
            cache_control=settings.passthrough_cache_control,
        )
        background_tasks.add_task(outcome.aclose)
        background_tasks.add_task(_record_request, sink, output_format.value)
        log_service.log_request(
            request.target_url,
            output_format.value,
            status=str(outcome.status_code),
            duration_ms=outcome.elapsed_ms,
        )
        response = StreamingResponse(outcome.iter_bytes(), status_code=outcome.status_code)
        for name, value in headers:
            response.headers.append(name, value)
        return response

    data = await pipeline.extract(request)
    background_tasks.add_task(_record_request, sink, output_format.value)
    log_service.log_request(
        request.target_url,
        output_format.value,
        status=str(data.status.http_code),
        duration_ms=data.status.response_time_ms,
    )
    return JSONResponse(ProxyEnvelope(success=True, data=data).to_payload())


@router.get("/proxy")
async def proxy(
    background_tasks: BackgroundTasks,
    format: str | None = Query(default=None, description="raw, json, text, images, links, videos, class or id"),
    query: ProxyQuery = Depends(proxy_query),
    pipeline: ProxyPipeline = Depends(get_pipeline),
    sink: StatsSink = Depends(get_stats_sink),
):
    """Raw passthrough by default; ``format`` switches to an extraction mode."""
    return await _serve(parse_format(format), query, pipeline, sink, background_tasks)


def _format_endpoint(output_format: OutputFormat):
    async def endpoint(
        background_tasks: BackgroundTasks,
        query: ProxyQuery = Depends(proxy_query),
        pipeline: ProxyPipeline = Depends(get_pipeline),
        sink: StatsSink = Depends(get_stats_sink),
    ):
        return await _serve(output_format, query, pipeline, sink, background_tasks)

    return endpoint


for _name in FORMAT_ROUTES:
    router.add_api_route(
        f"/{_name}",
        _format_endpoint(parse_format(_name)),
        methods=["GET"],
        name=f"proxy_{_name}",
    )
