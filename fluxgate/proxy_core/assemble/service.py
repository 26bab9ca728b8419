from __future__ import annotations

import json
import time

from fluxgate.models.schemas import ExtractedElementModel, ProxyData, UpstreamStatus
from fluxgate.proxy_core.extract.service import strip_to_text
from fluxgate.proxy_core.models.interfaces import (
    ExtractedDocument,
    ExtractionRequest,
    OutputFormat,
)


def _parse_contents(body: str, *, is_json: bool):
    if not is_json:
        return body
    try:
        return json.loads(body)
    except ValueError:
        return body


def _text_for(body: str, *, is_html: bool) -> str:
    return strip_to_text(body) if is_html else body.strip()


def assemble(
    request: ExtractionRequest,
    *,
    status_code: int,
    content_type: str,
    started: float,
    body: str,
    document: ExtractedDocument | None,
) -> ProxyData:
    """Shape one fetched body into the payload for the requested format."""
    fmt = request.output_format
    document = document or ExtractedDocument()
    is_html = "text/html" in content_type.lower()
    is_json = "json" in content_type.lower()

    data: dict = {"url": request.target_url, "format": fmt.value}

    if fmt is OutputFormat.JSON:
        data.update(
            title=document.title,
            meta=document.meta,
            images=document.images,
            links=document.links,
            videos=document.videos,
            extracted_elements=[],
            contents=_parse_contents(body, is_json=is_json),
        )
    elif fmt is OutputFormat.IMAGES:
        data["images"] = document.images
    elif fmt is OutputFormat.LINKS:
        data["links"] = document.links
    elif fmt is OutputFormat.VIDEOS:
        data["videos"] = document.videos
    elif fmt is OutputFormat.TEXT:
        data["text"] = _text_for(body, is_html=is_html)
    elif fmt.needs_selector:
        data["extracted_elements"] = [
            ExtractedElementModel(tag=el.tag, attributes=el.attributes, text=el.text)
            for el in document.fragments
        ]
    else:
        raise ValueError(f"Format {fmt.value!r} is not assembled into JSON")

    # Timing covers fetch through assembly.
    data["status"] = UpstreamStatus(
        url=request.target_url,
        content_type=content_type,
        http_code=status_code,
        response_time_ms=int((time.monotonic() - started) * 1000),
    )
    return ProxyData(**data)
