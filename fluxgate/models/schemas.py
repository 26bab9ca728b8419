from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Responses ---


class UpstreamStatus(BaseModel):
    url: str
    content_type: str
    http_code: int
    response_time_ms: int


class ExtractedElementModel(BaseModel):
    tag: str
    attributes: dict[str, str]
    text: str


class ProxyData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    format: str
    status: UpstreamStatus
    title: str | None = None
    text: str | None = None
    images: list[str] | None = None
    links: list[str] | None = None
    videos: list[str] | None = None
    extracted_elements: list[ExtractedElementModel] | None = Field(
        default=None, alias="extractedElements"
    )
    meta: dict[str, str] | None = None
    contents: Any = None


class ProxyEnvelope(BaseModel):
    success: bool
    data: ProxyData | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(
            by_alias=True, exclude_none=True, exclude={"data": {"contents"}}
        )
        # Upstream JSON is embedded as-is, nulls included.
        if self.data is not None and self.data.contents is not None:
            payload["data"]["contents"] = self.data.contents
        return payload


class StatsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_requests: int = Field(alias="totalRequests")
    uptime_since: str = Field(alias="uptimeSince")
    format_counts: dict[str, int] = Field(alias="formatCounts")


class StatsResponse(BaseModel):
    success: bool = True
    data: StatsData
