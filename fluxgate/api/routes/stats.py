from __future__ import annotations

from fastapi import APIRouter, Depends

from fluxgate.models.schemas import StatsData, StatsResponse
from fluxgate.services.stats import StatsSink, get_stats_sink

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(sink: StatsSink = Depends(get_stats_sink)):
    """Aggregate request counters."""
    snapshot = await sink.get_stats()
    return StatsResponse(
        data=StatsData(
            total_requests=snapshot.total_requests,
            uptime_since=snapshot.uptime_since,
            format_counts=snapshot.format_counts,
        )
    )
