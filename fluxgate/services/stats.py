from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


@dataclass(slots=True)
class StatsSnapshot:
    total_requests: int
    uptime_since: str
    format_counts: dict[str, int] = field(default_factory=dict)


class StatsSink(Protocol):
    async def increment_stats(self, output_format: str) -> None: ...
    async def get_stats(self) -> StatsSnapshot: ...


class InMemoryStatsSink:
    """Process-local request counter; one lock serializes all writers."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._total = 0
        self._formats: Counter[str] = Counter()
        self._started_at = datetime.now(timezone.utc)

    async def increment_stats(self, output_format: str) -> None:
        async with self._lock:
            self._total += 1
            self._formats[output_format] += 1

    async def get_stats(self) -> StatsSnapshot:
        async with self._lock:
            return StatsSnapshot(
                total_requests=self._total,
                uptime_since=self._started_at.isoformat(),
                format_counts=dict(self._formats),
            )


_sink: StatsSink | None = None


def get_stats_sink() -> StatsSink:
    global _sink
    if _sink is None:
        _sink = InMemoryStatsSink()
    return _sink
