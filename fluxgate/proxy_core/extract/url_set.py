from __future__ import annotations

from typing import Iterator


class CappedUrlSet:
    """Insertion-ordered set of URLs that stops accepting at ``limit``."""

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self._items: dict[str, None] = {}

    def add(self, url: str) -> bool:
        if url in self._items:
            return False
        if self.full:
            return False
        self._items[url] = None
        return True

    @property
    def full(self) -> bool:
        return self.limit is not None and len(self._items) >= self.limit

    def __contains__(self, url: object) -> bool:
        return url in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> list[str]:
        return list(self._items)
