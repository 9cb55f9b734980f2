from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T]
    total_count: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total_count

    def to_json(self, key: str, serialize: Callable[[T], Any]) -> dict:
        return {
            key: [serialize(item) for item in self.items],
            "totalCount": self.total_count,
            "hasMore": self.has_more,
        }
