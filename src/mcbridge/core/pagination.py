from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

PLAYERS_PAGE_SIZE = 10


@dataclass(frozen=True)
class PageWindow:
    """One page of an ordered collection plus its navigation affordances."""

    offset: int
    page_size: int
    total: int
    current_page: int
    total_pages: int
    previous_offset: Optional[int]
    next_offset: Optional[int]

    @property
    def start(self) -> int:
        return min(self.offset, self.total)

    @property
    def end(self) -> int:
        return min(self.offset + self.page_size, self.total)

    @property
    def has_previous(self) -> bool:
        return self.previous_offset is not None

    @property
    def has_next(self) -> bool:
        return self.next_offset is not None

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def slice(self, items: Sequence[T]) -> list[T]:
        return list(items[self.start : self.end])


def compute_page_window(total: int, page_size: int, offset: int) -> PageWindow:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    total = max(int(total), 0)
    offset = max(int(offset), 0)
    total_pages = max(1, -(-total // page_size))
    previous_offset = max(0, offset - page_size) if offset > 0 else None
    next_offset = offset + page_size if offset + page_size < total else None
    return PageWindow(
        offset=offset,
        page_size=page_size,
        total=total,
        current_page=offset // page_size + 1,
        total_pages=total_pages,
        previous_offset=previous_offset,
        next_offset=next_offset,
    )


__all__ = ["PLAYERS_PAGE_SIZE", "PageWindow", "compute_page_window"]
