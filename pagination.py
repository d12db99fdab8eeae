from dataclasses import dataclass
from math import ceil
from typing import Generic, Sequence, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    total_pages: int
    has_prev: bool
    has_next: bool


def page_count(total: int, per_page: int) -> int:
    return max(1, ceil(total / per_page))


def paginate(items: Sequence[T], per_page: int, page: int) -> Page[T]:
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    total_pages = page_count(len(items), per_page)
    page = min(max(int(page), 0), total_pages - 1)

    start = page * per_page
    end = min(start + per_page, len(items))
    return Page(
        items=list(items[start:end]),
        page=page,
        total_pages=total_pages,
        has_prev=page > 0,
        has_next=(page + 1) * per_page < len(items),
    )


def all_pages(items: Sequence[T], per_page: int) -> list[Page[T]]:
    return [paginate(items, per_page, p) for p in range(page_count(len(items), per_page))]


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
