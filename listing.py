# listing.py
from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from aggregation import Balance

T = TypeVar("T")

PAGE_SIZE = 7


@dataclass
class ListFilter:
    """
    Filter state of a list page. Empty values ("", None, "all") switch a
    predicate off. Predicates are independent, so the order they are applied
    in does not change the result.
    """

    search: str | None = None
    search_fields: tuple[str, ...] = ()
    status: str | None = None
    payment_status: str | None = None  # pending | completed
    extra: dict[str, Any] = field(default_factory=dict)  # attribute == value


@dataclass
class SortSpec:
    by: str = "id"
    asc: bool = True


@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total: int

    @property
    def page_count(self) -> int:
        return page_count(self.total, self.page_size)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


def _active(value: Any) -> bool:
    return value not in (None, "", "all")


def _case_contains(hay: Any, needle: str) -> bool:
    return needle.casefold() in str(hay or "").casefold()


def matches_search(item: Any, text: str | None, fields: Iterable[str]) -> bool:
    if not text:
        return True
    return any(_case_contains(getattr(item, f, None), text) for f in fields)


def apply_filter(
    items: Iterable[T],
    flt: ListFilter | None,
    *,
    balance_of: Optional[Callable[[T], Balance]] = None,
) -> list[T]:
    """Pure: returns a new list, `items` is not touched."""
    if not flt:
        return list(items)

    out: list[T] = []
    for it in items:
        if _active(flt.status) and getattr(it, "status", None) != flt.status:
            continue
        if any(_active(v) and getattr(it, k, None) != v for k, v in flt.extra.items()):
            continue
        if not matches_search(it, (flt.search or "").strip(), flt.search_fields):
            continue
        if _active(flt.payment_status):
            if balance_of is None:
                raise ValueError("payment_status filter needs a balance function")
            if balance_of(it).payment_status != flt.payment_status:
                continue
        out.append(it)
    return out


def sort_items(items: Iterable[T], sort: SortSpec | None, allowed: Sequence[str]) -> list[T]:
    """Sort by a whitelisted attribute; unknown keys fall back to id. None goes last."""
    key = "id"
    asc = True
    if sort:
        key = sort.by if sort.by in allowed else "id"
        asc = bool(sort.asc)

    def kfunc(it: T) -> Any:
        v = getattr(it, key)
        return v.casefold() if isinstance(v, str) else v

    rows = list(items)
    present = [it for it in rows if getattr(it, key, None) is not None]
    missing = [it for it in rows if getattr(it, key, None) is None]
    return sorted(present, key=kfunc, reverse=not asc) + missing


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be a positive integer")
    return math.ceil(total / page_size) if total > 0 else 0


def clamp_page(page: int, pages: int) -> int:
    return max(1, min(page, pages))


def paginate(items: Sequence[T], page: int, page_size: int = PAGE_SIZE) -> Page[T]:
    """
    Slice one page out of an already filtered list. The requested page is
    clamped to [1, page_count], so a filter change that shrinks the list
    never leaves the view on an empty page.
    """
    total = len(items)
    pages = page_count(total, page_size)
    current = clamp_page(page, pages)
    start = (current - 1) * page_size
    return Page(items=list(items[start:start + page_size]), page=current,
                page_size=page_size, total=total)
