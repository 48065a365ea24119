# query_cache.py
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")

# kind of the mutated entity -> cache key prefixes whose results are stale.
# Deleting a client cascades to its contracts, payments and tasks;
# any payment moves the balances of every list and the dashboard.
INVALIDATES: dict[str, tuple[str, ...]] = {
    "client": ("clients", "contracts", "payments", "tasks", "dashboard"),
    "vendor": ("vendors", "contracts", "dashboard"),
    "labor": ("labors", "contracts", "dashboard"),
    "contract": ("contracts", "payments", "clients", "vendors", "labors", "dashboard"),
    "payment": ("payments", "contracts", "clients", "vendors", "labors", "dashboard"),
    "task": ("tasks", "dashboard"),
    "document": ("documents",),
}


class QueryCache:
    """
    Read results keyed by tuples whose first element is the prefix
    ("clients", "contracts", ...). Lives as long as the process; entries
    go away only when a mutation event names their prefix.

    Safe to share between threads: a fetch that overlaps an invalidation of
    its prefix returns its value but does not store it.
    """

    def __init__(self) -> None:
        self._data: dict[tuple[Hashable, ...], Any] = {}
        # prefix -> number of invalidations so far; _epoch counts clear() calls
        self._generations: dict[Hashable, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: tuple[Hashable, ...]) -> bool:
        return key in self._data

    def _stamp(self, key: tuple[Hashable, ...]) -> tuple[int, int]:
        return self._epoch, self._generations.get(key[0] if key else None, 0)

    def get_or_fetch(self, key: tuple[Hashable, ...], fetch: Callable[[], R]) -> R:
        with self._lock:
            if key in self._data:
                self.hits += 1
                return self._data[key]
            stamp = self._stamp(key)
        # fetch outside the lock; a failed fetch leaves nothing behind
        value = fetch()
        with self._lock:
            self.misses += 1
            if self._stamp(key) == stamp:
                self._data[key] = value
            else:
                logger.debug("dropping %s: invalidated while fetching", key)
        return value

    def invalidate(self, *prefixes: str) -> int:
        with self._lock:
            for p in prefixes:
                self._generations[p] = self._generations.get(p, 0) + 1
            stale = [k for k in self._data if k and k[0] in prefixes]
            for k in stale:
                del self._data[k]
        logger.debug("invalidated %d entr(ies) for %s", len(stale), ", ".join(prefixes))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._data.clear()

    # ===== Observer =====
    def update(self, event: str, payload: Any) -> None:
        kind, _, action = event.rpartition("_")
        if action not in ("added", "updated", "deleted"):
            return
        prefixes = INVALIDATES.get(kind)
        if prefixes:
            self.invalidate(*prefixes)
