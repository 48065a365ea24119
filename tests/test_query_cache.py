"""Query cache invalidation driven by store events."""

from __future__ import annotations

from conftest import make_client, make_payment

from query_cache import QueryCache


def test_get_or_fetch_fetches_once():
    cache = QueryCache()
    calls = []
    fetch = lambda: calls.append(1) or ["x"]
    assert cache.get_or_fetch(("clients", "all"), fetch) == ["x"]
    assert cache.get_or_fetch(("clients", "all"), fetch) == ["x"]
    assert len(calls) == 1
    assert (cache.hits, cache.misses) == (1, 1)


def test_failed_fetch_leaves_nothing():
    cache = QueryCache()

    def boom():
        raise RuntimeError("down")

    try:
        cache.get_or_fetch(("clients", "all"), boom)
    except RuntimeError:
        pass
    assert ("clients", "all") not in cache


def test_invalidation_during_fetch_is_not_cached_over():
    cache = QueryCache()

    def fetch():
        # a mutation lands while the read is in flight
        cache.update("client_added", None)
        return ["old"]

    assert cache.get_or_fetch(("clients", "all"), fetch) == ["old"]
    assert ("clients", "all") not in cache
    assert cache.get_or_fetch(("clients", "all"), lambda: ["new"]) == ["new"]
    assert ("clients", "all") in cache


def test_clear_during_fetch_is_not_cached_over():
    cache = QueryCache()

    def fetch():
        cache.clear()
        return ["old"]

    cache.get_or_fetch(("tasks", "all"), fetch)
    assert len(cache) == 0


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.get_or_fetch(("clients", "all"), list)
    cache.get_or_fetch(("tasks", "all"), list)
    assert cache.invalidate("clients") == 1
    assert ("tasks", "all") in cache


def test_payment_event_invalidates_balances_everywhere():
    cache = QueryCache()
    for prefix in ("clients", "vendors", "labors", "contracts", "payments", "tasks", "documents"):
        cache.get_or_fetch((prefix, "all"), list)
    cache.get_or_fetch(("dashboard",), dict)
    cache.update("payment_added", None)
    assert ("tasks", "all") in cache
    assert ("documents", "all") in cache
    assert len(cache) == 2


def test_unrelated_events_ignored():
    cache = QueryCache()
    cache.get_or_fetch(("clients", "all"), list)
    cache.update("SIGNED_IN", None)
    assert len(cache) == 1


def test_store_mutation_reaches_cache(store, cache, repos):
    store.attach(cache)
    cache.get_or_fetch(("clients", "all"), repos.clients.list)
    client = store.add("client", make_client())
    assert ("clients", "all") not in cache
    assert [c.id for c in cache.get_or_fetch(("clients", "all"), repos.clients.list)] == [client.id]

    cache.get_or_fetch(("dashboard",), dict)
    store.add("payment", make_payment("10", "client", client_id=client.id))
    assert ("dashboard",) not in cache
