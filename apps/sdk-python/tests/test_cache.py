from __future__ import annotations

from trace_sdk.cache import LocalReadCache

from conftest import make_sample


def test_cache_is_bounded_and_evicts_oldest_first() -> None:
    cache = LocalReadCache()
    for ts in range(1001):
        cache.append(make_sample(ts))

    assert len(cache) == 1000
    timestamps = [entry.timestamp for entry in cache.entries()]
    assert timestamps[0] == 1
    assert timestamps[-1] == 1000


def test_query_is_inclusive_and_sorted() -> None:
    cache = LocalReadCache(capacity=10)
    for ts in (30, 10, 20, 40):
        cache.append(make_sample(ts))

    result = cache.query(10, 30)

    assert [s.timestamp for s in result] == [10, 20, 30]
    assert all(s.device_id == "device-1" for s in result)


def test_purge_older_than() -> None:
    cache = LocalReadCache(capacity=10)
    for ts in (1, 2, 3):
        cache.append(make_sample(ts))

    assert cache.purge_older_than(3) == 2
    assert [entry.timestamp for entry in cache.entries()] == [3]


def test_entries_carry_saved_at() -> None:
    cache = LocalReadCache(capacity=2)
    entry = cache.append(make_sample(7))
    assert entry.saved_at > 0
