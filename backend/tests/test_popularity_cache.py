"""
Unit tests for the popular products cache.
"""
import asyncio
import gc

import pytest

from app.core.errors import RecomputeTimeoutError, StoreReadError, ValidationError
from app.models.records import OrderStatus
from app.services.popularity.aggregator import PopularityAggregator
from app.services.popularity.cache import PopularityCache


@pytest.mark.asyncio
async def test_cold_read_recomputes(cache, bakery_store):
    result = await cache.get_top_n(2)

    assert result.cached is False
    assert [s.product_id for s in result.entries] == ["cake-b", "cake-a"]
    assert bakery_store.calls["list_products"] == 1


@pytest.mark.asyncio
async def test_hit_within_ttl_does_no_store_io(cache, bakery_store, clock):
    """Test two reads within the TTL return identical results and the second does no I/O."""
    first = await cache.get_top_n(3)
    reads_after_first = bakery_store.read_calls

    clock.advance(299)
    second = await cache.get_top_n(3)

    assert second.cached is True
    assert second.entries == first.entries
    assert bakery_store.read_calls == reads_after_first


@pytest.mark.asyncio
async def test_expiry_after_ttl(cache, bakery_store, clock):
    await cache.get_top_n(3)
    clock.advance(300)

    result = await cache.get_top_n(3)

    assert result.cached is False
    assert bakery_store.calls["list_products"] == 2


@pytest.mark.asyncio
async def test_invalidate_forces_recompute(cache, bakery_store, clock):
    """Test invalidate() followed by a read always recomputes, regardless of TTL."""
    await cache.get_top_n(3)
    clock.advance(1)

    cache.invalidate(source="test")
    result = await cache.get_top_n(3)

    assert result.cached is False
    assert bakery_store.calls["list_products"] == 2


@pytest.mark.asyncio
async def test_invalidate_is_lazy(cache, bakery_store):
    """Test invalidation alone triggers no recomputation."""
    await cache.get_top_n(1)
    cache.invalidate(source="test")

    assert cache.snapshot is None
    assert bakery_store.calls["list_products"] == 1


@pytest.mark.asyncio
async def test_invalidate_observes_new_writes(cache, bakery_store):
    first = await cache.get_top_n(1)
    assert first.entries[0].product_id == "cake-b"

    bakery_store.add_order("o-big", [("cake-c", 100)], OrderStatus.CONFIRMED)
    cache.invalidate(source="order")
    second = await cache.get_top_n(1)

    assert second.entries[0].product_id == "cake-c"
    assert second.entries[0].popularity_score == 50.0


@pytest.mark.asyncio
@pytest.mark.parametrize("n,expected", [(1, 1), (2, 2), (3, 3), (20, 3)])
async def test_truncation(cache, n, expected):
    """Test length is min(n, catalog size) and entries are sorted descending."""
    result = await cache.get_top_n(n)

    assert len(result.entries) == expected
    scores = [s.popularity_score for s in result.entries]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_one_recompute_serves_any_limit(cache, bakery_store):
    await cache.get_top_n(1)
    result = await cache.get_top_n(3)

    assert result.cached is True
    assert len(result.entries) == 3
    assert bakery_store.calls["list_products"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("n", [0, -1])
async def test_rejects_non_positive_n(cache, bakery_store, n):
    with pytest.raises(ValidationError):
        await cache.get_top_n(n)
    assert bakery_store.read_calls == 0


@pytest.mark.asyncio
async def test_concurrent_cold_reads_share_one_recompute(cache, bakery_store):
    """Test 50 concurrent reads against a cold cache trigger exactly one recomputation."""
    bakery_store.gate = asyncio.Event()

    readers = [asyncio.create_task(cache.get_top_n(3)) for _ in range(50)]
    await asyncio.sleep(0.01)
    bakery_store.gate.set()
    results = await asyncio.gather(*readers)

    assert bakery_store.calls["list_products"] == 1
    assert all(r.entries == results[0].entries for r in results)
    assert len(results[0].entries) == 3


@pytest.mark.asyncio
async def test_failed_recompute_keeps_prior_snapshot(cache, bakery_store, clock):
    """Test a store failure surfaces the error and leaves the existing snapshot untouched."""
    await cache.get_top_n(3)
    snapshot = cache.snapshot
    clock.advance(301)

    bakery_store.fail_reads = True
    with pytest.raises(StoreReadError):
        await cache.get_top_n(3)

    assert cache.snapshot is snapshot


@pytest.mark.asyncio
async def test_failure_reaches_every_waiter(cache, bakery_store):
    bakery_store.fail_reads = True

    results = await asyncio.gather(*(cache.get_top_n(2) for _ in range(10)), return_exceptions=True)

    assert all(isinstance(r, StoreReadError) for r in results)
    assert bakery_store.calls["list_products"] == 1
    assert cache.snapshot is None


@pytest.mark.asyncio
async def test_recovers_after_failure(cache, bakery_store):
    bakery_store.fail_reads = True
    with pytest.raises(StoreReadError):
        await cache.get_top_n(2)

    bakery_store.fail_reads = False
    result = await cache.get_top_n(2)

    assert result.cached is False
    assert len(result.entries) == 2


class _HeldFailingAggregator:
    """Fails only after the test sets `release`."""

    def __init__(self):
        self.release = asyncio.Event()

    async def compute(self):
        await self.release.wait()
        raise StoreReadError("list_products failed: connection refused")


@pytest.mark.asyncio
async def test_failure_after_every_waiter_cancelled_is_retrieved(clock):
    """Test a recompute failing with no waiters left is not reported as unretrieved."""
    aggregator = _HeldFailingAggregator()
    cache = PopularityCache(aggregator, ttl_seconds=300, clock=clock)
    loop = asyncio.get_running_loop()
    reported = []
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    try:
        waiter = asyncio.ensure_future(cache.get_top_n(3))
        await asyncio.sleep(0)
        inflight = cache._inflight
        assert inflight is not None

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        aggregator.release.set()
        await asyncio.wait({inflight})

        assert cache._inflight is None
        assert cache.snapshot is None
        del inflight, waiter
        gc.collect()

        assert reported == []
    finally:
        loop.set_exception_handler(previous_handler)


@pytest.mark.asyncio
async def test_recompute_timeout(bakery_store, clock):
    """Test a recomputation exceeding its bound fails all waiters with a timeout."""
    bakery_store.gate = asyncio.Event()
    cache = PopularityCache(
        PopularityAggregator(bakery_store),
        ttl_seconds=300,
        clock=clock,
        recompute_timeout_seconds=0.05,
    )

    results = await asyncio.gather(*(cache.get_top_n(1) for _ in range(5)), return_exceptions=True)

    assert all(isinstance(r, RecomputeTimeoutError) for r in results)
    assert bakery_store.calls["list_products"] == 1
    assert cache.snapshot is None


@pytest.mark.asyncio
async def test_invalidate_during_recompute_discards_stale_result(cache, bakery_store):
    """Test a run started before an invalidation is not stored and the next read recomputes."""
    bakery_store.gate = asyncio.Event()

    early_reader = asyncio.create_task(cache.get_top_n(1))
    await asyncio.sleep(0.01)
    bakery_store.add_order("o-big", [("cake-c", 100)], OrderStatus.CONFIRMED)
    cache.invalidate(source="order")
    late_reader = asyncio.create_task(cache.get_top_n(1))
    await asyncio.sleep(0.01)

    # The late reader waits; only the early run is in flight
    assert bakery_store.calls["list_products"] == 1

    bakery_store.gate.set()
    early, late = await asyncio.gather(early_reader, late_reader)

    assert bakery_store.calls["list_products"] == 2
    assert early.cached is False
    assert late.entries[0].product_id == "cake-c"
    assert cache.snapshot.entries[0].product_id == "cake-c"


@pytest.mark.asyncio
async def test_status(cache, clock):
    assert cache.status()["has_snapshot"] is False

    await cache.get_top_n(1)
    clock.advance(10)
    status = cache.status()

    assert status["has_snapshot"] is True
    assert status["fresh"] is True
    assert status["age_seconds"] == 10
    assert status["entries"] == 3
    assert status["ttl_seconds"] == 300

    cache.invalidate(source="test")
    assert cache.status()["generation"] == 1
    assert cache.status()["has_snapshot"] is False


def test_negative_ttl_rejected(bakery_store):
    with pytest.raises(ValueError):
        PopularityCache(PopularityAggregator(bakery_store), ttl_seconds=-1)
