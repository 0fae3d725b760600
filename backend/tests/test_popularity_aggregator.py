"""
Unit tests for popularity aggregation.
"""
import random

import pytest

from app.core.errors import StoreReadError
from app.models.records import EXCLUDED_ORDER_STATUSES, OrderStatus
from app.services.popularity.aggregator import PopularityAggregator
from app.services.popularity.scoring import rating_values, round2


async def naive_signals(store):
    """
    Per-product definition: rescan orders and comments for every product and
    apply the formula to the unrounded mean.

    Returns (product_id, orders, comments, published average, score) rows in
    ranking order.
    """
    rows = []
    for product in await store.list_products():
        orders_count = await store.sum_ordered_quantity(product.id, EXCLUDED_ORDER_STATUSES)
        comments_count = await store.count_comments(product.id)
        average = product.average_rating or 0
        if comments_count > 0 and not product.average_rating:
            ratings = rating_values(await store.list_rated_comments(product.id))
            average = sum(ratings) / len(ratings) if ratings else 0
        score = round2(orders_count * 0.5 + average * 2.0 + comments_count * 0.3)
        rows.append((product.id, orders_count, comments_count, round2(average), score))
    return sorted(rows, key=lambda row: (-row[4], row[0]))


def as_rows(signals):
    return [
        (s.product_id, s.orders_count, s.comments_count, s.average_rating, s.popularity_score)
        for s in signals
    ]


@pytest.mark.asyncio
async def test_example_ranking(bakery_store):
    """Test B (16.6) ranks above A (15.8), cancelled orders ignored."""
    ranked = await PopularityAggregator(bakery_store).compute()

    assert [s.product_id for s in ranked] == ["cake-b", "cake-a", "cake-c"]
    by_id = {s.product_id: s for s in ranked}

    assert by_id["cake-a"].orders_count == 10
    assert by_id["cake-a"].comments_count == 6
    assert by_id["cake-a"].average_rating == 4.5
    assert by_id["cake-a"].popularity_score == 15.8

    assert by_id["cake-b"].orders_count == 20
    assert by_id["cake-b"].comments_count == 2
    assert by_id["cake-b"].average_rating == 3.0
    assert by_id["cake-b"].popularity_score == 16.6

    assert by_id["cake-c"].orders_count == 0
    assert by_id["cake-c"].popularity_score == 0.0


@pytest.mark.asyncio
async def test_returns_full_catalog(store):
    """Test every catalog product is returned, including ones with no activity."""
    for i in range(25):
        store.add_product(f"p{i:02d}")

    ranked = await PopularityAggregator(store).compute()

    assert len(ranked) == 25
    assert {s.product_id for s in ranked} == {f"p{i:02d}" for i in range(25)}


@pytest.mark.asyncio
async def test_all_non_cancelled_statuses_count(store):
    store.add_product("p1")
    for i, status in enumerate(OrderStatus):
        store.add_order(f"o{i}", [("p1", 1)], status)

    ranked = await PopularityAggregator(store).compute()

    # Pending, Confirmed, Shipped, Delivered
    assert ranked[0].orders_count == 4


@pytest.mark.asyncio
async def test_stored_average_rating_preferred(store):
    """Test a product's stored non-zero average is used over comment ratings."""
    store.add_product("p1", average_rating=4.8)
    store.add_comment("c1", "p1", rating=1)

    ranked = await PopularityAggregator(store).compute()

    assert ranked[0].average_rating == 4.8
    assert ranked[0].comments_count == 1
    assert ranked[0].popularity_score == 9.9


@pytest.mark.asyncio
async def test_score_uses_unrounded_comment_mean(store):
    """Test ratings 4, 4, 5 score 9.57 from the raw mean while publishing 4.33."""
    store.add_product("p1")
    for i, rating in enumerate([4, 4, 5]):
        store.add_comment(f"c{i}", "p1", rating)

    ranked = await PopularityAggregator(store).compute()

    assert ranked[0].average_rating == 4.33
    assert ranked[0].popularity_score == 9.57


@pytest.mark.asyncio
async def test_unrated_comments_count_but_do_not_rate(store):
    store.add_product("p1")
    store.add_comment("c1", "p1")
    store.add_comment("c2", "p1")

    ranked = await PopularityAggregator(store).compute()

    assert ranked[0].comments_count == 2
    assert ranked[0].average_rating == 0.0
    assert ranked[0].popularity_score == 0.6


@pytest.mark.asyncio
async def test_equal_scores_ordered_by_product_id(store):
    for pid in ["zeta", "alpha", "mid"]:
        store.add_product(pid)
        store.add_order(f"o-{pid}", [(pid, 2)])

    ranked = await PopularityAggregator(store).compute()

    assert [s.product_id for s in ranked] == ["alpha", "mid", "zeta"]


@pytest.mark.asyncio
async def test_single_batch_read_per_source(bakery_store):
    """Test one list call per record type, no per-product queries."""
    await PopularityAggregator(bakery_store).compute()

    assert bakery_store.calls["list_products"] == 1
    assert bakery_store.calls["list_order_line_items"] == 1
    assert bakery_store.calls["list_comments"] == 1
    assert bakery_store.calls["sum_ordered_quantity"] == 0
    assert bakery_store.calls["count_comments"] == 0


@pytest.mark.asyncio
async def test_store_errors_propagate(bakery_store):
    bakery_store.fail_reads = True

    with pytest.raises(StoreReadError):
        await PopularityAggregator(bakery_store).compute()


@pytest.mark.asyncio
async def test_equivalent_to_naive_definition(bakery_store):
    """Test grouped aggregation matches the per-product definition on the example catalog."""
    assert as_rows(await PopularityAggregator(bakery_store).compute()) == await naive_signals(bakery_store)


@pytest.mark.asyncio
async def test_equivalent_to_naive_definition_random_fixture(store):
    """Test grouped aggregation matches the per-product definition on a random catalog."""
    rng = random.Random(42)
    product_ids = [f"cake-{i}" for i in range(12)]
    for pid in product_ids:
        stored = rng.choice([None, 0, 0, 3.5, 4.25])
        store.add_product(pid, average_rating=stored)
    statuses = list(OrderStatus)
    for i in range(40):
        items = [(rng.choice(product_ids), rng.randint(1, 5)) for _ in range(rng.randint(1, 3))]
        store.add_order(f"o{i}", items, rng.choice(statuses))
    for i in range(50):
        rating = rng.choice([None, 1, 2, 3, 4, 5])
        store.add_comment(f"c{i}", rng.choice(product_ids), rating)

    assert as_rows(await PopularityAggregator(store).compute()) == await naive_signals(store)
