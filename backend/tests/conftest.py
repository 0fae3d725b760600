"""
Shared fixtures: an in-memory record store with call counters, a manual
clock, and a TestClient wired to both.
"""
import asyncio
from collections import Counter
from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.errors import StoreReadError
from app.models.records import Comment, Order, OrderLineItem, OrderStatus, Product
from app.repositories import set_record_store
from app.services.popularity.aggregator import PopularityAggregator
from app.services.popularity.cache import PopularityCache, set_popularity_cache


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryRecordStore:
    """
    RecordStore kept in dicts.

    `calls` counts every method invocation. Set `fail_reads` to make reads
    raise StoreReadError, or set `gate` to an asyncio.Event to hold
    list_products until the test releases it.
    """

    def __init__(self):
        self.products: List[Product] = []
        self.orders: Dict[str, Order] = {}
        self.comments: Dict[str, Comment] = {}
        self.calls: Counter = Counter()
        self.fail_reads = False
        self.gate: Optional[asyncio.Event] = None

    # --- fixture helpers ---

    def add_product(self, product_id: str, name: Optional[str] = None, average_rating: Optional[float] = None,
                    **fields) -> Product:
        product = Product(
            id=product_id,
            product_name=name or f"Cake {product_id}",
            category=fields.pop("category", "cakes"),
            price=fields.pop("price", 1500.0),
            qty=fields.pop("qty", 10),
            average_rating=average_rating,
            **fields,
        )
        self.products.append(product)
        return product

    def add_order(self, order_id: str, items: Iterable, status: OrderStatus = OrderStatus.PENDING) -> Order:
        order = Order(
            id=order_id,
            order_status=status,
            items=[
                OrderLineItem(order_id=order_id, product_id=pid, quantity=qty, order_status=status)
                for pid, qty in items
            ],
        )
        self.orders[order_id] = order
        return order

    def add_comment(self, comment_id: str, product_id: str, rating: Optional[float] = None,
                    text: str = "Lovely") -> Comment:
        comment = Comment(id=comment_id, product_id=product_id, comment_text=text, rating=rating)
        self.comments[comment_id] = comment
        return comment

    @property
    def read_calls(self) -> int:
        return sum(
            count for name, count in self.calls.items()
            if name.startswith(("list_", "sum_", "count_", "get_"))
        )

    async def _read(self, name: str) -> None:
        self.calls[name] += 1
        await asyncio.sleep(0)
        if self.fail_reads:
            raise StoreReadError(f"{name} failed: connection refused")

    # --- reads ---

    async def list_products(self):
        await self._read("list_products")
        if self.gate is not None:
            await self.gate.wait()
        return list(self.products)

    async def list_order_line_items(self, excluded_statuses):
        await self._read("list_order_line_items")
        excluded = set(excluded_statuses)
        return [
            item.model_copy(update={"order_status": order.order_status})
            for order in self.orders.values()
            if order.order_status not in excluded
            for item in order.items
        ]

    async def list_comments(self):
        await self._read("list_comments")
        return list(self.comments.values())

    async def sum_ordered_quantity(self, product_id, excluded_statuses):
        await self._read("sum_ordered_quantity")
        excluded = set(excluded_statuses)
        return sum(
            item.quantity
            for order in self.orders.values()
            if order.order_status not in excluded
            for item in order.items
            if item.product_id == product_id
        )

    async def count_comments(self, product_id):
        await self._read("count_comments")
        return sum(1 for c in self.comments.values() if c.product_id == product_id)

    async def list_rated_comments(self, product_id):
        await self._read("list_rated_comments")
        return [c for c in self.comments.values() if c.product_id == product_id and c.rating is not None]

    async def list_comments_for_product(self, product_id):
        await self._read("list_comments_for_product")
        return [c for c in self.comments.values() if c.product_id == product_id]

    async def get_order(self, order_id):
        await self._read("get_order")
        return self.orders.get(order_id)

    async def get_comment(self, comment_id):
        await self._read("get_comment")
        return self.comments.get(comment_id)

    # --- writes ---

    async def create_order(self, order):
        self.calls["create_order"] += 1
        self.orders[order.id] = order
        return order

    async def update_order_status(self, order_id, status):
        self.calls["update_order_status"] += 1
        order = self.orders[order_id]
        updated = order.model_copy(update={
            "order_status": status,
            "items": [i.model_copy(update={"order_status": status}) for i in order.items],
        })
        self.orders[order_id] = updated
        return updated

    async def create_comment(self, comment):
        self.calls["create_comment"] += 1
        self.comments[comment.id] = comment
        return comment

    async def update_comment(self, comment_id, comment_text, rating):
        self.calls["update_comment"] += 1
        changes = {}
        if comment_text is not None:
            changes["comment_text"] = comment_text
        if rating is not None:
            changes["rating"] = rating
        updated = self.comments[comment_id].model_copy(update=changes)
        self.comments[comment_id] = updated
        return updated

    async def delete_comment(self, comment_id):
        self.calls["delete_comment"] += 1
        self.comments.pop(comment_id, None)

    async def update_product_rating(self, product_id, average_rating, ratings_count):
        self.calls["update_product_rating"] += 1
        self.products = [
            p.model_copy(update={"average_rating": average_rating, "ratings_count": ratings_count})
            if p.id == product_id else p
            for p in self.products
        ]


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def bakery_store(store):
    """Catalog from the ranking example: B (16.6) ranks above A (15.8)."""
    store.add_product("cake-a", "Chocolate Truffle")
    store.add_product("cake-b", "Red Velvet")
    store.add_product("cake-c", "Plain Sponge")

    store.add_order("o1", [("cake-a", 10), ("cake-b", 5)], OrderStatus.DELIVERED)
    store.add_order("o2", [("cake-b", 15)], OrderStatus.SHIPPED)
    store.add_order("o3", [("cake-a", 7), ("cake-c", 3)], OrderStatus.CANCELLED)

    for i, rating in enumerate([5, 4, 5, 4, 4.5, 4.5]):
        store.add_comment(f"a{i}", "cake-a", rating)
    store.add_comment("b0", "cake-b", 3)
    store.add_comment("b1", "cake-b", 3)
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(bakery_store, clock):
    return PopularityCache(PopularityAggregator(bakery_store), ttl_seconds=300, clock=clock)


@pytest.fixture
def client(bakery_store, cache):
    """TestClient using the in-memory store and a fresh popularity cache."""
    from app.main import app

    set_record_store(bakery_store)
    set_popularity_cache(cache)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        set_record_store(None)
        set_popularity_cache(None)
