"""
Supabase-backed record store.

Tables:
- products(id, product_name, description, price, image, category, qty,
  average_rating, ratings_count, created_at)
- orders(id, user_id, order_status, total_amount, created_at)
- order_items(order_id, product_id, quantity)
- comments(id, product_id, user_id, comment_text, rating, created_at)

The supabase client is synchronous, so every call runs in a worker thread via
asyncio.to_thread. Reads page through PostgREST's row limit.
"""
import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from app.core.database import get_supabase_client
from app.core.errors import StoreReadError, StoreWriteError
from app.core.logging import get_logger
from app.models.records import Comment, Order, OrderLineItem, OrderStatus, Product

logger = get_logger(__name__)

# PostgREST caps responses at 1000 rows by default
PAGE_SIZE = 1000

PRODUCT_COLUMNS = (
    "id, product_name, description, price, image, category, qty, "
    "average_rating, ratings_count, created_at"
)
COMMENT_COLUMNS = "id, product_id, user_id, comment_text, rating, created_at"


def _status_values(statuses: Iterable[OrderStatus]) -> List[str]:
    return [OrderStatus(s).value for s in statuses]


def _line_item_from_row(row: Dict[str, Any]) -> OrderLineItem:
    order = row.get("orders") or {}
    return OrderLineItem(
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=row.get("quantity") or 0,
        order_status=order.get("order_status", OrderStatus.PENDING.value),
    )


class SupabaseRecordStore:
    """RecordStore over a Supabase (PostgREST) project."""

    def __init__(self, client=None, page_size: int = PAGE_SIZE):
        self._client = client
        self.page_size = page_size

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def _read(self, operation: str, fn: Callable[[Any], Any]) -> Any:
        client = self.client
        if client is None:
            raise StoreReadError(f"{operation}: record store is not configured")
        try:
            return await asyncio.to_thread(fn, client)
        except StoreReadError:
            raise
        except Exception as e:
            logger.error(
                "record_store_read_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise StoreReadError(f"{operation} failed: {e}") from e

    async def _write(self, operation: str, fn: Callable[[Any], Any]) -> Any:
        client = self.client
        if client is None:
            raise StoreWriteError(f"{operation}: record store is not configured")
        try:
            return await asyncio.to_thread(fn, client)
        except StoreWriteError:
            raise
        except Exception as e:
            logger.error(
                "record_store_write_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise StoreWriteError(f"{operation} failed: {e}") from e

    def _fetch_all(self, build_query: Callable[[], Any]) -> List[Dict[str, Any]]:
        """Run a query page by page until a short page comes back."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            response = build_query().range(start, start + self.page_size - 1).execute()
            page = response.data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            start += self.page_size

    # --- Reads used by the aggregator ---

    async def list_products(self) -> Sequence[Product]:
        def query(client):
            return self._fetch_all(
                lambda: client.table("products").select(PRODUCT_COLUMNS).order("created_at").order("id")
            )

        rows = await self._read("list_products", query)
        return [Product(**row) for row in rows]

    async def list_order_line_items(
        self, excluded_statuses: Iterable[OrderStatus]
    ) -> Sequence[OrderLineItem]:
        excluded = _status_values(excluded_statuses)

        def query(client):
            def build():
                q = client.table("order_items").select(
                    "order_id, product_id, quantity, orders!inner(order_status)"
                )
                if excluded:
                    q = q.not_.in_("orders.order_status", excluded)
                return q
            return self._fetch_all(build)

        rows = await self._read("list_order_line_items", query)
        return [_line_item_from_row(row) for row in rows]

    async def list_comments(self) -> Sequence[Comment]:
        def query(client):
            return self._fetch_all(lambda: client.table("comments").select(COMMENT_COLUMNS))

        rows = await self._read("list_comments", query)
        return [Comment(**row) for row in rows]

    # --- Per-product reads ---

    async def sum_ordered_quantity(
        self, product_id: str, excluded_statuses: Iterable[OrderStatus]
    ) -> int:
        excluded = _status_values(excluded_statuses)

        def query(client):
            def build():
                q = (
                    client.table("order_items")
                    .select("quantity, orders!inner(order_status)")
                    .eq("product_id", product_id)
                )
                if excluded:
                    q = q.not_.in_("orders.order_status", excluded)
                return q
            return self._fetch_all(build)

        rows = await self._read("sum_ordered_quantity", query)
        return sum(row.get("quantity") or 0 for row in rows)

    async def count_comments(self, product_id: str) -> int:
        def query(client):
            return (
                client.table("comments")
                .select("id", count="exact")
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )

        response = await self._read("count_comments", query)
        return response.count or 0

    async def list_rated_comments(self, product_id: str) -> Sequence[Comment]:
        def query(client):
            return self._fetch_all(
                lambda: client.table("comments")
                .select(COMMENT_COLUMNS)
                .eq("product_id", product_id)
                .not_.is_("rating", "null")
            )

        rows = await self._read("list_rated_comments", query)
        return [Comment(**row) for row in rows]

    async def list_comments_for_product(self, product_id: str) -> Sequence[Comment]:
        def query(client):
            return self._fetch_all(
                lambda: client.table("comments")
                .select(COMMENT_COLUMNS)
                .eq("product_id", product_id)
                .order("created_at", desc=True)
            )

        rows = await self._read("list_comments_for_product", query)
        return [Comment(**row) for row in rows]

    # --- Writes ---

    async def create_order(self, order: Order) -> Order:
        header = order.model_dump(mode="json", exclude={"items", "created_at"}, exclude_none=True)
        items = [
            {"order_id": order.id, "product_id": item.product_id, "quantity": item.quantity}
            for item in order.items
        ]

        def insert(client):
            response = client.table("orders").insert(header).execute()
            if items:
                client.table("order_items").insert(items).execute()
            return response

        response = await self._write("create_order", insert)
        row = (response.data or [header])[0]
        return order.model_copy(update={"created_at": row.get("created_at")})

    async def get_order(self, order_id: str) -> Optional[Order]:
        def query(client):
            return (
                client.table("orders")
                .select("id, user_id, order_status, total_amount, created_at, "
                        "order_items(order_id, product_id, quantity)")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )

        response = await self._read("get_order", query)
        if not response.data:
            return None
        row = dict(response.data[0])
        status = row.get("order_status", OrderStatus.PENDING.value)
        items = [
            OrderLineItem(order_status=status, **item)
            for item in row.pop("order_items", None) or []
        ]
        return Order(items=items, **row)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        def update(client):
            return (
                client.table("orders")
                .update({"order_status": OrderStatus(status).value})
                .eq("id", order_id)
                .execute()
            )

        await self._write("update_order_status", update)
        order = await self.get_order(order_id)
        if order is None:
            raise StoreWriteError(f"update_order_status: order {order_id} vanished after update")
        return order

    async def create_comment(self, comment: Comment) -> Comment:
        payload = comment.model_dump(mode="json", exclude_none=True)

        def insert(client):
            return client.table("comments").insert(payload).execute()

        response = await self._write("create_comment", insert)
        if response.data:
            return Comment(**response.data[0])
        return comment

    async def get_comment(self, comment_id: str) -> Optional[Comment]:
        def query(client):
            return (
                client.table("comments")
                .select(COMMENT_COLUMNS)
                .eq("id", comment_id)
                .limit(1)
                .execute()
            )

        response = await self._read("get_comment", query)
        if not response.data:
            return None
        return Comment(**response.data[0])

    async def update_comment(
        self, comment_id: str, comment_text: Optional[str], rating: Optional[float]
    ) -> Comment:
        changes: Dict[str, Any] = {}
        if comment_text is not None:
            changes["comment_text"] = comment_text
        if rating is not None:
            changes["rating"] = rating

        def update(client):
            return client.table("comments").update(changes).eq("id", comment_id).execute()

        if changes:
            response = await self._write("update_comment", update)
            if response.data:
                return Comment(**response.data[0])

        comment = await self.get_comment(comment_id)
        if comment is None:
            raise StoreWriteError(f"update_comment: comment {comment_id} not found")
        return comment

    async def delete_comment(self, comment_id: str) -> None:
        def delete(client):
            return client.table("comments").delete().eq("id", comment_id).execute()

        await self._write("delete_comment", delete)

    async def update_product_rating(
        self, product_id: str, average_rating: float, ratings_count: int
    ) -> None:
        def update(client):
            return (
                client.table("products")
                .update({"average_rating": average_rating, "ratings_count": ratings_count})
                .eq("id", product_id)
                .execute()
            )

        await self._write("update_product_rating", update)
