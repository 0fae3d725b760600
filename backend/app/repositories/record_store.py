"""
Record-store contract.

The popularity engine depends only on the read half of this protocol. The
write half is used by the order and comment services, which own the
obligation to invalidate the popularity cache after each committed write.

Implementations raise StoreReadError for failed reads and StoreWriteError
for failed writes; they never retry.
"""
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from app.models.records import Comment, Order, OrderLineItem, OrderStatus, Product


@runtime_checkable
class RecordStore(Protocol):
    # --- Reads used by the aggregator ---

    async def list_products(self) -> Sequence[Product]:
        ...

    async def list_order_line_items(
        self, excluded_statuses: Iterable[OrderStatus]
    ) -> Sequence[OrderLineItem]:
        ...

    async def list_comments(self) -> Sequence[Comment]:
        ...

    # --- Per-product reads ---

    async def sum_ordered_quantity(
        self, product_id: str, excluded_statuses: Iterable[OrderStatus]
    ) -> int:
        ...

    async def count_comments(self, product_id: str) -> int:
        ...

    async def list_rated_comments(self, product_id: str) -> Sequence[Comment]:
        ...

    async def list_comments_for_product(self, product_id: str) -> Sequence[Comment]:
        ...

    # --- Writes ---

    async def create_order(self, order: Order) -> Order:
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        ...

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        ...

    async def create_comment(self, comment: Comment) -> Comment:
        ...

    async def get_comment(self, comment_id: str) -> Optional[Comment]:
        ...

    async def update_comment(
        self, comment_id: str, comment_text: Optional[str], rating: Optional[float]
    ) -> Comment:
        ...

    async def delete_comment(self, comment_id: str) -> None:
        ...

    async def update_product_rating(
        self, product_id: str, average_rating: float, ratings_count: int
    ) -> None:
        ...
