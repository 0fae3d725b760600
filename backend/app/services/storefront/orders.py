"""
Order write paths.

Both placing an order and changing its status move a product's order volume
(cancelled orders stop counting), so each commits to the store first and then
invalidates the popularity cache.
"""
import uuid
from typing import Iterable, Optional, Tuple

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.records import Order, OrderLineItem, OrderStatus
from app.repositories.record_store import RecordStore
from app.services.popularity.cache import invalidate_cache

logger = get_logger(__name__)


async def place_order(
    store: RecordStore,
    items: Iterable[Tuple[str, int]],
    user_id: Optional[str] = None,
    total_amount: float = 0.0,
) -> Order:
    """
    Persist a new Pending order.

    Args:
        store: Record store
        items: (product_id, quantity) pairs; quantities must be positive
        user_id: Ordering customer, when known
        total_amount: Order total as charged
    """
    items = list(items)
    if not items:
        raise ValidationError("Order must contain at least one item")
    if any(quantity < 1 for _, quantity in items):
        raise ValidationError("Item quantity must be at least 1")

    order_id = str(uuid.uuid4())
    order = Order(
        id=order_id,
        user_id=user_id,
        order_status=OrderStatus.PENDING,
        total_amount=total_amount,
        items=[
            OrderLineItem(
                order_id=order_id,
                product_id=product_id,
                quantity=quantity,
                order_status=OrderStatus.PENDING,
            )
            for product_id, quantity in items
        ],
    )

    created = await store.create_order(order)
    invalidate_cache(source="order")

    logger.info(
        "order_placed",
        order_id=created.id,
        user_id=user_id,
        items_count=len(created.items),
        total_amount=total_amount,
    )
    return created


async def change_order_status(store: RecordStore, order_id: str, status: OrderStatus) -> Order:
    """Move an order to `status`; unknown orders raise NotFoundError."""
    existing = await store.get_order(order_id)
    if existing is None:
        raise NotFoundError(f"Order {order_id} not found")

    # The store may re-read after committing; invalidate even if that fails
    try:
        updated = await store.update_order_status(order_id, status)
    finally:
        invalidate_cache(source="order")

    logger.info(
        "order_status_changed",
        order_id=order_id,
        previous_status=existing.order_status.value,
        status=updated.order_status.value,
    )
    return updated
