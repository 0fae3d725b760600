"""
Records held by the storefront's record store.

These mirror the `products`, `orders`, `order_items` and `comments` tables.
The popularity engine only reads them; the order and comment write paths
create and modify them.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Orders in these states do not count towards a product's order volume
EXCLUDED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED})


class Product(BaseModel):
    """Catalog product (a cake)."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_name: str
    description: Optional[str] = None
    price: float = Field(0.0, ge=0)
    image: Optional[str] = None
    category: str = ""
    qty: int = Field(0, ge=0)
    average_rating: Optional[float] = None
    ratings_count: int = 0
    created_at: Optional[datetime] = None


class OrderLineItem(BaseModel):
    """One product line of an order, joined with the order's status."""
    model_config = ConfigDict(frozen=True)

    order_id: str
    product_id: str
    quantity: int = Field(..., ge=0)
    order_status: OrderStatus = OrderStatus.PENDING


class Order(BaseModel):
    """Order header with its line items."""
    id: str
    user_id: Optional[str] = None
    order_status: OrderStatus = OrderStatus.PENDING
    total_amount: float = 0.0
    items: list[OrderLineItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Comment(BaseModel):
    """Customer comment on a product, optionally carrying a 1-5 rating."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    user_id: Optional[str] = None
    comment_text: str = ""
    rating: Optional[float] = Field(None, ge=1, le=5)
    created_at: Optional[datetime] = None
