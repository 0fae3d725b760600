"""
Order write endpoints.

POST  /orders
PATCH /orders/{order_id}/status

Each commits the order, then invalidates the popularity cache.
"""
from typing import List, Optional

from fastapi import APIRouter, Path
from pydantic import BaseModel, Field

from app.core.logging import get_logger, set_user_id
from app.models.records import OrderStatus
from app.models.responses import WriteResponse
from app.repositories import get_record_store
from app.services.storefront.orders import place_order, change_order_status

logger = get_logger(__name__)

router = APIRouter()


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., description="Product ID")
    quantity: int = Field(..., ge=1, description="Units ordered")


class OrderRequest(BaseModel):
    """Order placement request model."""
    user_id: Optional[str] = Field(None, description="Ordering customer")
    items: List[OrderItemRequest] = Field(..., min_length=1)
    total_amount: float = Field(0.0, ge=0)


class OrderStatusRequest(BaseModel):
    status: OrderStatus


@router.post("", status_code=201, response_model=WriteResponse)
async def create_order(order: OrderRequest):
    if order.user_id:
        set_user_id(order.user_id)

    created = await place_order(
        get_record_store(),
        [(item.product_id, item.quantity) for item in order.items],
        user_id=order.user_id,
        total_amount=order.total_amount,
    )
    return WriteResponse(data=created.model_dump(mode="json"), message="Order placed")


@router.patch("/{order_id}/status", response_model=WriteResponse)
async def update_status(
    request: OrderStatusRequest,
    order_id: str = Path(..., description="Order ID"),
):
    updated = await change_order_status(get_record_store(), order_id, request.status)
    return WriteResponse(data=updated.model_dump(mode="json"), message="Order status updated")
