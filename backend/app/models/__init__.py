"""Pydantic models for records and API responses."""

from .records import Comment, Order, OrderLineItem, OrderStatus, Product, EXCLUDED_ORDER_STATUSES
from .responses import ProductSignal, PopularResponse, ErrorResponse, WriteResponse

__all__ = [
    "Comment",
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "Product",
    "EXCLUDED_ORDER_STATUSES",
    "ProductSignal",
    "PopularResponse",
    "ErrorResponse",
    "WriteResponse",
]
