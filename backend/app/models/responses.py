"""
Response models for API endpoints.

Payloads are serialized in camelCase (`productId`, `popularityScore`, ...)
because that is what the storefront frontend reads.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ProductSignal(CamelModel):
    """
    Popularity signals for one catalog product.

    `popularity_score` is derived from the counts and the unrounded average
    by `compute_popularity_score`; `average_rating` is the 2-decimal display
    value. Build instances through
    `build_product_signal` rather than setting it by hand.
    """
    product_id: str
    orders_count: int
    comments_count: int
    average_rating: float
    popularity_score: float

    product_name: str = ""
    description: Optional[str] = None
    price: float = 0.0
    image: Optional[str] = None
    category: str = ""
    qty: int = 0
    created_at: Optional[datetime] = None


class PopularResponse(CamelModel):
    """Envelope for GET /popular."""
    success: bool = True
    data: list[ProductSignal]
    count: int
    cached: bool


class ErrorResponse(CamelModel):
    success: bool = False
    message: str


class WriteResponse(CamelModel):
    """Envelope for order and comment writes."""
    success: bool = True
    data: Optional[dict] = None
    message: Optional[str] = None
