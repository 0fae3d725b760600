"""
Popularity score for a product.

popularity_score = orders_count * 0.5 + average_rating * 2.0 + comments_count * 0.3

- orders weight (0.5): demand
- rating weight (2.0): satisfaction
- comments weight (0.3): community engagement

Scores are rounded to two decimals, half away from zero, so that identical
inputs always publish identical scores.
"""
import math
from typing import Iterable, Optional

from app.models.records import Comment, Product
from app.models.responses import ProductSignal

WEIGHTS = {
    "orders": 0.5,
    "rating": 2.0,
    "comments": 0.3,
}


def round2(value: float) -> float:
    """Round to 2 decimal places, ties away from zero."""
    scaled = value * 100
    return math.copysign(math.floor(abs(scaled) + 0.5), scaled) / 100


def compute_popularity_score(
    orders_count: int,
    average_rating: float,
    comments_count: int
) -> float:
    """
    Weighted popularity score.

    Args:
        orders_count: Units ordered across non-cancelled orders
        average_rating: Mean rating, 0 to 5 (0 when unrated)
        comments_count: Number of comments on the product

    Returns:
        Score rounded to 2 decimals
    """
    score = (
        orders_count * WEIGHTS["orders"] +
        average_rating * WEIGHTS["rating"] +
        comments_count * WEIGHTS["comments"]
    )
    return round2(score)


def resolve_average_rating(
    stored_average: Optional[float],
    ratings: Iterable[float]
) -> float:
    """
    Average rating used for scoring, unrounded.

    A non-zero average already stored on the product wins; otherwise the mean
    of the rated comments; otherwise 0.
    """
    if stored_average:
        return float(stored_average)
    ratings = list(ratings)
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def rating_values(comments: Iterable[Comment]) -> list[float]:
    return [c.rating for c in comments if c.rating is not None]


def build_product_signal(
    product: Product,
    orders_count: int,
    comments_count: int,
    average_rating: float
) -> ProductSignal:
    """
    Assemble a ProductSignal, deriving its popularity score.

    The score uses the unrounded average; only the published average is
    rounded to 2 decimals.
    """
    return ProductSignal(
        product_id=product.id,
        orders_count=orders_count,
        comments_count=comments_count,
        average_rating=round2(average_rating),
        popularity_score=compute_popularity_score(orders_count, average_rating, comments_count),
        product_name=product.product_name,
        description=product.description,
        price=product.price,
        image=product.image,
        category=product.category,
        qty=product.qty,
        created_at=product.created_at,
    )


def rank_signals(signals: Iterable[ProductSignal]) -> list[ProductSignal]:
    """Highest score first; equal scores ordered by ascending product id."""
    return sorted(signals, key=lambda s: (-s.popularity_score, s.product_id))
