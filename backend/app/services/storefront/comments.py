"""
Comment and rating write paths.

A comment changes a product's comment count and possibly its rating, so
every write here commits, refreshes the product's stored average rating, and
then invalidates the popularity cache. Invalidation runs even when the
refresh fails, since the comment itself is already committed.
"""
import uuid
from typing import Optional, Sequence

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.records import Comment
from app.repositories.record_store import RecordStore
from app.services.popularity.cache import invalidate_cache
from app.services.popularity.scoring import rating_values

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _validate_rating(rating: Optional[float]) -> None:
    if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


async def refresh_product_rating(store: RecordStore, product_id: str) -> float:
    """Recompute and store a product's average rating from its rated comments."""
    ratings = rating_values(await store.list_rated_comments(product_id))
    average = sum(ratings) / len(ratings) if ratings else 0.0
    await store.update_product_rating(product_id, average, len(ratings))
    return average


async def list_product_comments(store: RecordStore, product_id: str) -> Sequence[Comment]:
    return await store.list_comments_for_product(product_id)


async def add_comment(
    store: RecordStore,
    product_id: str,
    comment_text: str,
    rating: Optional[float] = None,
    user_id: Optional[str] = None,
) -> Comment:
    _validate_rating(rating)
    if not comment_text or not comment_text.strip():
        raise ValidationError("Comment text is required")

    comment = await store.create_comment(
        Comment(
            id=str(uuid.uuid4()),
            product_id=product_id,
            user_id=user_id,
            comment_text=comment_text.strip(),
            rating=rating,
        )
    )
    try:
        if rating is not None:
            await refresh_product_rating(store, product_id)
    finally:
        invalidate_cache(source="comment")

    logger.info("comment_added", comment_id=comment.id, product_id=product_id, rated=rating is not None)
    return comment


async def edit_comment(
    store: RecordStore,
    comment_id: str,
    comment_text: Optional[str] = None,
    rating: Optional[float] = None,
) -> Comment:
    """Update text and/or rating; fields left as None are unchanged."""
    _validate_rating(rating)
    existing = await store.get_comment(comment_id)
    if existing is None:
        raise NotFoundError(f"Comment {comment_id} not found")
    if comment_text is not None and not comment_text.strip():
        raise ValidationError("Comment text cannot be empty")

    updated = await store.update_comment(
        comment_id,
        comment_text.strip() if comment_text is not None else None,
        rating,
    )
    try:
        if rating is not None:
            await refresh_product_rating(store, existing.product_id)
    finally:
        invalidate_cache(source="comment")

    logger.info("comment_updated", comment_id=comment_id, product_id=existing.product_id)
    return updated


async def remove_comment(store: RecordStore, comment_id: str) -> None:
    existing = await store.get_comment(comment_id)
    if existing is None:
        raise NotFoundError(f"Comment {comment_id} not found")

    await store.delete_comment(comment_id)
    try:
        if existing.rating is not None:
            await refresh_product_rating(store, existing.product_id)
    finally:
        invalidate_cache(source="comment")

    logger.info("comment_removed", comment_id=comment_id, product_id=existing.product_id)
