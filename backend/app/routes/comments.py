"""
Comment endpoints.

GET    /comments/{product_id}
POST   /comments
PUT    /comments/{comment_id}
DELETE /comments/{comment_id}

Writes commit, refresh the product's stored rating, then invalidate the
popularity cache.
"""
from typing import Optional

from fastapi import APIRouter, Path
from pydantic import BaseModel, Field

from app.core.logging import get_logger, set_user_id
from app.models.responses import WriteResponse
from app.repositories import get_record_store
from app.services.storefront.comments import (
    add_comment,
    edit_comment,
    list_product_comments,
    remove_comment,
)

logger = get_logger(__name__)

router = APIRouter()


class CommentRequest(BaseModel):
    """Comment creation request model."""
    product_id: str = Field(..., description="Product ID")
    comment_text: str = Field(..., description="Comment body")
    rating: Optional[float] = Field(None, description="Rating from 1 to 5")
    user_id: Optional[str] = Field(None, description="Commenting customer")


class CommentUpdateRequest(BaseModel):
    comment_text: Optional[str] = None
    rating: Optional[float] = None


@router.get("/{product_id}")
async def get_comments(product_id: str = Path(..., description="Product ID")):
    comments = await list_product_comments(get_record_store(), product_id)
    return {
        "success": True,
        "data": [c.model_dump(mode="json") for c in comments],
        "count": len(comments),
    }


@router.post("", status_code=201, response_model=WriteResponse)
async def create_comment(comment: CommentRequest):
    if comment.user_id:
        set_user_id(comment.user_id)

    created = await add_comment(
        get_record_store(),
        product_id=comment.product_id,
        comment_text=comment.comment_text,
        rating=comment.rating,
        user_id=comment.user_id,
    )
    return WriteResponse(data=created.model_dump(mode="json"), message="Comment added")


@router.put("/{comment_id}", response_model=WriteResponse)
async def update_comment(
    request: CommentUpdateRequest,
    comment_id: str = Path(..., description="Comment ID"),
):
    updated = await edit_comment(
        get_record_store(),
        comment_id,
        comment_text=request.comment_text,
        rating=request.rating,
    )
    return WriteResponse(data=updated.model_dump(mode="json"), message="Comment updated")


@router.delete("/{comment_id}", response_model=WriteResponse)
async def delete_comment(comment_id: str = Path(..., description="Comment ID")):
    await remove_comment(get_record_store(), comment_id)
    return WriteResponse(message="Comment deleted")
