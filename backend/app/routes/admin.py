"""
Admin endpoints for the popularity cache.

POST /admin/popular/invalidate
GET  /admin/popular/status
"""
from fastapi import APIRouter

from app.core.logging import get_logger
from app.services.popularity.cache import get_popularity_cache

logger = get_logger(__name__)

router = APIRouter()


@router.post("/popular/invalidate")
async def invalidate_popular():
    """
    Drop the popularity snapshot so the next read recomputes.

    Security: Should require admin authentication in production.
    """
    get_popularity_cache().invalidate(source="admin")
    return {"status": "invalidated"}


@router.get("/popular/status")
async def popular_status():
    return get_popularity_cache().status()
