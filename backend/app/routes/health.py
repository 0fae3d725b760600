"""
Health check endpoints.

GET /health/         liveness
GET /health/popular  popularity cache state and record-store configuration
"""
from fastapi import APIRouter

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.popularity.cache import get_popularity_cache

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/popular")
async def popular_health():
    """
    Report whether popular products can be served.

    A missing record-store configuration is reported as "unavailable"; a
    missing snapshot is normal (it is built on the next read).
    """
    settings = get_settings()
    store_configured = bool(settings.supabase_url and settings.supabase_key)
    cache_status = get_popularity_cache().status()

    response = {
        "status": "ok" if store_configured else "unavailable",
        "store_configured": store_configured,
        "cache": cache_status,
    }
    if not store_configured:
        response["message"] = "Record store not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY."
    return response
