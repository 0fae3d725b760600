"""
Popular products endpoint.

GET /popular?limit={int}
"""
import time
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.models.responses import ErrorResponse, PopularResponse
from app.services.popularity.cache import get_popularity_cache

logger = get_logger(__name__)

router = APIRouter()

LIMIT_ERROR_MESSAGE = "Limit must be between {min_limit} and {max_limit}"
FETCH_ERROR_MESSAGE = "Failed to fetch popular cakes"


def parse_limit(raw_limit: Optional[str]) -> int:
    """
    Parse and range-check the `limit` query parameter.

    Missing -> configured default. Non-integers and values outside
    [min, max] raise ValidationError; nothing is clamped.
    """
    settings = get_settings()
    message = LIMIT_ERROR_MESSAGE.format(
        min_limit=settings.popular_min_limit, max_limit=settings.popular_max_limit
    )
    if raw_limit is None or raw_limit.strip() == "":
        return settings.popular_default_limit
    # Plain optionally-signed decimal only; int() would also take "1_0" and non-ASCII digits
    text = raw_limit.strip()
    digits = text[1:] if text[:1] in ("+", "-") else text
    if not (digits.isascii() and digits.isdigit()):
        raise ValidationError(message)
    limit = int(text)
    if limit < settings.popular_min_limit or limit > settings.popular_max_limit:
        raise ValidationError(message)
    return limit


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(by_alias=True),
    )


@router.get("", response_model=PopularResponse)
async def get_popular(
    limit: Optional[str] = Query(None, description="Number of products to return (1-20)")
):
    """
    Most popular products, ranked by popularity score.

    Served from the popularity snapshot while it is fresh; `cached` tells
    whether this response came from the snapshot without recomputation.
    """
    start_time = time.time()

    try:
        n = parse_limit(limit)
    except ValidationError as e:
        logger.warning("popular_invalid_limit", limit=limit)
        return _error(400, str(e))

    try:
        result = await get_popularity_cache().get_top_n(n)
    except Exception as e:
        logger.error(
            "popular_fetch_error",
            limit=n,
            error=str(e),
            error_type=type(e).__name__,
            latency_ms=int((time.time() - start_time) * 1000),
            exc_info=True,
        )
        return _error(500, FETCH_ERROR_MESSAGE)

    logger.info(
        "popular_completed",
        limit=n,
        results_count=len(result.entries),
        cached=result.cached,
        latency_ms=int((time.time() - start_time) * 1000),
    )
    response = PopularResponse(
        data=list(result.entries),
        count=len(result.entries),
        cached=result.cached,
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))
