"""
Supabase client factory.

Credentials come from SUPABASE_URL and SUPABASE_SERVICE_KEY (or SUPABASE_KEY),
read through app.core.config so a root `.env` is honoured.
"""
from typing import Optional

from supabase import create_client, Client

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_client: Optional[Client] = None


def get_supabase_client() -> Optional[Client]:
    """Return the shared Supabase client, creating it on first use."""
    global _client
    if _client is not None:
        return _client

    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning(
            "supabase_credentials_missing",
            message="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env"
        )
        return None

    if not settings.supabase_url.startswith("http"):
        logger.error(
            "supabase_url_invalid",
            url=settings.supabase_url,
            message="Should start with http:// or https://"
        )
        return None

    try:
        logger.info("supabase_client_creating", url_prefix=settings.supabase_url[:30])
        _client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("supabase_client_created")
        return _client
    except Exception as e:
        logger.error(
            "supabase_client_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return None
