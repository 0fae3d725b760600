"""
Runtime configuration for the storefront API.

Values come from the environment; a `.env` file at the repository root is
loaded first when present. Settings are read once and cached, call
`get_settings.cache_clear()` after changing the environment in tests.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PATH = Path(__file__).parent.parent.parent.parent / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    """Central configuration for the storefront API."""

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = True
    service_name: str = "bakery_storefront_api"

    # --- Popular products ---
    popular_cache_ttl_seconds: float = 300.0  # 5 minutes
    popular_recompute_timeout_seconds: Optional[float] = None
    popular_default_limit: int = 8
    popular_min_limit: int = 1
    popular_max_limit: int = 20

    # --- Record store ---
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # --- Tracing ---
    otlp_endpoint: Optional[str] = None
    tracing_sampling_rate: float = 1.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", True),
        service_name=os.getenv("SERVICE_NAME", "bakery_storefront_api"),
        popular_cache_ttl_seconds=_env_float("POPULAR_CACHE_TTL_SECONDS", 300.0),
        popular_recompute_timeout_seconds=_env_float("POPULAR_RECOMPUTE_TIMEOUT_SECONDS", None),
        popular_default_limit=_env_int("POPULAR_DEFAULT_LIMIT", 8),
        popular_min_limit=_env_int("POPULAR_MIN_LIMIT", 1),
        popular_max_limit=_env_int("POPULAR_MAX_LIMIT", 20),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY"),
        otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
        tracing_sampling_rate=_env_float("OTEL_TRACES_SAMPLER_ARG", 1.0),
    )
