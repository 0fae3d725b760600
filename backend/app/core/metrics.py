"""
Prometheus metrics for the storefront API.

Metric groups:
- RED metrics for every HTTP request
- Cache hits/misses, labelled by cache type
- Popularity engine: recomputations, recompute latency, invalidations, snapshot size
- Process resources: CPU and memory

Naming follows Prometheus conventions (_total for counters, _seconds for durations).
"""
from typing import Optional

import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# CACHE METRICS
# ============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_type"],
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_type"],
    registry=registry,
)

# ============================================================================
# POPULARITY ENGINE METRICS
# ============================================================================

popular_recomputations_total = Counter(
    "popular_recomputations_total",
    "Total number of popularity ranking recomputations",
    ["outcome"],  # "success", "error", "timeout"
    registry=registry,
)

popular_recompute_duration_seconds = Histogram(
    "popular_recompute_duration_seconds",
    "Popularity ranking recomputation latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

popular_cache_invalidations_total = Counter(
    "popular_cache_invalidations_total",
    "Total number of popularity snapshot invalidations",
    ["source"],  # "order", "comment", "admin", ...
    registry=registry,
)

popular_snapshot_size = Gauge(
    "popular_snapshot_size",
    "Number of products in the current popularity snapshot",
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Collapse dynamic path segments so label cardinality stays bounded.

    Examples:
        /orders/abc123/status -> /orders/{order_id}/status
        /comments/42 -> /comments/{id}
        /popular?limit=5 -> /popular
    """
    if "?" in path:
        path = path.split("?")[0]

    parts = path.split("/")
    if path.startswith("/orders/") and len(parts) >= 3 and parts[2]:
        parts[2] = "{order_id}"
        return "/".join(parts)

    if path.startswith("/comments/") and len(parts) >= 3 and parts[2]:
        parts[2] = "{id}"
        return "/".join(parts)

    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record rate, error and duration for one HTTP request."""
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_cache_hit(cache_type: str) -> None:
    cache_hits_total.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str) -> None:
    cache_misses_total.labels(cache_type=cache_type).inc()


def record_popular_recompute(
    outcome: str,
    duration_seconds: float,
    snapshot_size: Optional[int] = None,
) -> None:
    """
    Record one popularity recomputation.

    Args:
        outcome: "success", "error" or "timeout"
        duration_seconds: Time spent in the aggregator
        snapshot_size: Number of ranked products, only for successful runs
    """
    popular_recomputations_total.labels(outcome=outcome).inc()
    popular_recompute_duration_seconds.observe(duration_seconds)
    if snapshot_size is not None:
        popular_snapshot_size.set(snapshot_size)


def record_popular_invalidation(source: str) -> None:
    popular_cache_invalidations_total.labels(source=source).inc()
    popular_snapshot_size.set(0)


def update_resource_metrics() -> None:
    """Refresh CPU and memory gauges; called on every scrape."""
    try:
        system_cpu_usage_percent.set(psutil.cpu_percent(interval=None))
        system_memory_usage_bytes.set(psutil.virtual_memory().used)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Prometheus text exposition of the registry."""
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
