"""
In-process cache for the popular products ranking.

- Holds one RankedSnapshot (the whole ranked catalog)
- TTL: 5 minutes by default (POPULAR_CACHE_TTL_SECONDS)
- Invalidation: order placed or status changed, comment created/updated/deleted

Concurrent misses share a single recomputation task. invalidate() bumps a
generation counter; a recomputation that started under an older generation
still answers the callers that were waiting on it but is never stored, and
new callers wait for it to finish before starting a fresh one, so at most
one aggregator run is in flight per cache.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Any, Tuple

from app.core.config import get_settings
from app.core.errors import RecomputeTimeoutError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_popular_invalidation,
    record_popular_recompute,
)
from app.core.tracing import get_tracer
from app.models.responses import ProductSignal
from app.services.popularity.aggregator import PopularityAggregator

logger = get_logger(__name__)

CACHE_TYPE = "popular"
DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class RankedSnapshot:
    entries: Tuple[ProductSignal, ...]
    computed_at: float


@dataclass(frozen=True)
class TopNResult:
    entries: Tuple[ProductSignal, ...]
    cached: bool


def _retrieve_exception(task: asyncio.Future) -> None:
    # Failures are logged in _recompute; mark them retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()


class PopularityCache:
    """Serves top-N popular products from a TTL-bounded snapshot."""

    def __init__(
        self,
        aggregator: PopularityAggregator,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        recompute_timeout_seconds: Optional[float] = None,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.aggregator = aggregator
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.recompute_timeout_seconds = recompute_timeout_seconds

        self._snapshot: Optional[RankedSnapshot] = None
        self._generation = 0
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_generation = 0

    @property
    def snapshot(self) -> Optional[RankedSnapshot]:
        return self._snapshot

    def _is_fresh(self, snapshot: Optional[RankedSnapshot]) -> bool:
        return snapshot is not None and (self.clock() - snapshot.computed_at) < self.ttl_seconds

    async def get_top_n(self, n: int) -> TopNResult:
        """
        First n entries of the ranking.

        Raises:
            ValidationError: n < 1
            StoreReadError: recomputation failed (prior snapshot is kept)
        """
        if n < 1:
            raise ValidationError("n must be >= 1")

        while True:
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                record_cache_hit(CACHE_TYPE)
                logger.debug("cache_hit", cache_type=CACHE_TYPE, n=n)
                return TopNResult(entries=snapshot.entries[:n], cached=True)

            task = self._inflight
            if task is not None and self._inflight_generation != self._generation:
                # Started before the latest invalidation; let it drain, then recompute
                await asyncio.wait({task})
                continue

            if task is None:
                record_cache_miss(CACHE_TYPE)
                logger.debug("cache_miss", cache_type=CACHE_TYPE, n=n)
                task = asyncio.ensure_future(self._recompute(self._generation))
                task.add_done_callback(_retrieve_exception)
                self._inflight = task
                self._inflight_generation = self._generation

            snapshot = await asyncio.shield(task)
            return TopNResult(entries=snapshot.entries[:n], cached=False)

    async def _recompute(self, generation: int) -> RankedSnapshot:
        start_time = time.time()
        logger.info("popular_recompute_started", generation=generation)
        try:
            with get_tracer().start_as_current_span("popularity.recompute") as span:
                span.set_attribute("popularity.generation", generation)
                if self.recompute_timeout_seconds is not None:
                    entries = await asyncio.wait_for(
                        self.aggregator.compute(), timeout=self.recompute_timeout_seconds
                    )
                else:
                    entries = await self.aggregator.compute()
                span.set_attribute("popularity.products", len(entries))
        except asyncio.TimeoutError as e:
            duration = time.time() - start_time
            record_popular_recompute("timeout", duration)
            logger.error(
                "popular_recompute_timeout",
                generation=generation,
                timeout_seconds=self.recompute_timeout_seconds,
            )
            raise RecomputeTimeoutError(
                f"popularity recomputation exceeded {self.recompute_timeout_seconds}s"
            ) from e
        except Exception as e:
            record_popular_recompute("error", time.time() - start_time)
            logger.error(
                "popular_recompute_failed",
                generation=generation,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise
        finally:
            if self._inflight_generation == generation:
                self._inflight = None

        snapshot = RankedSnapshot(entries=tuple(entries), computed_at=self.clock())
        stored = generation == self._generation
        if stored:
            self._snapshot = snapshot

        duration = time.time() - start_time
        record_popular_recompute("success", duration, snapshot_size=len(entries) if stored else None)
        logger.info(
            "popular_recompute_completed",
            generation=generation,
            products_count=len(entries),
            stored=stored,
            latency_ms=int(duration * 1000),
        )
        return snapshot

    def invalidate(self, source: str = "unknown") -> None:
        """Drop the snapshot; the next get_top_n recomputes regardless of TTL."""
        self._generation += 1
        self._snapshot = None
        record_popular_invalidation(source)
        logger.info("popular_cache_invalidated", source=source, generation=self._generation)

    def status(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        age = self.clock() - snapshot.computed_at if snapshot is not None else None
        return {
            "has_snapshot": snapshot is not None,
            "fresh": self._is_fresh(snapshot),
            "age_seconds": age,
            "entries": len(snapshot.entries) if snapshot is not None else 0,
            "generation": self._generation,
            "recompute_in_flight": self._inflight is not None,
            "ttl_seconds": self.ttl_seconds,
        }


# Process-wide cache instance
_popularity_cache: Optional[PopularityCache] = None


def get_popularity_cache() -> PopularityCache:
    """Global cache, built from settings and the process-wide record store."""
    global _popularity_cache
    if _popularity_cache is None:
        from app.repositories import get_record_store

        settings = get_settings()
        _popularity_cache = PopularityCache(
            PopularityAggregator(get_record_store()),
            ttl_seconds=settings.popular_cache_ttl_seconds,
            recompute_timeout_seconds=settings.popular_recompute_timeout_seconds,
        )
    return _popularity_cache


def set_popularity_cache(cache: Optional[PopularityCache]) -> None:
    """Replace the global cache; None rebuilds it from settings on next use."""
    global _popularity_cache
    _popularity_cache = cache


def invalidate_cache(source: str = "unknown") -> None:
    """
    Invalidation hook for write paths.

    Must be called after an order is placed or changes status, and after a
    comment or rating is created, updated or deleted, once the write has
    committed.
    """
    get_popularity_cache().invalidate(source)
