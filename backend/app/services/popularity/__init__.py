"""Popularity scoring, aggregation and the popular-products cache."""

from .scoring import compute_popularity_score, round2
from .aggregator import PopularityAggregator
from .cache import (
    PopularityCache,
    RankedSnapshot,
    TopNResult,
    get_popularity_cache,
    set_popularity_cache,
    invalidate_cache,
)

__all__ = [
    "compute_popularity_score",
    "round2",
    "PopularityAggregator",
    "PopularityCache",
    "RankedSnapshot",
    "TopNResult",
    "get_popularity_cache",
    "set_popularity_cache",
    "invalidate_cache",
]
