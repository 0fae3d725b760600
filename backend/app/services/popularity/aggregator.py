"""
Popularity aggregation over the record store.

One pass each over products, order line items and comments, grouped by
product id, so a recomputation costs O(products + line items + comments)
instead of rescanning every order per product.
"""
import time
from collections import defaultdict
from typing import Dict, List

from app.core.logging import get_logger
from app.models.records import EXCLUDED_ORDER_STATUSES
from app.models.responses import ProductSignal
from app.repositories.record_store import RecordStore
from app.services.popularity.scoring import (
    build_product_signal,
    rank_signals,
    resolve_average_rating,
)

logger = get_logger(__name__)


class PopularityAggregator:
    """
    Computes ProductSignal for every catalog product.

    The full ranked catalog is returned; truncation to top-N happens in the
    cache so one recomputation can serve any limit. Record-store errors are
    not caught here.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def compute(self) -> List[ProductSignal]:
        start_time = time.time()

        products = await self.store.list_products()
        line_items = await self.store.list_order_line_items(EXCLUDED_ORDER_STATUSES)
        comments = await self.store.list_comments()

        ordered: Dict[str, int] = defaultdict(int)
        for item in line_items:
            if item.order_status in EXCLUDED_ORDER_STATUSES:
                continue
            ordered[item.product_id] += item.quantity

        comment_counts: Dict[str, int] = defaultdict(int)
        ratings: Dict[str, List[float]] = defaultdict(list)
        for comment in comments:
            comment_counts[comment.product_id] += 1
            if comment.rating is not None:
                ratings[comment.product_id].append(comment.rating)

        signals = [
            build_product_signal(
                product,
                orders_count=ordered.get(product.id, 0),
                comments_count=comment_counts.get(product.id, 0),
                average_rating=resolve_average_rating(
                    product.average_rating, ratings.get(product.id, [])
                ),
            )
            for product in products
        ]
        ranked = rank_signals(signals)

        logger.info(
            "popularity_signals_computed",
            products_count=len(products),
            line_items_count=len(line_items),
            comments_count=len(comments),
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return ranked
