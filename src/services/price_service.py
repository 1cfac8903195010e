# src/services/price_service.py

"""Comparison, history and alert views for the signed-in user."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar

from src.models.comparison import PriceAlert, PriceComparison
from src.models.price import PriceWithDetails
from src.models.price_history import PriceHistory
from src.models.product import Product
from src.services.price_analysis import (
    build_price_comparison,
    build_price_history,
    find_price_alerts,
)
from src.services.snapshot_cache import SnapshotCache
from src.storage.record_store import (
    PRICES_NEWEST_FIRST,
    PRICES_OLDEST_FIRST,
    SUPPLIER_JOIN,
    StoreError,
)

logger = logging.getLogger("price_tracker.prices")

T = TypeVar("T")

_FETCH_ERRORS = (StoreError, KeyError, ValueError)


@dataclass
class DashboardSummary:
    """Counts, recent quotes and alerts for the landing screen."""

    supplier_count: int = 0
    product_count: int = 0
    price_count: int = 0
    todays_updates: int = 0
    recent_prices: list[PriceWithDetails] = field(
        default_factory=lambda: list[PriceWithDetails]()
    )
    alerts: list[PriceAlert] = field(
        default_factory=lambda: list[PriceAlert]()
    )


class PriceService:
    """Builds derived views straight from the record store.

    Each view keeps its last good result (``last_comparisons``,
    ``last_history``).  A failed fetch sets :attr:`error` and leaves
    that result untouched; a fetch that finishes after a newer one was
    started is discarded instead of overwriting fresher data.
    """

    def __init__(self, cache: SnapshotCache) -> None:
        self.cache = cache
        self.error: str | None = None
        self.last_comparisons: list[PriceComparison] = []
        self.last_history: PriceHistory = PriceHistory()
        self.last_alerts: list[PriceAlert] = []
        self._generations: dict[str, int] = {
            "comparisons": 0, "history": 0, "alerts": 0,
        }

    def _start(self, view: str) -> int:
        self._generations[view] += 1
        return self._generations[view]

    def is_current(self, view: str, generation: int) -> bool:
        """Whether *generation* is still the newest request for *view*."""
        return self._generations[view] == generation

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)

    # ── Comparisons ──────────────────────────────────────

    async def get_price_comparisons(
        self, product_id: str | None = None,
    ) -> list[PriceComparison]:
        """Latest quote per supplier for every (or one) product.

        Products are fetched first, then each product's quotes in turn,
        newest first.  Products without quotes are left out.
        """
        user_id = self.cache.user_id
        if user_id is None:
            return []

        generation = self._start("comparisons")
        store = self.cache.store
        filters = {"id": product_id} if product_id else None
        try:
            product_rows = await self._run(
                store.fetch_all, "products", user_id, filters,
            )
            comparisons: list[PriceComparison] = []
            for product_row in product_rows:
                product = Product.from_row(product_row)
                price_rows = await self._run(
                    store.fetch_joined,
                    "prices", user_id, SUPPLIER_JOIN,
                    {"product_id": product.id}, PRICES_NEWEST_FIRST,
                )
                comparison = build_price_comparison(
                    product,
                    [PriceWithDetails.from_row(r) for r in price_rows],
                )
                if comparison is not None:
                    comparisons.append(comparison)
        except _FETCH_ERRORS as exc:
            logger.error(
                "Error generating price comparisons: %s", exc, exc_info=True,
            )
            self.error = "Failed to generate price comparisons"
            return []

        if self.is_current("comparisons", generation):
            self.error = None
            self.last_comparisons = comparisons
        else:
            logger.debug("Discarding stale comparison result")
        return comparisons

    async def get_price_alerts(self) -> list[PriceAlert]:
        """Products whose supplier spread exceeds the alert threshold."""
        if self.cache.user_id is None:
            return []
        generation = self._start("alerts")
        comparisons = await self.get_price_comparisons()
        if self.error:
            return list(self.last_alerts)
        alerts = find_price_alerts(comparisons)
        if self.is_current("alerts", generation):
            self.last_alerts = alerts
        else:
            logger.debug("Discarding stale alert result")
        return list(self.last_alerts)

    # ── History ──────────────────────────────────────────

    async def get_price_history(
        self, product_id: str, supplier_id: str | None = None,
    ) -> PriceHistory:
        """Chart data for one product, optionally one supplier only."""
        user_id = self.cache.user_id
        if user_id is None:
            return PriceHistory()

        generation = self._start("history")
        filters = {"product_id": product_id}
        if supplier_id:
            filters["supplier_id"] = supplier_id
        try:
            rows = await self._run(
                self.cache.store.fetch_joined,
                "prices", user_id, SUPPLIER_JOIN,
                filters, PRICES_OLDEST_FIRST,
            )
            history = build_price_history(
                [PriceWithDetails.from_row(r) for r in rows],
                product_id=product_id,
                supplier_id=supplier_id,
            )
        except _FETCH_ERRORS as exc:
            logger.error(
                "Error getting price history: %s", exc, exc_info=True,
            )
            self.error = "Failed to get price history"
            return PriceHistory()

        if self.is_current("history", generation):
            self.error = None
            self.last_history = history
        else:
            logger.debug("Discarding stale history result")
        return history

    # ── Dashboard ────────────────────────────────────────

    async def get_dashboard(self, today: date | None = None) -> DashboardSummary:
        """Counts from the snapshot plus spread alerts."""
        cache = self.cache
        if cache.user_id is None:
            return DashboardSummary()
        alerts = await self.get_price_alerts() if cache.prices else []
        return DashboardSummary(
            supplier_count=len(cache.suppliers),
            product_count=len(cache.products),
            price_count=len(cache.prices),
            todays_updates=len(cache.todays_prices(today)),
            recent_prices=cache.recent_prices(),
            alerts=alerts,
        )
