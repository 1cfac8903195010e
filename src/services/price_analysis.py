# src/services/price_analysis.py

"""Turn raw price rows into comparisons, histories and alerts.

Everything here is a pure function of in-memory records; fetching is
the caller's job.  Same-day quotes are ordered explicitly by
``created_at`` and then ``id`` so results never depend on the order a
store happens to return rows in.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from src.config.settings import Settings
from src.models.comparison import (
    PriceAlert,
    PriceComparison,
    SavingsLevel,
    SupplierQuote,
)
from src.models.price import PriceWithDetails
from src.models.price_history import PriceHistory
from src.models.product import Product

logger = logging.getLogger("price_tracker.analysis")


def newest_first(
    rows: Iterable[PriceWithDetails],
) -> list[PriceWithDetails]:
    """Sort by date, then creation time, then id; newest first."""
    return sorted(
        rows,
        key=lambda r: (r.price.date, r.price.created_at, r.price.id),
        reverse=True,
    )


def oldest_first(
    rows: Iterable[PriceWithDetails],
) -> list[PriceWithDetails]:
    """Sort by date, then creation time, then id; oldest first."""
    return sorted(
        rows,
        key=lambda r: (r.price.date, r.price.created_at, r.price.id),
    )


# ── Comparison builder ───────────────────────────────────


def latest_quotes(rows: Iterable[PriceWithDetails]) -> list[SupplierQuote]:
    """Keep each supplier's most recent quote, newest supplier first."""
    seen: dict[str, SupplierQuote] = {}
    for row in newest_first(rows):
        supplier_id = row.price.supplier_id
        if supplier_id in seen:
            continue
        seen[supplier_id] = SupplierQuote(
            supplier_id=supplier_id,
            supplier_name=row.supplier_name,
            latest_price=row.price.price,
            price_date=row.price.date,
        )
    return list(seen.values())


def build_price_comparison(
    product: Product, rows: Iterable[PriceWithDetails],
) -> PriceComparison | None:
    """Comparison for one product, or ``None`` when it has no quotes."""
    quotes = latest_quotes(
        r for r in rows if r.price.product_id == product.id
    )
    if not quotes:
        return None
    return PriceComparison(
        product_id=product.id,
        product_name=product.name,
        suppliers=quotes,
    )


def build_price_comparisons(
    products: Iterable[Product],
    rows: Iterable[PriceWithDetails],
) -> list[PriceComparison]:
    """One comparison per quoted product, in product order."""
    by_product: dict[str, list[PriceWithDetails]] = {}
    for row in rows:
        by_product.setdefault(row.price.product_id, []).append(row)

    comparisons: list[PriceComparison] = []
    for product in products:
        comparison = build_price_comparison(
            product, by_product.get(product.id, []),
        )
        if comparison is not None:
            comparisons.append(comparison)
    return comparisons


def best_supplier(comparison: PriceComparison) -> SupplierQuote | None:
    """Cheapest latest quote; the first one listed wins a tie."""
    best: SupplierQuote | None = None
    for quote in comparison.suppliers:
        if best is None or quote.latest_price < best.latest_price:
            best = quote
    return best


def ranked_suppliers(comparison: PriceComparison) -> list[SupplierQuote]:
    """Latest quotes sorted cheapest first (stable on ties)."""
    return sorted(comparison.suppliers, key=lambda q: q.latest_price)


def price_difference_percentage(comparison: PriceComparison) -> float:
    """``(max - min) / min * 100``; 0 with fewer than two suppliers."""
    if len(comparison.suppliers) < 2:
        return 0.0
    prices = [q.latest_price for q in comparison.suppliers]
    lowest = min(prices)
    return (max(prices) - lowest) / lowest * 100


def difference_from_best(
    comparison: PriceComparison, quote: SupplierQuote,
) -> float:
    """How much more expensive *quote* is than the best, in percent."""
    best = best_supplier(comparison)
    if best is None:
        return 0.0
    return (quote.latest_price - best.latest_price) / best.latest_price * 100


def savings_level(difference: float) -> SavingsLevel:
    """Label a spread percentage Low (≤5), Medium (≤15) or High."""
    if difference <= Settings.SAVINGS_LOW_MAX:
        return SavingsLevel.LOW
    if difference <= Settings.SAVINGS_MEDIUM_MAX:
        return SavingsLevel.MEDIUM
    return SavingsLevel.HIGH


# ── History builder ──────────────────────────────────────


def build_price_history(
    rows: Iterable[PriceWithDetails],
    product_id: str | None = None,
    supplier_id: str | None = None,
) -> PriceHistory:
    """Date-keyed price table for charting.

    Rows are folded oldest first, so when one supplier quoted twice on
    the same day the later-created quote is the one kept.  Each
    supplier's series is compacted: it only lists days that supplier
    actually quoted.
    """
    selected = [
        r for r in rows
        if (product_id is None or r.price.product_id == product_id)
        and (supplier_id is None or r.price.supplier_id == supplier_id)
    ]

    by_date: dict[str, dict[str, float]] = {}
    supplier_names: list[str] = []
    for row in oldest_first(selected):
        day = row.price.date.strftime(Settings.DATE_FORMAT)
        name = row.supplier_name
        by_date.setdefault(day, {})[name] = row.price.price
        if name not in supplier_names:
            supplier_names.append(name)

    dates = sorted(by_date)
    history = PriceHistory(dates=dates)
    for name in supplier_names:
        series_dates = [d for d in dates if name in by_date[d]]
        history.series_dates[name] = series_dates
        history.prices[name] = [by_date[d][name] for d in series_dates]
    return history


@dataclass
class SupplierTrend:
    """First-to-last price movement of one supplier's series."""

    supplier_name: str
    first_price: float
    last_price: float
    change: float

    @property
    def description(self) -> str:
        if self.change == 0:
            return "has remained stable"
        if self.change > 0:
            return f"has increased by {self.change:.1f}%"
        return f"has decreased by {abs(self.change):.1f}%"


@dataclass
class HistorySummary:
    """Headline numbers shown above a price chart."""

    supplier_count: int
    price_updates: int
    period: str


def history_insights(history: PriceHistory) -> list[SupplierTrend]:
    """Per-supplier change between the first and last recorded price."""
    trends: list[SupplierTrend] = []
    for name, series in history.prices.items():
        if not series:
            continue
        first, last = series[0], series[-1]
        trends.append(SupplierTrend(
            supplier_name=name,
            first_price=first,
            last_price=last,
            change=(last - first) / first * 100,
        ))
    return trends


def history_summary(history: PriceHistory) -> HistorySummary:
    """Supplier count, number of distinct quote days and the period."""
    if not history.dates:
        period = ""
    elif len(history.dates) == 1:
        period = history.dates[0]
    else:
        period = f"{history.dates[0]} to {history.dates[-1]}"
    return HistorySummary(
        supplier_count=len(history.prices),
        price_updates=len(history.dates),
        period=period,
    )


# ── Alert rule ───────────────────────────────────────────


def find_price_alerts(
    comparisons: Iterable[PriceComparison],
    threshold: float | None = None,
) -> list[PriceAlert]:
    """Products whose supplier spread is strictly above *threshold*."""
    limit = (
        Settings.PRICE_ALERT_THRESHOLD if threshold is None else threshold
    )
    alerts: list[PriceAlert] = []
    for comparison in comparisons:
        if len(comparison.suppliers) < 2:
            continue
        diff = price_difference_percentage(comparison)
        # float noise must not push an exact boundary over the limit
        if round(diff, 9) > limit:
            alerts.append(PriceAlert(
                product_id=comparison.product_id,
                product=comparison.product_name,
                diff=diff,
            ))
    if alerts:
        logger.debug("%d products above %.1f%% spread", len(alerts), limit)
    return alerts


# ── Dashboard helpers ────────────────────────────────────


def todays_prices(
    rows: Iterable[PriceWithDetails], today: date | None = None,
) -> list[PriceWithDetails]:
    """Quotes dated *today* (defaults to the local calendar day)."""
    day = today or date.today()
    return [r for r in rows if r.price.date == day]
