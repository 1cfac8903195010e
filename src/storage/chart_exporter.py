# src/storage/chart_exporter.py

"""Generate interactive Plotly HTML charts from price data."""

import importlib
import logging
import re
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from src.config.settings import Settings
from src.models.comparison import PriceComparison
from src.models.price_history import PriceHistory
from src.services.price_analysis import (
    best_supplier,
    price_difference_percentage,
    ranked_suppliers,
)

logger = logging.getLogger("price_tracker.chart")

_CHARTS_DIR: Path = Settings.CHARTS_DIR


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _ensure_charts_dir() -> Path:
    """Create charts directory if it doesn't exist."""
    _CHARTS_DIR.mkdir(parents=True, exist_ok=True)
    return _CHARTS_DIR


def _slug(text: str) -> str:
    """Filesystem-safe short name for a chart file."""
    cleaned = re.sub(r"[^A-Za-z0-9]+", "_", text[:30]).strip("_")
    return cleaned or "chart"


def _write_chart(fig: Any, name: str, open_browser: bool) -> Path:
    charts_dir = _ensure_charts_dir()
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = charts_dir / f"{_slug(name)}_{stamp}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)
    if open_browser:
        webbrowser.open(filepath.as_uri())
    return filepath


def build_history_figure(history: PriceHistory, title: str) -> Any:
    """One line per supplier, each on the days it actually quoted."""
    go = _get_plotly_go()
    fig: Any = go.Figure()
    for supplier_name, prices in history.prices.items():
        fig.add_trace(go.Scatter(
            x=history.series_dates[supplier_name],
            y=prices,
            mode="lines+markers",
            name=supplier_name[:40],
            hovertemplate=(
                "%{x}<br>"
                "Price: %{y:.2f}"
                "<extra></extra>"
            ),
        ))

    fig.update_layout(
        title=f"Price History: {title[:60]}",
        xaxis_title="Date",
        yaxis_title="Price",
        xaxis={"type": "date"},
        hovermode="x unified",
        template="plotly_white",
        legend={"orientation": "h", "y": -0.15},
    )
    return fig


def build_comparison_figure(comparison: PriceComparison) -> Any:
    """Bar per supplier's latest quote, cheapest first and highlighted."""
    go = _get_plotly_go()
    quotes = ranked_suppliers(comparison)
    best = best_supplier(comparison)
    colors = [
        "#16a34a" if best and q.supplier_id == best.supplier_id
        else "#2563eb"
        for q in quotes
    ]

    fig: Any = go.Figure()
    fig.add_trace(go.Bar(
        x=[q.supplier_name for q in quotes],
        y=[q.latest_price for q in quotes],
        marker_color=colors,
        text=[f"{q.latest_price:.2f}" for q in quotes],
        customdata=[q.price_date.isoformat() for q in quotes],
        hovertemplate=(
            "%{x}<br>Price: %{y:.2f}<br>"
            "Quoted: %{customdata}<extra></extra>"
        ),
    ))
    diff = price_difference_percentage(comparison)
    fig.update_layout(
        title=(
            f"Latest Prices: {comparison.product_name[:50]} "
            f"(spread {diff:.1f}%)"
        ),
        xaxis_title="Supplier",
        yaxis_title="Price",
        template="plotly_white",
    )
    return fig


def export_price_history_chart(
    history: PriceHistory,
    product_name: str,
    open_browser: bool = True,
) -> Path | None:
    """Export a product's multi-supplier price history as HTML."""
    if history.is_empty:
        logger.warning(
            "No price history to chart for %s", product_name[:60],
        )
        return None
    fig = build_history_figure(history, product_name)
    return _write_chart(fig, f"history_{product_name}", open_browser)


def export_comparison_chart(
    comparison: PriceComparison,
    open_browser: bool = True,
) -> Path | None:
    """Export a product's latest-price comparison as HTML."""
    if not comparison.suppliers:
        logger.warning(
            "No quotes to chart for %s", comparison.product_name[:60],
        )
        return None
    fig = build_comparison_figure(comparison)
    return _write_chart(
        fig, f"comparison_{comparison.product_name}", open_browser,
    )
