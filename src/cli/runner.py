# src/cli/runner.py

"""Headless CLI commands on top of the snapshot cache and price service."""

import argparse
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from datetime import date

from rich.console import Console
from rich.table import Table
from rich.text import Text

from src.config.settings import Settings
from src.models.comparison import PriceComparison
from src.models.price import PriceWithDetails
from src.models.product import Product
from src.models.supplier import Supplier
from src.services.auth import AuthError
from src.services.factory import TrackerContext, build_context
from src.services.price_analysis import (
    best_supplier,
    difference_from_best,
    history_insights,
    history_summary,
    price_difference_percentage,
    ranked_suppliers,
    savings_level,
)
from src.storage.chart_exporter import (
    export_comparison_chart,
    export_price_history_chart,
)

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

Command = Callable[[TrackerContext, argparse.Namespace], Awaitable[int]]


def _json_default(value: object) -> str:
    """Serialise dates and timestamps as ISO strings."""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _emit_json(data: object) -> None:
    json.dump(
        data, sys.stdout, ensure_ascii=False, indent=2,
        default=_json_default,
    )
    sys.stdout.write("\n")


def _fail(ctx: TrackerContext, fallback: str) -> int:
    """Print the session's error (or *fallback*) and return 1."""
    message = ctx.cache.error or ctx.prices.error or fallback
    _err.print(f"[red]{message}[/red]")
    return 1


def _price_dict(row: PriceWithDetails) -> dict[str, object]:
    return {
        "id": row.price.id,
        "product_id": row.price.product_id,
        "product": row.product_name,
        "supplier_id": row.price.supplier_id,
        "supplier": row.supplier_name,
        "price": row.price.price,
        "date": row.price.date,
        "notes": row.price.notes,
    }


def _comparison_dict(comparison: PriceComparison) -> dict[str, object]:
    best = best_supplier(comparison)
    diff = price_difference_percentage(comparison)
    return {
        "product_id": comparison.product_id,
        "product": comparison.product_name,
        "suppliers": [asdict(q) for q in ranked_suppliers(comparison)],
        "best_supplier": best.supplier_name if best else None,
        "difference_pct": round(diff, 2),
        "savings": savings_level(diff).value,
    }


# ── Table renderers ──────────────────────────────────────


def _print_suppliers(suppliers: list[Supplier]) -> None:
    table = Table(title="Suppliers", show_lines=True, title_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Contact")
    table.add_column("Phone")
    table.add_column("ID", style="dim", overflow="fold")
    for s in suppliers:
        table.add_row(s.name, s.contact or "—", s.phone or "—", s.id)
    Console().print(table)


def _print_products(products: list[Product]) -> None:
    table = Table(title="Products", show_lines=True, title_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Category", style="magenta")
    table.add_column("SKU")
    table.add_column("Unit")
    table.add_column("ID", style="dim", overflow="fold")
    for p in products:
        table.add_row(
            p.name, p.category or "—", p.sku or "—", p.unit or "—", p.id,
        )
    Console().print(table)


def _print_prices(rows: list[PriceWithDetails], title: str) -> None:
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("Date")
    table.add_column("Product", max_width=40)
    table.add_column("Supplier", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("ID", style="dim", overflow="fold")
    for r in rows:
        table.add_row(
            r.price.date.isoformat(),
            r.product_name,
            r.supplier_name,
            f"{r.price.price:,.2f}",
            r.price.id,
        )
    Console().print(table)


def _print_comparisons(comparisons: list[PriceComparison]) -> None:
    for comparison in comparisons:
        diff = price_difference_percentage(comparison)
        best = best_supplier(comparison)
        table = Table(
            title=(
                f"{comparison.product_name}  "
                f"[dim]spread {diff:.1f}% · "
                f"savings {savings_level(diff).value}[/dim]"
            ),
            show_lines=True,
            title_style="bold cyan",
        )
        table.add_column("Supplier")
        table.add_column("Latest", justify="right")
        table.add_column("vs best", justify="right")
        table.add_column("Quoted")
        for q in ranked_suppliers(comparison):
            is_best = best is not None and q.supplier_id == best.supplier_id
            table.add_row(
                Text(q.supplier_name, style="bold green" if is_best else ""),
                f"{q.latest_price:,.2f}",
                "best" if is_best
                else f"+{difference_from_best(comparison, q):.1f}%",
                q.price_date.isoformat(),
            )
        Console().print(table)


# ── Commands ─────────────────────────────────────────────


async def cmd_suppliers(ctx: TrackerContext, args: argparse.Namespace) -> int:
    if ctx.cache.error:
        return _fail(ctx, "Failed to fetch suppliers")
    suppliers = ctx.cache.search_suppliers(args.search or "")
    if args.output_format == "table":
        _print_suppliers(suppliers)
    else:
        _emit_json([asdict(s) for s in suppliers])
    return 0


async def cmd_products(ctx: TrackerContext, args: argparse.Namespace) -> int:
    if ctx.cache.error:
        return _fail(ctx, "Failed to fetch products")
    products = ctx.cache.search_products(args.search or "", args.category)
    if args.output_format == "table":
        _print_products(products)
    else:
        _emit_json([asdict(p) for p in products])
    return 0


async def cmd_prices(ctx: TrackerContext, args: argparse.Namespace) -> int:
    if args.product:
        rows = await ctx.cache.fetch_prices_by_product(args.product)
    elif args.supplier:
        rows = await ctx.cache.fetch_prices_by_supplier(args.supplier)
    else:
        rows = ctx.cache.prices
    if ctx.cache.error:
        return _fail(ctx, "Failed to fetch prices")
    if args.output_format == "table":
        _print_prices(rows, "Prices")
    else:
        _emit_json([_price_dict(r) for r in rows])
    return 0


async def cmd_add_supplier(ctx: TrackerContext, args: argparse.Namespace) -> int:
    supplier = await ctx.cache.create_supplier({
        "name": args.name,
        "contact": args.contact,
        "phone": args.phone,
        "address": args.address,
        "notes": args.notes,
    })
    if supplier is None:
        return _fail(ctx, "Failed to create supplier")
    _err.print(f"[green]✓ Supplier {supplier.name} ({supplier.id})[/green]")
    return 0


async def cmd_add_product(ctx: TrackerContext, args: argparse.Namespace) -> int:
    product = await ctx.cache.create_product({
        "name": args.name,
        "category": args.category,
        "description": args.description,
        "sku": args.sku,
        "unit": args.unit,
    })
    if product is None:
        return _fail(ctx, "Failed to create product")
    _err.print(f"[green]✓ Product {product.name} ({product.id})[/green]")
    return 0


async def cmd_add_price(ctx: TrackerContext, args: argparse.Namespace) -> int:
    price = await ctx.cache.create_price({
        "product_id": args.product,
        "supplier_id": args.supplier,
        "price": args.price,
        "date": args.date or date.today().isoformat(),
        "notes": args.notes,
    })
    if price is None:
        return _fail(ctx, "Failed to create price")
    _err.print(
        f"[green]✓ Price {price.price:,.2f} on {price.date} ({price.id})[/green]"
    )
    return 0


def _delete_command(kind: str) -> Command:
    """Build a ``delete-<kind>`` command."""
    async def run(ctx: TrackerContext, args: argparse.Namespace) -> int:
        delete = getattr(ctx.cache, f"delete_{kind}")
        if not await delete(args.id):
            return _fail(ctx, f"Failed to delete {kind}")
        _err.print(f"[green]✓ Deleted {kind} {args.id}[/green]")
        return 0
    return run


async def cmd_compare(ctx: TrackerContext, args: argparse.Namespace) -> int:
    comparisons = await ctx.prices.get_price_comparisons(args.product)
    if ctx.prices.error:
        return _fail(ctx, "Failed to generate price comparisons")
    if not comparisons:
        _err.print("[yellow]No price comparisons available.[/yellow]")
    if args.output_format == "table":
        _print_comparisons(comparisons)
    else:
        _emit_json([_comparison_dict(c) for c in comparisons])
    return 0


async def cmd_history(ctx: TrackerContext, args: argparse.Namespace) -> int:
    history = await ctx.prices.get_price_history(args.product_id, args.supplier)
    if ctx.prices.error:
        return _fail(ctx, "Failed to get price history")
    if args.output_format == "json":
        _emit_json({"dates": history.dates, "prices": history.prices})
        return 0

    if history.is_empty:
        _err.print("[yellow]No price history available for this product.[/yellow]")
        return 0
    summary = history_summary(history)
    table = Table(
        title=(
            f"Price History  [dim]{summary.supplier_count} suppliers · "
            f"{summary.price_updates} updates · {summary.period}[/dim]"
        ),
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Date")
    names = list(history.prices)
    for name in names:
        table.add_column(name, justify="right")
    for day in history.dates:
        cells = []
        for name in names:
            try:
                idx = history.series_dates[name].index(day)
                cells.append(f"{history.prices[name][idx]:,.2f}")
            except ValueError:
                cells.append("—")
        table.add_row(day, *cells)
    Console().print(table)
    for trend in history_insights(history):
        _err.print(f"• {trend.supplier_name} {trend.description}")
    return 0


async def cmd_alerts(ctx: TrackerContext, args: argparse.Namespace) -> int:
    alerts = await ctx.prices.get_price_alerts()
    if ctx.prices.error:
        return _fail(ctx, "Failed to generate price comparisons")
    if args.output_format == "json":
        _emit_json([asdict(a) for a in alerts])
        return 0
    if not alerts:
        _err.print("[dim]No price alerts at the moment.[/dim]")
    for alert in alerts:
        Console().print(
            f"[yellow]⚠[/yellow] [bold]{alert.product}[/bold] has a price "
            f"difference of [bold yellow]{round(alert.diff)}%[/bold yellow] "
            "between suppliers"
        )
    return 0


async def cmd_dashboard(ctx: TrackerContext, args: argparse.Namespace) -> int:
    summary = await ctx.prices.get_dashboard()
    if ctx.cache.error or ctx.prices.error:
        return _fail(ctx, "Failed to load dashboard")
    if args.output_format == "json":
        _emit_json({
            "suppliers": summary.supplier_count,
            "products": summary.product_count,
            "price_entries": summary.price_count,
            "todays_updates": summary.todays_updates,
            "recent_prices": [_price_dict(r) for r in summary.recent_prices],
            "alerts": [asdict(a) for a in summary.alerts],
        })
        return 0

    stats = Table(title="Dashboard", title_style="bold cyan")
    for label in ("Suppliers", "Products", "Price Entries", "Today's Updates"):
        stats.add_column(label, justify="center")
    stats.add_row(
        str(summary.supplier_count),
        str(summary.product_count),
        str(summary.price_count),
        str(summary.todays_updates),
    )
    Console().print(stats)
    if summary.recent_prices:
        _print_prices(summary.recent_prices, "Recent Price Updates")
    for alert in summary.alerts:
        Console().print(
            f"[yellow]⚠ {alert.product}: {round(alert.diff)}% "
            "between suppliers[/yellow]"
        )
    return 0


async def cmd_chart(ctx: TrackerContext, args: argparse.Namespace) -> int:
    product = await ctx.cache.get_product(args.product_id)
    if product is None:
        return _fail(ctx, "Product not found")

    if args.comparison:
        comparisons = await ctx.prices.get_price_comparisons(product.id)
        if ctx.prices.error:
            return _fail(ctx, "Failed to generate price comparisons")
        path = (
            export_comparison_chart(comparisons[0], open_browser=args.open)
            if comparisons else None
        )
    else:
        history = await ctx.prices.get_price_history(product.id, args.supplier)
        if ctx.prices.error:
            return _fail(ctx, "Failed to get price history")
        path = export_price_history_chart(
            history, product.name, open_browser=args.open,
        )

    if path is None:
        _err.print("[yellow]Not enough data for a chart.[/yellow]")
        return 1
    _err.print(f"[green]✓ Chart saved → {path}[/green]")
    return 0


COMMANDS: dict[str, Command] = {
    "suppliers": cmd_suppliers,
    "products": cmd_products,
    "prices": cmd_prices,
    "add-supplier": cmd_add_supplier,
    "add-product": cmd_add_product,
    "add-price": cmd_add_price,
    "delete-supplier": _delete_command("supplier"),
    "delete-product": _delete_command("product"),
    "delete-price": _delete_command("price"),
    "compare": cmd_compare,
    "history": cmd_history,
    "alerts": cmd_alerts,
    "dashboard": cmd_dashboard,
    "chart": cmd_chart,
}


async def run_command(
    args: argparse.Namespace,
    ctx: TrackerContext | None = None,
) -> int:
    """Sign in, run one command and return an exit code (0=ok, 1=fail)."""
    context = ctx or build_context(backend=args.backend)
    email = args.email or Settings.DEFAULT_EMAIL
    password = args.password or Settings.DEFAULT_PASSWORD
    if not email or not password:
        _err.print(
            "[red]Credentials required: --email/--password or "
            "PRICE_TRACKER_EMAIL/PRICE_TRACKER_PASSWORD[/red]"
        )
        return 1

    try:
        try:
            if args.command == "signup":
                user = await context.auth.sign_up(email, password)
                _err.print(f"[green]✓ Account created for {user.email}[/green]")
                return 0
            await context.auth.sign_in(email, password)
        except AuthError as exc:
            _err.print(f"[red]{exc}[/red]")
            return 1

        handler = COMMANDS[args.command]
        return await handler(context, args)
    finally:
        await context.auth.sign_out()
        if ctx is None:
            context.close()
