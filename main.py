# main.py

"""Entry point for the price tracker (TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("price_tracker.main")


def _add_supplier_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True, help="Supplier name.")
    parser.add_argument("--contact", default=None, help="Contact person.")
    parser.add_argument("--phone", default=None)
    parser.add_argument("--address", default=None)
    parser.add_argument("--notes", default=None)


def _add_product_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True, help="Product name.")
    parser.add_argument("--category", default=None)
    parser.add_argument("--description", default=None)
    parser.add_argument("--sku", default=None)
    parser.add_argument("--unit", default=None, help="e.g. kg, box, piece.")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Track supplier prices and compare them per product.",
        epilog="Run without a command to launch the interactive TUI.",
    )
    parser.add_argument(
        "--email",
        default=None,
        help="Account email (default: $PRICE_TRACKER_EMAIL).",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Account password (default: $PRICE_TRACKER_PASSWORD).",
    )
    parser.add_argument(
        "--backend",
        choices=["sqlite", "rest"],
        default=None,
        help="Record store backend (default: $PRICE_TRACKER_BACKEND or sqlite).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("signup", help="Create an account.")

    p = sub.add_parser("suppliers", help="List suppliers.")
    p.add_argument("-q", "--search", default=None)

    p = sub.add_parser("products", help="List products.")
    p.add_argument("-q", "--search", default=None)
    p.add_argument("-c", "--category", default=None)

    p = sub.add_parser("prices", help="List price entries, newest first.")
    p.add_argument("--product", default=None, help="Only this product ID.")
    p.add_argument("--supplier", default=None, help="Only this supplier ID.")

    _add_supplier_fields(sub.add_parser("add-supplier", help="Add a supplier."))
    _add_product_fields(sub.add_parser("add-product", help="Add a product."))

    p = sub.add_parser("add-price", help="Record a supplier's price.")
    p.add_argument("--product", required=True, help="Product ID.")
    p.add_argument("--supplier", required=True, help="Supplier ID.")
    p.add_argument("--price", required=True)
    p.add_argument("--date", default=None, help="YYYY-MM-DD (default: today).")
    p.add_argument("--notes", default=None)

    for kind in ("supplier", "product", "price"):
        p = sub.add_parser(f"delete-{kind}", help=f"Delete a {kind}.")
        p.add_argument("id")

    p = sub.add_parser("compare", help="Latest price per supplier.")
    p.add_argument("--product", default=None, help="Only this product ID.")

    p = sub.add_parser("history", help="Price history of a product.")
    p.add_argument("product_id")
    p.add_argument("--supplier", default=None, help="Only this supplier ID.")

    sub.add_parser("alerts", help="Products with a >10%% supplier spread.")
    sub.add_parser("dashboard", help="Counts, recent prices and alerts.")

    p = sub.add_parser("chart", help="Export an HTML chart for a product.")
    p.add_argument("product_id")
    p.add_argument("--supplier", default=None)
    p.add_argument(
        "--comparison",
        action="store_true",
        default=False,
        help="Chart latest prices instead of the history.",
    )
    p.add_argument(
        "--no-open",
        action="store_false",
        default=True,
        dest="open",
        help="Do not open the chart in a browser.",
    )
    return parser


def _run_tui(backend: str | None) -> None:
    """Launch the interactive Textual TUI."""
    from src.ui.app import PriceTrackerApp

    try:
        app = PriceTrackerApp(backend=backend)
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("price_tracker TUI shutting down")


def _run_cli(args: argparse.Namespace) -> None:
    """Run one headless command and exit."""
    from src.cli.runner import run_command

    exit_code = asyncio.run(run_command(args))
    sys.exit(exit_code)


def main() -> None:
    """Route to the TUI (no command) or a headless CLI command."""
    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        _run_tui(args.backend)
    else:
        _run_cli(args)


if __name__ == "__main__":
    main()
