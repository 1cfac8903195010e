# src/ui/app.py

"""Terminal UI for tracking and comparing supplier prices."""

import logging
from datetime import date
from typing import cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Static,
    TabbedContent,
    TabPane,
)

from src.models.comparison import PriceComparison, SavingsLevel
from src.models.price_history import PriceHistory
from src.services.auth import AuthError
from src.services.factory import TrackerContext, build_context
from src.services.price_analysis import (
    best_supplier,
    history_insights,
    history_summary,
    price_difference_percentage,
    savings_level,
)
from src.services.price_service import DashboardSummary
from src.storage.chart_exporter import (
    export_comparison_chart,
    export_price_history_chart,
)

logger = logging.getLogger("price_tracker.ui")

SUPPLIER_FORM = [
    ("name", "Name *"),
    ("contact", "Contact person"),
    ("phone", "Phone"),
    ("address", "Address"),
    ("notes", "Notes"),
]
PRODUCT_FORM = [
    ("name", "Name *"),
    ("category", "Category"),
    ("description", "Description"),
    ("sku", "SKU"),
    ("unit", "Unit (kg, box, piece)"),
]
PRICE_FORM = [
    ("product", "Product name or ID *"),
    ("supplier", "Supplier name or ID *"),
    ("price", "Price *"),
    ("date", "Date (YYYY-MM-DD) *"),
    ("notes", "Notes"),
]

_SAVINGS_STYLES = {
    SavingsLevel.LOW: "",
    SavingsLevel.MEDIUM: "yellow",
    SavingsLevel.HIGH: "bold red",
}

# Which table each tab edits, and the record kind behind its rows
_TAB_TABLES = {
    "suppliers_tab": ("#suppliers_table", "supplier"),
    "products_tab": ("#products_table", "product"),
    "prices_tab": ("#prices_table", "price"),
}


class RecordForm(ModalScreen[dict[str, str] | None]):
    """Modal form returning the entered values, or None on cancel."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    RecordForm {
        align: center middle;
    }
    #form_body {
        width: 60;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    #form_title {
        text-style: bold;
        margin-bottom: 1;
    }
    #form_buttons {
        height: auto;
        margin-top: 1;
    }
    """

    def __init__(
        self,
        title: str,
        fields: list[tuple[str, str]],
        values: dict[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.form_title = title
        self.form_fields = fields
        self.form_values = values or {}

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static(self.form_title, id="form_title"),
            *[
                Input(
                    value=self.form_values.get(key, ""),
                    placeholder=label,
                    id=f"field_{key}",
                )
                for key, label in self.form_fields
            ],
            Horizontal(
                Button("Save", variant="primary", id="save_btn"),
                Button("Cancel", id="cancel_btn"),
                id="form_buttons",
            ),
            id="form_body",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save_btn":
            self.dismiss({
                key: self.query_one(f"#field_{key}", Input).value
                for key, _ in self.form_fields
            })
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class PriceTrackerApp(App[object]):
    """Terminal UI for the supplier price tracker."""

    CSS = """
    #login {
        align: center middle;
        height: 1fr;
    }
    #login_form {
        width: 50;
        height: auto;
        border: thick $primary;
        padding: 1 2;
    }
    #login_buttons {
        height: auto;
    }
    #title, #stats, #history_title {
        text-style: bold;
        padding: 0 1;
    }
    #alerts_panel, #history_insights {
        padding: 0 1;
        color: $warning;
    }
    DataTable {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("a", "add", "Add"),
        Binding("e", "edit", "Edit"),
        Binding("d", "delete", "Delete"),
        Binding("c", "chart", "Chart"),
        Binding("l", "sign_out", "Sign out"),
    ]

    def __init__(
        self,
        backend: str | None = None,
        context: TrackerContext | None = None,
    ) -> None:
        super().__init__()
        self._owns_context = context is None
        self.ctx = context or build_context(backend=backend)
        self.history_product_id: str | None = None
        self.history_product_name: str = ""

    # ── Layout ───────────────────────────────────────────

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        yield Header()
        yield Container(
            Vertical(
                Static("💲 Supplier Price Tracker", id="title"),
                Input(placeholder="Email", id="email_input"),
                Input(
                    placeholder="Password", password=True,
                    id="password_input",
                ),
                Horizontal(
                    Button("Sign in", variant="primary", id="sign_in_btn"),
                    Button("Sign up", id="sign_up_btn"),
                    id="login_buttons",
                ),
                id="login_form",
            ),
            id="login",
        )
        with TabbedContent(id="main", initial="dashboard_tab"):
            with TabPane("Dashboard", id="dashboard_tab"):
                yield Static("", id="stats")
                yield DataTable(id="recent_table", cursor_type="row")
                yield Static("", id="alerts_panel")
            with TabPane("Suppliers", id="suppliers_tab"):
                yield Input(
                    placeholder="Search suppliers...", id="supplier_search",
                )
                yield DataTable(
                    id="suppliers_table", zebra_stripes=True,
                    cursor_type="row",
                )
            with TabPane("Products", id="products_tab"):
                yield Input(
                    placeholder="Search products...", id="product_search",
                )
                yield DataTable(
                    id="products_table", zebra_stripes=True,
                    cursor_type="row",
                )
            with TabPane("Prices", id="prices_tab"):
                yield DataTable(
                    id="prices_table", zebra_stripes=True, cursor_type="row",
                )
            with TabPane("Compare", id="compare_tab"):
                yield DataTable(
                    id="comparison_table", zebra_stripes=True,
                    cursor_type="row",
                )
            with TabPane("History", id="history_tab"):
                yield Static(
                    "Select a product and press Enter", id="history_title",
                )
                yield DataTable(id="history_table", cursor_type="row")
                yield Static("", id="history_insights")
        yield Footer()

    def _table(self, selector: str) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text], self.query_one(selector, DataTable),
        )

    def on_mount(self) -> None:
        """Configure table columns and show the sign-in form."""
        self._table("#recent_table").add_columns(
            "Date", "Product", "Supplier", "Price",
        )
        self._table("#suppliers_table").add_columns(
            "Name", "Contact", "Phone", "Address",
        )
        self._table("#products_table").add_columns(
            "Name", "Category", "SKU", "Unit",
        )
        self._table("#prices_table").add_columns(
            "Date", "Product", "Supplier", "Price", "Notes",
        )
        self._table("#comparison_table").add_columns(
            "Product", "Best Supplier", "Best Price", "Suppliers",
            "Spread", "Savings",
        )
        self._show_signed_in(False)

    async def on_unmount(self) -> None:
        await self.ctx.auth.sign_out()
        if self._owns_context:
            self.ctx.close()

    def _show_signed_in(self, signed_in: bool) -> None:
        self.query_one("#login", Container).display = not signed_in
        self.query_one("#main", TabbedContent).display = signed_in
        if not signed_in:
            self.query_one("#email_input", Input).focus()

    def _report_errors(self) -> bool:
        """Notify the session's pending error, if any."""
        message = self.ctx.cache.error or self.ctx.prices.error
        if message:
            self.notify(message, severity="error")
        return message is not None

    # ── Authentication ───────────────────────────────────

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button click events."""
        if event.button.id == "sign_in_btn":
            await self.authenticate(sign_up=False)
        elif event.button.id == "sign_up_btn":
            await self.authenticate(sign_up=True)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle Enter in the sign-in form."""
        if event.input.id in ("email_input", "password_input"):
            await self.authenticate(sign_up=False)

    async def authenticate(self, sign_up: bool) -> None:
        """Sign in (or up) with the form's credentials."""
        email = self.query_one("#email_input", Input).value.strip()
        password = self.query_one("#password_input", Input).value
        auth = self.ctx.auth
        try:
            if sign_up:
                await auth.sign_up(email, password)
            else:
                await auth.sign_in(email, password)
        except AuthError as exc:
            self.notify(str(exc), severity="error")
            return

        self.query_one("#password_input", Input).value = ""
        user = auth.user
        self.sub_title = user.email if user else ""
        self._show_signed_in(True)
        await self.load_views()

    async def action_sign_out(self) -> None:
        """Sign out and return to the sign-in form."""
        await self.ctx.auth.sign_out()
        self.sub_title = ""
        self.history_product_id = None
        self._show_signed_in(False)

    # ── Loading ──────────────────────────────────────────

    async def load_views(self) -> None:
        """Fill every tab from the snapshot and the derived views."""
        self._report_errors()
        self.populate_suppliers()
        self.populate_products()
        self.populate_prices()
        summary = await self.ctx.prices.get_dashboard()
        self.populate_dashboard(summary)
        comparisons = (
            self.ctx.prices.last_comparisons if self.ctx.cache.prices else []
        )
        self.populate_comparisons(comparisons)
        if self.ctx.prices.error:
            self.notify(self.ctx.prices.error, severity="error")
        if self.history_product_id:
            await self.show_history(
                self.history_product_id, self.history_product_name,
            )

    async def action_refresh(self) -> None:
        """Refetch everything for the signed-in user."""
        if self.ctx.auth.user is None:
            return
        await self.ctx.cache.refresh()
        await self.load_views()
        self.notify("Refreshed")

    def populate_dashboard(self, summary: DashboardSummary) -> None:
        self.query_one("#stats", Static).update(
            f"Suppliers: {summary.supplier_count}    "
            f"Products: {summary.product_count}    "
            f"Price Entries: {summary.price_count}    "
            f"Today's Updates: {summary.todays_updates}"
        )
        table = self._table("#recent_table")
        table.clear()
        for row in summary.recent_prices:
            table.add_row(
                row.price.date.isoformat(),
                row.product_name[:40],
                row.supplier_name,
                Text(f"{row.price.price:,.2f}", style="green"),
            )
        alerts = self.query_one("#alerts_panel", Static)
        if summary.alerts:
            alerts.update("\n".join(
                f"⚠ {a.product} has a price difference of "
                f"{round(a.diff)}% between suppliers"
                for a in summary.alerts
            ))
        else:
            alerts.update("No price alerts at the moment.")

    def populate_suppliers(self) -> None:
        term = self.query_one("#supplier_search", Input).value
        table = self._table("#suppliers_table")
        table.clear()
        for s in self.ctx.cache.search_suppliers(term):
            table.add_row(
                s.name, s.contact or "", s.phone or "", s.address or "",
                key=s.id,
            )

    def populate_products(self) -> None:
        term = self.query_one("#product_search", Input).value
        table = self._table("#products_table")
        table.clear()
        for p in self.ctx.cache.search_products(term):
            table.add_row(
                p.name, p.category or "", p.sku or "", p.unit or "",
                key=p.id,
            )

    def populate_prices(self) -> None:
        table = self._table("#prices_table")
        table.clear()
        for row in self.ctx.cache.prices:
            table.add_row(
                row.price.date.isoformat(),
                row.product_name[:40],
                row.supplier_name,
                Text(f"{row.price.price:,.2f}", style="green"),
                row.price.notes or "",
                key=row.id,
            )

    def populate_comparisons(self, comparisons: list[PriceComparison]) -> None:
        table = self._table("#comparison_table")
        table.clear()
        for comparison in comparisons:
            best = best_supplier(comparison)
            diff = price_difference_percentage(comparison)
            level = savings_level(diff)
            table.add_row(
                comparison.product_name[:40],
                Text(best.supplier_name, style="bold green") if best else "",
                f"{best.latest_price:,.2f}" if best else "",
                str(len(comparison.suppliers)),
                f"{diff:.1f}%",
                Text(level.value, style=_SAVINGS_STYLES[level]),
                key=comparison.product_id,
            )

    def populate_history(self, history: PriceHistory) -> None:
        table = self._table("#history_table")
        table.clear(columns=True)
        insights = self.query_one("#history_insights", Static)
        if history.is_empty:
            insights.update("No price history available for this product.")
            return

        names = list(history.prices)
        table.add_columns("Date", *names)
        for day in history.dates:
            cells: list[str | Text] = [day]
            for name in names:
                days = history.series_dates[name]
                if day in days:
                    price = history.prices[name][days.index(day)]
                    cells.append(f"{price:,.2f}")
                else:
                    cells.append("")
            table.add_row(*cells)

        summary = history_summary(history)
        lines = [
            f"{summary.supplier_count} suppliers · "
            f"{summary.price_updates} updates · {summary.period}"
        ]
        lines.extend(
            f"• {t.supplier_name} {t.description}"
            for t in history_insights(history)
        )
        insights.update("\n".join(lines))

    async def show_history(self, product_id: str, product_name: str) -> None:
        """Load one product's history into the History tab."""
        self.history_product_id = product_id
        self.history_product_name = product_name
        self.query_one("#history_title", Static).update(
            f"Price History: {product_name}"
        )
        history = await self.ctx.prices.get_price_history(product_id)
        if self.ctx.prices.error:
            self.notify(self.ctx.prices.error, severity="error")
            return
        self.populate_history(history)

    # ── Events ───────────────────────────────────────────

    def on_input_changed(self, event: Input.Changed) -> None:
        """Filter the supplier/product tables as the user types."""
        if event.input.id == "supplier_search":
            self.populate_suppliers()
        elif event.input.id == "product_search":
            self.populate_products()

    async def on_data_table_row_selected(
        self, event: DataTable.RowSelected,
    ) -> None:
        """Open the selected product's price history."""
        if event.data_table.id not in ("products_table", "comparison_table"):
            return
        product_id = event.row_key.value
        product = next(
            (p for p in self.ctx.cache.products if p.id == product_id), None,
        )
        if product is None:
            return
        await self.show_history(product.id, product.name)
        self.query_one("#main", TabbedContent).active = "history_tab"

    def _selected_key(self, selector: str) -> str | None:
        table = self._table(selector)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    def _active_tab(self) -> str:
        return self.query_one("#main", TabbedContent).active

    def _resolve(self, value: str, kind: str) -> str:
        """Map a typed product/supplier name to its ID."""
        records = (
            self.ctx.cache.products if kind == "product"
            else self.ctx.cache.suppliers
        )
        wanted = value.strip().lower()
        for record in records:
            if wanted in (record.id.lower(), record.name.lower()):
                return record.id
        return value.strip()

    def _price_data(self, values: dict[str, str]) -> dict[str, str]:
        return {
            "product_id": self._resolve(values["product"], "product"),
            "supplier_id": self._resolve(values["supplier"], "supplier"),
            "price": values["price"],
            "date": values["date"],
            "notes": values["notes"],
        }

    # ── Actions ──────────────────────────────────────────

    def action_add(self) -> None:
        """Open the add form for the active tab's record kind."""
        if self.ctx.auth.user is None:
            return
        tab = self._active_tab()
        if tab == "suppliers_tab":
            self.push_screen(
                RecordForm("Add Supplier", SUPPLIER_FORM),
                self._save_new_supplier,
            )
        elif tab == "products_tab":
            self.push_screen(
                RecordForm("Add Product", PRODUCT_FORM),
                self._save_new_product,
            )
        else:
            defaults = {"date": date.today().isoformat()}
            product_id = None
            if tab == "compare_tab":
                product_id = self._selected_key("#comparison_table")
            elif tab == "history_tab":
                product_id = self.history_product_id
            if product_id:
                defaults["product"] = product_id
            self.push_screen(
                RecordForm("Add Price", PRICE_FORM, defaults),
                self._save_new_price,
            )

    async def _after_write(self, ok: bool, message: str) -> None:
        if not ok:
            self._report_errors()
            return
        self.notify(message)
        await self.load_views()

    async def _save_new_supplier(self, values: dict[str, str] | None) -> None:
        if values is None:
            return
        supplier = await self.ctx.cache.create_supplier(values)
        await self._after_write(supplier is not None, "Supplier added")

    async def _save_new_product(self, values: dict[str, str] | None) -> None:
        if values is None:
            return
        product = await self.ctx.cache.create_product(values)
        await self._after_write(product is not None, "Product added")

    async def _save_new_price(self, values: dict[str, str] | None) -> None:
        if values is None:
            return
        price = await self.ctx.cache.create_price(self._price_data(values))
        await self._after_write(price is not None, "Price added")

    def action_edit(self) -> None:
        """Open the selected record in an edit form."""
        entry = _TAB_TABLES.get(self._active_tab())
        if entry is None or self.ctx.auth.user is None:
            return
        selector, kind = entry
        row_id = self._selected_key(selector)
        if row_id is None:
            self.notify(f"Select a {kind} first", severity="warning")
            return

        cache = self.ctx.cache

        async def save(values: dict[str, str] | None) -> None:
            if values is None:
                return
            if kind == "supplier":
                ok = await cache.update_supplier(row_id, values) is not None
            elif kind == "product":
                ok = await cache.update_product(row_id, values) is not None
            else:
                ok = await cache.update_price(
                    row_id, self._price_data(values),
                ) is not None
            await self._after_write(ok, f"{kind.capitalize()} updated")

        if kind == "supplier":
            s = next(s for s in cache.suppliers if s.id == row_id)
            values = {
                "name": s.name, "contact": s.contact or "",
                "phone": s.phone or "", "address": s.address or "",
                "notes": s.notes or "",
            }
            self.push_screen(
                RecordForm("Edit Supplier", SUPPLIER_FORM, values), save,
            )
        elif kind == "product":
            p = next(p for p in cache.products if p.id == row_id)
            values = {
                "name": p.name, "category": p.category or "",
                "description": p.description or "", "sku": p.sku or "",
                "unit": p.unit or "",
            }
            self.push_screen(
                RecordForm("Edit Product", PRODUCT_FORM, values), save,
            )
        else:
            row = next(r for r in cache.prices if r.id == row_id)
            values = {
                "product": row.price.product_id,
                "supplier": row.price.supplier_id,
                "price": f"{row.price.price}",
                "date": row.price.date.isoformat(),
                "notes": row.price.notes or "",
            }
            self.push_screen(
                RecordForm("Edit Price", PRICE_FORM, values), save,
            )

    async def action_delete(self) -> None:
        """Delete the selected row of the active tab."""
        entry = _TAB_TABLES.get(self._active_tab())
        if entry is None or self.ctx.auth.user is None:
            return
        selector, kind = entry
        row_id = self._selected_key(selector)
        if row_id is None:
            self.notify(f"Select a {kind} first", severity="warning")
            return
        delete = getattr(self.ctx.cache, f"delete_{kind}")
        ok = await delete(row_id)
        await self._after_write(ok, f"{kind.capitalize()} deleted")

    async def action_chart(self) -> None:
        """Export a chart for the product in view.

        On the Compare tab this charts the selected product's latest
        prices; elsewhere it charts the History tab's product.
        """
        if self._active_tab() == "compare_tab":
            product_id = self._selected_key("#comparison_table")
            comparison = next(
                (
                    c for c in self.ctx.prices.last_comparisons
                    if c.product_id == product_id
                ),
                None,
            )
            if comparison is None:
                self.notify("Select a product first", severity="warning")
                return
            path = export_comparison_chart(comparison)
        else:
            if self.history_product_id is None:
                self.notify("Open a product's history first", severity="warning")
                return
            history = self.ctx.prices.last_history
            path = export_price_history_chart(
                history, self.history_product_name,
            )

        if path is None:
            self.notify("Not enough data for a chart", severity="warning")
            return
        logger.info("Chart exported to %s", path)
        self.notify(f"Chart saved to {path}")
