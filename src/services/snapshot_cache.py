# src/services/snapshot_cache.py

"""Session-scoped in-memory copy of the user's records."""

import asyncio
import logging
from collections.abc import Callable
from datetime import date
from typing import Any, TypeVar

from src.config.settings import Settings
from src.filters.record_filter import RecordFilter
from src.filters.record_validator import RecordValidator, ValidationError
from src.models.price import Price, PriceWithDetails
from src.models.product import Product
from src.models.supplier import Supplier
from src.models.user import User
from src.services.auth import AuthService
from src.services.price_analysis import todays_prices
from src.storage.record_store import (
    BY_NAME,
    PRICE_JOINS,
    PRICES_NEWEST_FIRST,
    RecordStore,
    StoreError,
)

logger = logging.getLogger("price_tracker.cache")

T = TypeVar("T")

# Malformed rows surface as KeyError/ValueError while building models
_FETCH_ERRORS = (StoreError, KeyError, ValueError)


class SnapshotCache:
    """Suppliers, products and prices of the signed-in user.

    Populated when the user signs in, emptied when they sign out.
    Mutations go to the store first; suppliers and products are then
    spliced into the local lists, prices are refetched because their
    joined product/supplier data may have changed.

    Failures never raise: the operation returns ``None``, ``False`` or
    ``[]`` and leaves a human-readable message in :attr:`error`.
    """

    def __init__(self, store: RecordStore, auth: AuthService) -> None:
        self.store = store
        self.auth = auth
        self.suppliers: list[Supplier] = []
        self.products: list[Product] = []
        self.prices: list[PriceWithDetails] = []
        self.error: str | None = None
        self.stale: bool = True
        self._in_flight: int = 0
        self._generations: dict[str, int] = {
            "suppliers": 0, "products": 0, "prices": 0,
        }
        auth.subscribe(self._on_session_change)

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def user_id(self) -> str | None:
        user = self.auth.user
        return user.id if user else None

    async def _on_session_change(self, user: User | None) -> None:
        if user is None:
            self.clear()
        else:
            await self.refresh()

    # ── Lifecycle ────────────────────────────────────────

    def clear(self) -> None:
        """Drop every collection; in-flight fetches will be discarded."""
        self.invalidate()
        self.suppliers = []
        self.products = []
        self.prices = []
        self.error = None
        logger.debug("Snapshot cache cleared")

    def invalidate(self) -> None:
        """Mark the snapshot stale without discarding what is shown."""
        self.stale = True
        for collection in self._generations:
            self._generations[collection] += 1

    async def refresh(self) -> bool:
        """Refetch all three collections, one after another.

        The first failure message is kept in :attr:`error` even when a
        later collection loads fine.
        """
        ok = True
        first_error: str | None = None
        for fetch in (
            self.fetch_suppliers, self.fetch_products, self.fetch_prices,
        ):
            if not await fetch():
                ok = False
                first_error = first_error or self.error
        self.error = first_error
        if ok:
            self.stale = False
        return ok

    # ── Plumbing ─────────────────────────────────────────

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking store call off the event loop."""
        self._in_flight += 1
        try:
            return await asyncio.to_thread(func, *args)
        finally:
            self._in_flight -= 1

    def _fail(self, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc, exc_info=True)
        self.error = message

    async def _load(
        self,
        collection: str,
        fetch: Callable[[], list[Any]],
    ) -> bool:
        """Replace one collection unless a newer fetch was issued."""
        if self.user_id is None:
            return False
        self._generations[collection] += 1
        generation = self._generations[collection]
        self.error = None
        try:
            rows = await self._run(fetch)
        except _FETCH_ERRORS as exc:
            self._fail(f"Failed to fetch {collection}", exc)
            return False
        if generation != self._generations[collection]:
            logger.debug(
                "Discarding stale %s result (generation %d < %d)",
                collection, generation, self._generations[collection],
            )
            return False
        setattr(self, collection, rows)
        logger.debug("Loaded %d %s", len(rows), collection)
        return True

    # ── Fetching ─────────────────────────────────────────

    async def fetch_suppliers(self) -> bool:
        user_id = self.user_id
        return await self._load("suppliers", lambda: [
            Supplier.from_row(r) for r in self.store.fetch_all(
                "suppliers", str(user_id), order_by=BY_NAME,
            )
        ])

    async def fetch_products(self) -> bool:
        user_id = self.user_id
        return await self._load("products", lambda: [
            Product.from_row(r) for r in self.store.fetch_all(
                "products", str(user_id), order_by=BY_NAME,
            )
        ])

    async def fetch_prices(self) -> bool:
        user_id = self.user_id
        return await self._load("prices", lambda: [
            PriceWithDetails.from_row(r) for r in self.store.fetch_joined(
                "prices", str(user_id), PRICE_JOINS,
                order_by=PRICES_NEWEST_FIRST,
            )
        ])

    async def _fetch_prices_where(
        self, column: str, value: str,
    ) -> list[PriceWithDetails]:
        user_id = self.user_id
        if user_id is None:
            return []
        try:
            rows = await self._run(
                self.store.fetch_joined,
                "prices", user_id, PRICE_JOINS,
                {column: value}, PRICES_NEWEST_FIRST,
            )
            return [PriceWithDetails.from_row(r) for r in rows]
        except _FETCH_ERRORS as exc:
            self._fail("Failed to fetch prices", exc)
            return []

    async def fetch_prices_by_product(
        self, product_id: str,
    ) -> list[PriceWithDetails]:
        """All quotes for one product, newest first (not cached)."""
        return await self._fetch_prices_where("product_id", product_id)

    async def fetch_prices_by_supplier(
        self, supplier_id: str,
    ) -> list[PriceWithDetails]:
        """All quotes from one supplier, newest first (not cached)."""
        return await self._fetch_prices_where("supplier_id", supplier_id)

    async def _get_one(
        self,
        table: str,
        row_id: str,
        label: str,
        build: Callable[[dict[str, Any]], T],
        joins: tuple[Any, ...] = (),
    ) -> T | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            row = await self._run(
                self.store.fetch_one, table, user_id, row_id, joins,
            )
            return build(row) if row else None
        except _FETCH_ERRORS as exc:
            self._fail(f"Failed to fetch {label}", exc)
            return None

    async def get_supplier(self, supplier_id: str) -> Supplier | None:
        return await self._get_one(
            "suppliers", supplier_id, "supplier", Supplier.from_row,
        )

    async def get_product(self, product_id: str) -> Product | None:
        return await self._get_one(
            "products", product_id, "product", Product.from_row,
        )

    async def get_price(self, price_id: str) -> PriceWithDetails | None:
        return await self._get_one(
            "prices", price_id, "price", PriceWithDetails.from_row,
            PRICE_JOINS,
        )

    # ── Mutations ────────────────────────────────────────

    async def _write(
        self,
        label: str,
        func: Callable[..., dict[str, Any]],
        *args: Any,
    ) -> dict[str, Any] | None:
        """Run an insert/update, mapping failures to :attr:`error`."""
        self.error = None
        try:
            return await self._run(func, *args)
        except _FETCH_ERRORS as exc:
            self._fail(f"Failed to {label}", exc)
            return None

    def _reject(self, exc: ValidationError) -> None:
        logger.info("Rejected input: %s", exc)
        self.error = str(exc)

    async def create_supplier(self, data: dict[str, Any]) -> Supplier | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            row = RecordValidator.supplier(data)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "create supplier", self.store.insert, "suppliers", user_id, row,
        )
        if saved is None:
            return None
        supplier = Supplier.from_row(saved)
        self.suppliers = [*self.suppliers, supplier]
        return supplier

    async def update_supplier(
        self, supplier_id: str, data: dict[str, Any],
    ) -> Supplier | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            changes = RecordValidator.supplier(data, partial=True)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "update supplier", self.store.update,
            "suppliers", user_id, supplier_id, changes,
        )
        if saved is None:
            return None
        supplier = Supplier.from_row(saved)
        self.suppliers = [
            supplier if s.id == supplier_id else s for s in self.suppliers
        ]
        return supplier

    async def delete_supplier(self, supplier_id: str) -> bool:
        """Delete a supplier; its prices go with it."""
        if not await self._delete("suppliers", supplier_id, "supplier"):
            return False
        self.suppliers = [s for s in self.suppliers if s.id != supplier_id]
        self.prices = [
            p for p in self.prices if p.price.supplier_id != supplier_id
        ]
        return True

    async def create_product(self, data: dict[str, Any]) -> Product | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            row = RecordValidator.product(data)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "create product", self.store.insert, "products", user_id, row,
        )
        if saved is None:
            return None
        product = Product.from_row(saved)
        self.products = [*self.products, product]
        return product

    async def update_product(
        self, product_id: str, data: dict[str, Any],
    ) -> Product | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            changes = RecordValidator.product(data, partial=True)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "update product", self.store.update,
            "products", user_id, product_id, changes,
        )
        if saved is None:
            return None
        product = Product.from_row(saved)
        self.products = [
            product if p.id == product_id else p for p in self.products
        ]
        return product

    async def delete_product(self, product_id: str) -> bool:
        """Delete a product; its prices go with it."""
        if not await self._delete("products", product_id, "product"):
            return False
        self.products = [p for p in self.products if p.id != product_id]
        self.prices = [
            p for p in self.prices if p.price.product_id != product_id
        ]
        return True

    async def create_price(self, data: dict[str, Any]) -> Price | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            row = RecordValidator.price(data)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "create price", self.store.insert, "prices", user_id, row,
        )
        if saved is None:
            return None
        await self.fetch_prices()
        return Price.from_row(saved)

    async def update_price(
        self, price_id: str, data: dict[str, Any],
    ) -> Price | None:
        user_id = self.user_id
        if user_id is None:
            return None
        try:
            changes = RecordValidator.price(data, partial=True)
        except ValidationError as exc:
            self._reject(exc)
            return None
        saved = await self._write(
            "update price", self.store.update,
            "prices", user_id, price_id, changes,
        )
        if saved is None:
            return None
        await self.fetch_prices()
        return Price.from_row(saved)

    async def delete_price(self, price_id: str) -> bool:
        if not await self._delete("prices", price_id, "price"):
            return False
        self.prices = [p for p in self.prices if p.id != price_id]
        return True

    async def _delete(self, table: str, row_id: str, label: str) -> bool:
        user_id = self.user_id
        if user_id is None:
            return False
        self.error = None
        try:
            removed = await self._run(
                self.store.delete, table, user_id, row_id,
            )
        except StoreError as exc:
            self._fail(f"Failed to delete {label}", exc)
            return False
        if not removed:
            logger.info("Delete of %s %s matched no row", label, row_id)
        return True

    # ── Views over the snapshot ──────────────────────────

    def product_categories(self) -> list[str]:
        """Categories used so far, for the product form's picker."""
        return RecordFilter.categories(self.products)

    def search_suppliers(self, term: str) -> list[Supplier]:
        return RecordFilter.suppliers(self.suppliers, term)

    def search_products(
        self, term: str = "", category: str | None = None,
    ) -> list[Product]:
        return RecordFilter.products(self.products, term, category)

    def todays_prices(self, today: date | None = None) -> list[PriceWithDetails]:
        return todays_prices(self.prices, today)

    def recent_prices(self, limit: int | None = None) -> list[PriceWithDetails]:
        """The newest quotes, as shown on the dashboard."""
        if limit is None:
            limit = Settings.RECENT_PRICES_LIMIT
        return self.prices[:limit]
