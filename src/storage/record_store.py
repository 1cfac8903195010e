# src/storage/record_store.py

"""Contract for the user-scoped record store behind the tracker."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "suppliers": (
        "id", "created_at", "user_id",
        "name", "contact", "phone", "address", "notes",
    ),
    "products": (
        "id", "created_at", "user_id",
        "name", "category", "description", "sku", "unit",
    ),
    "prices": (
        "id", "created_at", "user_id",
        "price", "date", "notes", "product_id", "supplier_id",
    ),
}

# Columns the store assigns itself; callers never write them
SERVER_COLUMNS: frozenset[str] = frozenset({"id", "created_at", "user_id"})


class StoreError(Exception):
    """Raised by a store implementation when a call cannot complete."""


@dataclass(frozen=True)
class Join:
    """Attach the row of *table* referenced by *foreign_key* as *alias*."""

    alias: str
    table: str
    foreign_key: str


@dataclass(frozen=True)
class OrderBy:
    """One ORDER BY term."""

    column: str
    descending: bool = False


PRICE_JOINS: tuple[Join, ...] = (
    Join("products", "products", "product_id"),
    Join("suppliers", "suppliers", "supplier_id"),
)

SUPPLIER_JOIN: tuple[Join, ...] = (
    Join("suppliers", "suppliers", "supplier_id"),
)

# Newest quote first; same-day quotes fall back to creation order, then id
PRICES_NEWEST_FIRST: tuple[OrderBy, ...] = (
    OrderBy("date", descending=True),
    OrderBy("created_at", descending=True),
    OrderBy("id", descending=True),
)

PRICES_OLDEST_FIRST: tuple[OrderBy, ...] = (
    OrderBy("date"),
    OrderBy("created_at"),
    OrderBy("id"),
)

BY_NAME: tuple[OrderBy, ...] = (OrderBy("name"), OrderBy("id"))


def check_table(table: str) -> tuple[str, ...]:
    """Return the columns of a known table or raise StoreError."""
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise StoreError(f"Unknown table: {table}") from None


def check_columns(table: str, columns: list[str] | tuple[str, ...]) -> None:
    """Reject any column the table does not have."""
    known = check_table(table)
    unknown = [c for c in columns if c not in known]
    if unknown:
        raise StoreError(
            f"Unknown column(s) for {table}: {', '.join(unknown)}"
        )


class RecordStore(ABC):
    """Storage collaborator: every call is scoped to one ``user_id``.

    Rows are plain dicts keyed by column name.  Joined rows carry the
    referenced record under the join alias (``None`` when dangling).
    Deleting a supplier or product removes the prices that reference it.
    """

    @abstractmethod
    def fetch_all(
        self,
        table: str,
        user_id: str,
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        """Return the user's rows matching every equality filter."""

    @abstractmethod
    def fetch_joined(
        self,
        table: str,
        user_id: str,
        joins: tuple[Join, ...],
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        """Like :meth:`fetch_all` with referenced rows attached."""

    def fetch_one(
        self,
        table: str,
        user_id: str,
        row_id: str,
        joins: tuple[Join, ...] = (),
    ) -> dict[str, Any] | None:
        """Return a single row by id, or ``None``."""
        if joins:
            rows = self.fetch_joined(
                table, user_id, joins, filters={"id": row_id},
            )
        else:
            rows = self.fetch_all(table, user_id, filters={"id": row_id})
        return rows[0] if rows else None

    @abstractmethod
    def insert(
        self, table: str, user_id: str, row: dict[str, Any],
    ) -> dict[str, Any]:
        """Insert a row; the store assigns ``id`` and ``created_at``."""

    @abstractmethod
    def update(
        self,
        table: str,
        user_id: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply *changes* to the user's row and return the new row."""

    @abstractmethod
    def delete(self, table: str, user_id: str, row_id: str) -> bool:
        """Delete the user's row; ``True`` if a row was removed."""

    def close(self) -> None:
        """Release any held connection."""
