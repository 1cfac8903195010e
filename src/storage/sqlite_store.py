# src/storage/sqlite_store.py

"""SQLite-backed record store for self-hosted installs and tests."""

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.storage.record_store import (
    SERVER_COLUMNS,
    Join,
    OrderBy,
    RecordStore,
    StoreError,
    check_columns,
    check_table,
)

logger = logging.getLogger("price_tracker.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS suppliers (
    id         TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    user_id    TEXT NOT NULL,
    name       TEXT NOT NULL CHECK (length(trim(name)) > 0),
    contact    TEXT,
    phone      TEXT,
    address    TEXT,
    notes      TEXT
);

CREATE TABLE IF NOT EXISTS products (
    id          TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    name        TEXT NOT NULL CHECK (length(trim(name)) > 0),
    category    TEXT,
    description TEXT,
    sku         TEXT,
    unit        TEXT
);

CREATE TABLE IF NOT EXISTS prices (
    id          TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    price       REAL NOT NULL CHECK (price > 0),
    date        TEXT NOT NULL,
    notes       TEXT,
    product_id  TEXT NOT NULL
                REFERENCES products(id) ON DELETE CASCADE,
    supplier_id TEXT NOT NULL
                REFERENCES suppliers(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_suppliers_user ON suppliers(user_id);
CREATE INDEX IF NOT EXISTS idx_products_user ON products(user_id);
CREATE INDEX IF NOT EXISTS idx_prices_product_date
    ON prices(product_id, date);
CREATE INDEX IF NOT EXISTS idx_prices_supplier ON prices(supplier_id);
"""

# Price columns that must point at a row owned by the same user
_PRICE_REFERENCES: dict[str, str] = {
    "product_id": "products",
    "supplier_id": "suppliers",
}


def _order_clause(table: str, order_by: tuple[OrderBy, ...]) -> str:
    """Render a validated ORDER BY clause (empty when unordered)."""
    if not order_by:
        return ""
    check_columns(table, [o.column for o in order_by])
    terms = [
        f"{o.column} {'DESC' if o.descending else 'ASC'}"
        for o in order_by
    ]
    return " ORDER BY " + ", ".join(terms)


class SQLiteRecordStore(RecordStore):
    """Record store on a local SQLite file with per-user scoping.

    Every statement carries ``user_id = ?``; foreign keys are enforced
    so deleting a supplier or product cascades to its prices.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.DB_PATH
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        if str(path) != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._last_created_at: datetime | None = None
        logger.debug("SQLiteRecordStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate sqlite3 failures into StoreError."""
        try:
            yield
        except sqlite3.Error as exc:
            self._conn.rollback()
            logger.debug("SQLite %s failed: %s", action, exc, exc_info=True)
            raise StoreError(f"{action} failed: {exc}") from exc

    def _next_created_at(self) -> str:
        """UTC timestamp strictly greater than the previous one issued."""
        now = datetime.now(timezone.utc)
        if self._last_created_at and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now.isoformat(timespec="microseconds")

    # ── Reading ──────────────────────────────────────────

    def fetch_all(
        self,
        table: str,
        user_id: str,
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        check_table(table)
        conditions = dict(filters or {})
        check_columns(table, list(conditions))

        where = ["user_id = ?"]
        params: list[Any] = [user_id]
        for column, value in conditions.items():
            where.append(f"{column} = ?")
            params.append(value)

        sql = (
            f"SELECT * FROM {table} WHERE {' AND '.join(where)}"
            f"{_order_clause(table, order_by)}"
        )
        with self._guard(f"fetch {table}"):
            rows = self._conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def fetch_joined(
        self,
        table: str,
        user_id: str,
        joins: tuple[Join, ...],
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        rows = self.fetch_all(table, user_id, filters, order_by)
        for join in joins:
            check_columns(table, [join.foreign_key])
            check_table(join.table)
            ids = sorted({
                str(r[join.foreign_key]) for r in rows
                if r.get(join.foreign_key) is not None
            })
            referenced = self._rows_by_id(join.table, user_id, ids)
            for r in rows:
                r[join.alias] = referenced.get(str(r[join.foreign_key]))
        return rows

    def _rows_by_id(
        self, table: str, user_id: str, ids: list[str],
    ) -> dict[str, dict[str, Any]]:
        """Load the user's rows of *table* whose id is in *ids*."""
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        sql = (
            f"SELECT * FROM {table} "
            f"WHERE user_id = ? AND id IN ({placeholders})"
        )
        with self._guard(f"fetch {table}"):
            rows = self._conn.execute(sql, [user_id, *ids]).fetchall()
        return {str(r["id"]): dict(r) for r in rows}

    # ── Writing ──────────────────────────────────────────

    def _check_writable(self, table: str, row: dict[str, Any]) -> None:
        """Reject server-assigned or unknown columns."""
        check_columns(table, list(row))
        server = SERVER_COLUMNS.intersection(row)
        if server:
            raise StoreError(
                f"Cannot write server column(s): {', '.join(sorted(server))}"
            )

    def _check_references(
        self, table: str, user_id: str, row: dict[str, Any],
    ) -> None:
        """A price may only reference the same user's product/supplier."""
        if table != "prices":
            return
        for column, ref_table in _PRICE_REFERENCES.items():
            if column not in row:
                continue
            with self._guard(f"check {ref_table}"):
                found = self._conn.execute(
                    f"SELECT 1 FROM {ref_table} "
                    "WHERE id = ? AND user_id = ?",
                    (row[column], user_id),
                ).fetchone()
            if found is None:
                raise StoreError(
                    f"{column} {row[column]} does not exist"
                )

    def insert(
        self, table: str, user_id: str, row: dict[str, Any],
    ) -> dict[str, Any]:
        self._check_writable(table, row)
        self._check_references(table, user_id, row)

        record: dict[str, Any] = {
            **row,
            "id": str(uuid.uuid4()),
            "created_at": self._next_created_at(),
            "user_id": user_id,
        }
        columns = list(record)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        with self._guard(f"insert into {table}"):
            self._conn.execute(sql, [record[c] for c in columns])
            self._conn.commit()
        logger.debug("Inserted %s row %s", table, record["id"])
        return record

    def update(
        self,
        table: str,
        user_id: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        self._check_writable(table, changes)
        self._check_references(table, user_id, changes)

        if changes:
            assignments = ", ".join(f"{c} = ?" for c in changes)
            sql = (
                f"UPDATE {table} SET {assignments} "
                "WHERE id = ? AND user_id = ?"
            )
            with self._guard(f"update {table}"):
                cur = self._conn.execute(
                    sql, [*changes.values(), row_id, user_id],
                )
                self._conn.commit()
            if cur.rowcount == 0:
                raise StoreError(f"{table} row {row_id} not found")

        updated = self.fetch_one(table, user_id, row_id)
        if updated is None:
            raise StoreError(f"{table} row {row_id} not found")
        return updated

    def delete(self, table: str, user_id: str, row_id: str) -> bool:
        check_table(table)
        with self._guard(f"delete from {table}"):
            cur = self._conn.execute(
                f"DELETE FROM {table} WHERE id = ? AND user_id = ?",
                (row_id, user_id),
            )
            self._conn.commit()
        removed = cur.rowcount > 0
        if removed:
            logger.debug("Deleted %s row %s", table, row_id)
        return removed

    # ── Local accounts ───────────────────────────────────

    def create_user(self, email: str, password_hash: str) -> dict[str, Any]:
        """Register a local account; duplicate emails raise StoreError."""
        record = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password_hash": password_hash,
            "created_at": self._next_created_at(),
        }
        with self._guard("create user"):
            self._conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) "
                "VALUES (:id, :email, :password_hash, :created_at)",
                record,
            )
            self._conn.commit()
        return record

    def find_user(self, email: str) -> dict[str, Any] | None:
        """Look up a local account by email (case-insensitive)."""
        with self._guard("find user"):
            row = self._conn.execute(
                "SELECT * FROM users WHERE email = ?", (email,),
            ).fetchone()
        return dict(row) if row else None
