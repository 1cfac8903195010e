# tests/test_sqlite_store.py

"""Tests for the SQLite record store."""

import tempfile
import unittest
from pathlib import Path

from src.storage.record_store import (
    PRICE_JOINS,
    PRICES_NEWEST_FIRST,
    StoreError,
)
from src.storage.sqlite_store import SQLiteRecordStore


class TestSQLiteRecordStore(unittest.TestCase):
    """CRUD, per-user scoping and cascade behaviour."""

    def setUp(self) -> None:
        """Fresh in-memory store with one product and supplier."""
        self.store = SQLiteRecordStore(db_path=Path(":memory:"))
        self.product = self.store.insert(
            "products", "alice", {"name": "Widget"},
        )
        self.supplier = self.store.insert(
            "suppliers", "alice", {"name": "Acme"},
        )

    def tearDown(self) -> None:
        """Close the database."""
        self.store.close()

    def _quote(self, price: float, day: str, user: str = "alice") -> dict:
        return self.store.insert("prices", user, {
            "product_id": self.product["id"],
            "supplier_id": self.supplier["id"],
            "price": price,
            "date": day,
        })

    # ── Writing ──────────────────────────────────────────

    def test_insert_assigns_server_columns(self) -> None:
        """id, created_at and user_id are filled in by the store."""
        self.assertTrue(self.product["id"])
        self.assertTrue(self.product["created_at"])
        self.assertEqual(self.product["user_id"], "alice")

    def test_created_at_is_strictly_increasing(self) -> None:
        """Back-to-back inserts never share a timestamp."""
        first = self._quote(1.0, "2024-01-01")
        second = self._quote(1.0, "2024-01-01")
        self.assertLess(first["created_at"], second["created_at"])

    def test_rejects_server_columns(self) -> None:
        """Callers may not set id or user_id."""
        with self.assertRaises(StoreError):
            self.store.insert(
                "suppliers", "alice", {"name": "X", "user_id": "bob"},
            )

    def test_rejects_unknown_table_and_column(self) -> None:
        """Only the three record tables and their columns exist."""
        with self.assertRaises(StoreError):
            self.store.fetch_all("users", "alice")
        with self.assertRaises(StoreError):
            self.store.fetch_all("products", "alice", {"colour": "red"})

    def test_price_must_be_positive(self) -> None:
        """The schema rejects zero prices."""
        with self.assertRaises(StoreError):
            self._quote(0, "2024-01-01")

    def test_price_references_must_belong_to_user(self) -> None:
        """Bob cannot quote against Alice's product."""
        with self.assertRaises(StoreError):
            self._quote(5.0, "2024-01-01", user="bob")

    def test_update(self) -> None:
        """Updates return the full new row."""
        updated = self.store.update(
            "products", "alice", self.product["id"], {"sku": "W-1"},
        )
        self.assertEqual(updated["sku"], "W-1")
        self.assertEqual(updated["name"], "Widget")

    def test_update_other_users_row_fails(self) -> None:
        """Bob cannot update Alice's product."""
        with self.assertRaises(StoreError):
            self.store.update(
                "products", "bob", self.product["id"], {"sku": "X"},
            )

    # ── Reading ──────────────────────────────────────────

    def test_rows_are_scoped_to_user(self) -> None:
        """Each user only sees their own rows."""
        self.store.insert("suppliers", "bob", {"name": "Bob's"})
        names = [r["name"] for r in self.store.fetch_all("suppliers", "alice")]
        self.assertEqual(names, ["Acme"])
        self.assertIsNone(
            self.store.fetch_one("products", "bob", self.product["id"]),
        )

    def test_joined_fetch_attaches_references(self) -> None:
        """Prices carry their product and supplier rows."""
        self._quote(10.0, "2024-01-01")
        rows = self.store.fetch_joined("prices", "alice", PRICE_JOINS)
        self.assertEqual(rows[0]["products"]["name"], "Widget")
        self.assertEqual(rows[0]["suppliers"]["name"], "Acme")

    def test_newest_first_order(self) -> None:
        """Date descending, then creation time descending."""
        a = self._quote(1.0, "2024-01-01")
        b = self._quote(2.0, "2024-01-02")
        c = self._quote(3.0, "2024-01-01")
        rows = self.store.fetch_all(
            "prices", "alice", order_by=PRICES_NEWEST_FIRST,
        )
        self.assertEqual(
            [r["id"] for r in rows], [b["id"], c["id"], a["id"]],
        )

    def test_filters(self) -> None:
        """Equality filters narrow the result."""
        self._quote(1.0, "2024-01-01")
        other = self.store.insert("products", "alice", {"name": "Gadget"})
        rows = self.store.fetch_all(
            "prices", "alice", {"product_id": other["id"]},
        )
        self.assertEqual(rows, [])

    # ── Deleting ─────────────────────────────────────────

    def test_delete_supplier_cascades_to_prices(self) -> None:
        """Removing a supplier removes its quotes."""
        self._quote(1.0, "2024-01-01")
        self.assertTrue(
            self.store.delete("suppliers", "alice", self.supplier["id"]),
        )
        self.assertEqual(self.store.fetch_all("prices", "alice"), [])

    def test_delete_product_cascades_to_prices(self) -> None:
        """Removing a product removes its quotes."""
        self._quote(1.0, "2024-01-01")
        self.store.delete("products", "alice", self.product["id"])
        self.assertEqual(self.store.fetch_all("prices", "alice"), [])

    def test_delete_missing_row(self) -> None:
        """Deleting nothing reports False."""
        self.assertFalse(self.store.delete("prices", "alice", "nope"))
        self.assertFalse(
            self.store.delete("products", "bob", self.product["id"]),
        )

    # ── Accounts ─────────────────────────────────────────

    def test_users(self) -> None:
        """Emails are unique regardless of case."""
        self.store.create_user("a@example.com", "hash")
        found = self.store.find_user("A@Example.com")
        assert found is not None
        self.assertEqual(found["password_hash"], "hash")
        with self.assertRaises(StoreError):
            self.store.create_user("A@EXAMPLE.COM", "hash2")


class TestSQLiteFile(unittest.TestCase):
    """An on-disk store keeps its rows across connections."""

    def test_persists(self) -> None:
        """Rows written by one instance are read by the next."""
        db_path = Path(tempfile.mkdtemp()) / "nested" / "tracker.db"
        store = SQLiteRecordStore(db_path=db_path)
        store.insert("suppliers", "alice", {"name": "Acme"})
        store.close()

        reopened = SQLiteRecordStore(db_path=db_path)
        try:
            rows = reopened.fetch_all("suppliers", "alice")
            self.assertEqual([r["name"] for r in rows], ["Acme"])
        finally:
            reopened.close()


if __name__ == "__main__":
    unittest.main()
