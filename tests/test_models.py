# tests/test_models.py

"""Tests for the record dataclasses and their row conversions."""

import unittest
from datetime import date, datetime, timezone

from src.models.fields import clean_optional, parse_date, parse_timestamp
from src.models.price import PriceWithDetails
from src.models.price_history import PriceHistory
from src.models.product import Product
from src.models.supplier import Supplier


class TestFieldConversions(unittest.TestCase):
    """Blank-to-None and date parsing helpers."""

    def test_clean_optional(self) -> None:
        """Blank text becomes None, other text is stripped."""
        self.assertIsNone(clean_optional(None))
        self.assertIsNone(clean_optional("   "))
        self.assertEqual(clean_optional("  Acme "), "Acme")

    def test_parse_date_accepts_strings_and_datetimes(self) -> None:
        """ISO strings, dates and datetimes all become a date."""
        self.assertEqual(parse_date("2024-03-05"), date(2024, 3, 5))
        self.assertEqual(
            parse_date("2024-03-05T10:00:00"), date(2024, 3, 5),
        )
        self.assertEqual(
            parse_date(datetime(2024, 3, 5, 23, 59)), date(2024, 3, 5),
        )

    def test_parse_date_rejects_garbage(self) -> None:
        """Non-dates raise ValueError."""
        with self.assertRaises(ValueError):
            parse_date("yesterday")

    def test_parse_timestamp_trailing_z(self) -> None:
        """A trailing Z is read as UTC."""
        ts = parse_timestamp("2024-01-01T12:00:00Z")
        self.assertEqual(ts.tzinfo, timezone.utc)
        self.assertEqual(ts.hour, 12)


class TestRecordFromRow(unittest.TestCase):
    """Store rows become typed records."""

    def test_supplier_blank_fields_are_none(self) -> None:
        """Empty optional columns are normalised to None."""
        supplier = Supplier.from_row({
            "id": "s1",
            "name": "Acme",
            "created_at": "2024-01-01T00:00:00+00:00",
            "user_id": "u1",
            "contact": "",
            "phone": "555-0100",
        })
        self.assertIsNone(supplier.contact)
        self.assertEqual(supplier.phone, "555-0100")
        self.assertIsNone(supplier.address)

    def test_product_row(self) -> None:
        """Product columns map one to one."""
        product = Product.from_row({
            "id": "p1",
            "name": "Widget",
            "created_at": "2024-01-01T00:00:00Z",
            "user_id": "u1",
            "category": "Hardware",
            "unit": "box",
        })
        self.assertEqual(product.category, "Hardware")
        self.assertEqual(product.unit, "box")
        self.assertIsNone(product.sku)

    def test_joined_price_row(self) -> None:
        """Nested product/supplier dicts become records."""
        row = {
            "id": "q1",
            "price": "12.50",
            "date": "2024-01-02",
            "product_id": "p1",
            "supplier_id": "s1",
            "created_at": "2024-01-02T08:00:00+00:00",
            "user_id": "u1",
            "notes": None,
            "products": {
                "id": "p1", "name": "Widget",
                "created_at": "2024-01-01T00:00:00+00:00", "user_id": "u1",
            },
            "suppliers": {
                "id": "s1", "name": "Acme",
                "created_at": "2024-01-01T00:00:00+00:00", "user_id": "u1",
            },
        }
        joined = PriceWithDetails.from_row(row)
        self.assertEqual(joined.id, "q1")
        self.assertEqual(joined.price.price, 12.5)
        self.assertEqual(joined.price.date, date(2024, 1, 2))
        self.assertEqual(joined.product_name, "Widget")
        self.assertEqual(joined.supplier_name, "Acme")

    def test_dangling_references_get_placeholder_names(self) -> None:
        """Missing joined rows fall back to Unknown names."""
        joined = PriceWithDetails.from_row({
            "id": "q1",
            "price": 1,
            "date": "2024-01-02",
            "product_id": "p1",
            "supplier_id": "s1",
            "created_at": "2024-01-02T08:00:00+00:00",
            "user_id": "u1",
            "products": None,
            "suppliers": None,
        })
        self.assertEqual(joined.product_name, "Unknown Product")
        self.assertEqual(joined.supplier_name, "Unknown Supplier")


class TestPriceHistoryModel(unittest.TestCase):
    """PriceHistory defaults."""

    def test_default_is_empty(self) -> None:
        """A fresh history has no dates and no series."""
        history = PriceHistory()
        self.assertTrue(history.is_empty)
        self.assertEqual(history.prices, {})
        self.assertEqual(history.series_dates, {})


if __name__ == "__main__":
    unittest.main()
