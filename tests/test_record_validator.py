# tests/test_record_validator.py

"""Tests for supplier, product and price form validation."""

import unittest
from datetime import date

from src.filters.record_validator import RecordValidator, ValidationError


class TestSupplierAndProductValidation(unittest.TestCase):
    """Name required, blanks become None, unknown fields rejected."""

    def test_supplier_cleaned(self) -> None:
        """Text is stripped and blank optionals become None."""
        row = RecordValidator.supplier({
            "name": "  Acme  ", "contact": "", "phone": " 555 ",
        })
        self.assertEqual(
            row, {"name": "Acme", "contact": None, "phone": "555"},
        )

    def test_name_required_on_create(self) -> None:
        """Missing or blank names are rejected."""
        with self.assertRaises(ValidationError):
            RecordValidator.supplier({"contact": "Bob"})
        with self.assertRaises(ValidationError):
            RecordValidator.product({"name": "   "})

    def test_partial_update_without_name(self) -> None:
        """Partial updates may leave the name untouched."""
        row = RecordValidator.product({"sku": "W-1"}, partial=True)
        self.assertEqual(row, {"sku": "W-1"})

    def test_partial_update_cannot_blank_name(self) -> None:
        """An explicit blank name is still rejected."""
        with self.assertRaises(ValidationError):
            RecordValidator.supplier({"name": ""}, partial=True)

    def test_unknown_field(self) -> None:
        """Server columns and typos are not accepted from forms."""
        with self.assertRaises(ValidationError):
            RecordValidator.product({"name": "Widget", "user_id": "x"})


class TestPriceValidation(unittest.TestCase):
    """Price, date and references are required on create."""

    def _valid(self) -> dict[str, object]:
        return {
            "product_id": "p1",
            "supplier_id": "s1",
            "price": "12.50",
            "date": "2024-01-02",
        }

    def test_valid_price(self) -> None:
        """String prices are coerced; the date is stored as ISO."""
        row = RecordValidator.price(self._valid())
        self.assertEqual(row["price"], 12.5)
        self.assertEqual(row["date"], "2024-01-02")

    def test_date_object_accepted(self) -> None:
        """A date object is serialised to yyyy-mm-dd."""
        data = {**self._valid(), "date": date(2024, 2, 29)}
        self.assertEqual(RecordValidator.price(data)["date"], "2024-02-29")

    def test_missing_reference(self) -> None:
        """A blank supplier id is a missing required field."""
        data = {**self._valid(), "supplier_id": ""}
        with self.assertRaisesRegex(ValidationError, "required fields"):
            RecordValidator.price(data)

    def test_non_positive_price(self) -> None:
        """Zero, negatives, NaN and text are not valid prices."""
        for bad in ("0", "-3", "nan", "inf", "abc"):
            with self.subTest(price=bad):
                data = {**self._valid(), "price": bad}
                with self.assertRaisesRegex(ValidationError, "valid price"):
                    RecordValidator.price(data)

    def test_invalid_date(self) -> None:
        """Unparseable dates are rejected."""
        data = {**self._valid(), "date": "2024-13-01"}
        with self.assertRaisesRegex(ValidationError, "valid date"):
            RecordValidator.price(data)

    def test_partial_price_update(self) -> None:
        """Only the given fields are validated and returned."""
        row = RecordValidator.price({"price": 3}, partial=True)
        self.assertEqual(row, {"price": 3.0})

    def test_notes_blank_to_none(self) -> None:
        """Blank notes are stored as None."""
        row = RecordValidator.price({**self._valid(), "notes": " "})
        self.assertIsNone(row["notes"])


if __name__ == "__main__":
    unittest.main()
