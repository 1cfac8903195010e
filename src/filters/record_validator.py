# src/filters/record_validator.py

"""Form-level validation run before anything reaches the store."""

import logging
import math
from datetime import date
from typing import Any

from src.models.fields import clean_optional, parse_date
from src.models.price import PRICE_FIELDS
from src.models.product import PRODUCT_FIELDS
from src.models.supplier import SUPPLIER_FIELDS

logger = logging.getLogger("price_tracker.validation")


class ValidationError(ValueError):
    """Raised when user input is rejected without a store round-trip."""


def _clean_text_fields(
    data: dict[str, Any],
    allowed: tuple[str, ...],
    partial: bool,
) -> dict[str, Any]:
    """Keep known fields, blank text becomes ``None``, name is required."""
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValidationError(
            f"Unknown field(s): {', '.join(sorted(unknown))}"
        )

    cleaned: dict[str, Any] = {
        key: clean_optional(value) for key, value in data.items()
    }
    if "name" in cleaned or not partial:
        if not cleaned.get("name"):
            raise ValidationError("Name is required")
    return cleaned


class RecordValidator:
    """Validate and normalise supplier, product and price input."""

    @staticmethod
    def supplier(
        data: dict[str, Any], partial: bool = False,
    ) -> dict[str, Any]:
        """Return a cleaned supplier row or raise ValidationError."""
        return _clean_text_fields(data, SUPPLIER_FIELDS, partial)

    @staticmethod
    def product(
        data: dict[str, Any], partial: bool = False,
    ) -> dict[str, Any]:
        """Return a cleaned product row or raise ValidationError."""
        return _clean_text_fields(data, PRODUCT_FIELDS, partial)

    @staticmethod
    def price(
        data: dict[str, Any], partial: bool = False,
    ) -> dict[str, Any]:
        """Return a cleaned price row or raise ValidationError.

        Required on create: ``product_id``, ``supplier_id``, ``price``
        and ``date``.  ``date`` is stored as ``yyyy-mm-dd``.
        """
        unknown = set(data) - set(PRICE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown field(s): {', '.join(sorted(unknown))}"
            )

        cleaned: dict[str, Any] = {}
        for ref in ("product_id", "supplier_id"):
            if ref in data or not partial:
                value = clean_optional(data.get(ref))
                if value is None:
                    raise ValidationError(
                        "Please fill out all required fields"
                    )
                cleaned[ref] = value

        if "price" in data or not partial:
            cleaned["price"] = _positive_price(data.get("price"))

        if "date" in data or not partial:
            raw_date = data.get("date")
            if raw_date in (None, ""):
                raise ValidationError(
                    "Please fill out all required fields"
                )
            try:
                quote_date: date = parse_date(raw_date)
            except ValueError as exc:
                raise ValidationError("Please enter a valid date") from exc
            cleaned["date"] = quote_date.isoformat()

        if "notes" in data:
            cleaned["notes"] = clean_optional(data["notes"])

        return cleaned


def _positive_price(raw: object) -> float:
    """Coerce form input to a finite price greater than zero."""
    if raw is None or raw == "":
        raise ValidationError("Please fill out all required fields")
    try:
        value = float(str(raw).strip())
    except ValueError as exc:
        raise ValidationError("Please enter a valid price") from exc
    if not math.isfinite(value) or value <= 0:
        logger.debug("Rejected non-positive price %r", raw)
        raise ValidationError("Please enter a valid price")
    return value
