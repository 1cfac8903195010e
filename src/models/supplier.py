# src/models/supplier.py

"""Supplier record owned by a single user."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.models.fields import clean_optional, parse_timestamp

SUPPLIER_FIELDS: tuple[str, ...] = (
    "name", "contact", "phone", "address", "notes",
)


@dataclass
class Supplier:
    """A vendor the shopkeeper buys from."""

    id: str
    name: str
    created_at: datetime
    user_id: str
    contact: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Supplier":
        """Build a Supplier from a store row."""
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            created_at=parse_timestamp(row["created_at"]),
            user_id=str(row["user_id"]),
            contact=clean_optional(row.get("contact")),
            phone=clean_optional(row.get("phone")),
            address=clean_optional(row.get("address")),
            notes=clean_optional(row.get("notes")),
        )
