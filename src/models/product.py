# src/models/product.py

"""Product record owned by a single user."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.models.fields import clean_optional, parse_timestamp

PRODUCT_FIELDS: tuple[str, ...] = (
    "name", "category", "description", "sku", "unit",
)


@dataclass
class Product:
    """An item the shopkeeper stocks and collects quotes for."""

    id: str
    name: str
    created_at: datetime
    user_id: str
    category: str | None = None
    description: str | None = None
    sku: str | None = None
    unit: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Product":
        """Build a Product from a store row."""
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            created_at=parse_timestamp(row["created_at"]),
            user_id=str(row["user_id"]),
            category=clean_optional(row.get("category")),
            description=clean_optional(row.get("description")),
            sku=clean_optional(row.get("sku")),
            unit=clean_optional(row.get("unit")),
        )
