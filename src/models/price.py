# src/models/price.py

"""Price quote records and their joined view."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from src.models.fields import clean_optional, parse_date, parse_timestamp
from src.models.product import Product
from src.models.supplier import Supplier

PRICE_FIELDS: tuple[str, ...] = (
    "price", "date", "notes", "product_id", "supplier_id",
)


@dataclass
class Price:
    """A supplier's stated price for a product on a given day."""

    id: str
    price: float
    date: date
    product_id: str
    supplier_id: str
    created_at: datetime
    user_id: str
    notes: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Price":
        """Build a Price from a store row."""
        return cls(
            id=str(row["id"]),
            price=float(row["price"]),
            date=parse_date(row["date"]),
            product_id=str(row["product_id"]),
            supplier_id=str(row["supplier_id"]),
            created_at=parse_timestamp(row["created_at"]),
            user_id=str(row["user_id"]),
            notes=clean_optional(row.get("notes")),
        )


@dataclass
class PriceWithDetails:
    """A Price joined with the Product and Supplier it references.

    ``product`` or ``supplier`` is ``None`` only when the store returned
    a dangling reference.
    """

    price: Price
    product: Product | None = None
    supplier: Supplier | None = None

    @property
    def id(self) -> str:
        return self.price.id

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else "Unknown Product"

    @property
    def supplier_name(self) -> str:
        return self.supplier.name if self.supplier else "Unknown Supplier"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PriceWithDetails":
        """Build from a joined row with nested ``products``/``suppliers``."""
        product_row = row.get("products")
        supplier_row = row.get("suppliers")
        return cls(
            price=Price.from_row(row),
            product=Product.from_row(product_row) if product_row else None,
            supplier=(
                Supplier.from_row(supplier_row) if supplier_row else None
            ),
        )
