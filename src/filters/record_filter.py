# src/filters/record_filter.py

"""Client-side search over the cached suppliers and products."""

from src.models.product import Product
from src.models.supplier import Supplier


class RecordFilter:
    """Case-insensitive substring search used by the list views."""

    @staticmethod
    def suppliers(
        suppliers: list[Supplier], term: str,
    ) -> list[Supplier]:
        """Match the term against name, contact and phone."""
        needle = term.strip().lower()
        if not needle:
            return list(suppliers)
        return [
            s for s in suppliers
            if any(
                needle in field.lower()
                for field in (s.name, s.contact, s.phone)
                if field
            )
        ]

    @staticmethod
    def products(
        products: list[Product],
        term: str = "",
        category: str | None = None,
    ) -> list[Product]:
        """Match the term against name, description and SKU.

        A non-empty *category* must match exactly.
        """
        needle = term.strip().lower()
        kept: list[Product] = []
        for p in products:
            if category and p.category != category:
                continue
            if needle and not any(
                needle in field.lower()
                for field in (p.name, p.description, p.sku)
                if field
            ):
                continue
            kept.append(p)
        return kept

    @staticmethod
    def categories(products: list[Product]) -> list[str]:
        """Distinct non-empty categories, sorted."""
        return sorted({p.category for p in products if p.category})
