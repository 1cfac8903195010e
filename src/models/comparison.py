# src/models/comparison.py

"""Derived (never persisted) comparison and alert models."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class SavingsLevel(Enum):
    """How much a shopkeeper can save by picking the best supplier."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass
class SupplierQuote:
    """One supplier's most recent quote for a product."""

    supplier_id: str
    supplier_name: str
    latest_price: float
    price_date: date


@dataclass
class PriceComparison:
    """Latest quote per supplier for one product."""

    product_id: str
    product_name: str
    suppliers: list[SupplierQuote] = field(
        default_factory=lambda: list[SupplierQuote]()
    )


@dataclass
class PriceAlert:
    """A product whose supplier spread exceeds the alert threshold."""

    product_id: str
    product: str
    diff: float
