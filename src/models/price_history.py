# src/models/price_history.py

"""Chart-ready price history for one product."""

from dataclasses import dataclass, field


@dataclass
class PriceHistory:
    """Distinct quote dates plus one compacted price series per supplier.

    ``prices[name]`` only holds the dates on which that supplier quoted,
    so ``prices[name][i]`` lines up with ``series_dates[name][i]`` and
    not necessarily with ``dates[i]``.
    """

    dates: list[str] = field(default_factory=lambda: list[str]())
    prices: dict[str, list[float]] = field(
        default_factory=lambda: dict[str, list[float]]()
    )
    series_dates: dict[str, list[str]] = field(
        default_factory=lambda: dict[str, list[str]]()
    )

    @property
    def is_empty(self) -> bool:
        return not self.dates
