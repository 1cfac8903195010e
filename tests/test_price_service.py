# tests/test_price_service.py

"""Tests for the comparison, history, alert and dashboard views."""

import asyncio
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import patch

from src.services.factory import build_context
from src.storage.record_store import StoreError


class TestPriceService(unittest.IsolatedAsyncioTestCase):
    """Derived views built from an in-memory SQLite store."""

    async def asyncSetUp(self) -> None:
        """Sign up and seed Widget quoted by two suppliers."""
        self.ctx = build_context(backend="sqlite", db_path=Path(":memory:"))
        await self.ctx.auth.sign_up("shop@example.com", "secret1")
        cache = self.ctx.cache
        a = await cache.create_supplier({"name": "SupplierA"})
        b = await cache.create_supplier({"name": "SupplierB"})
        widget = await cache.create_product({"name": "Widget"})
        gadget = await cache.create_product({"name": "Gadget"})
        assert a and b and widget and gadget
        self.a, self.b, self.widget, self.gadget = a, b, widget, gadget
        await self._quote(a.id, 10.0, "2024-01-01")
        await self._quote(b.id, 12.0, "2024-01-02")

    async def asyncTearDown(self) -> None:
        self.ctx.close()

    async def _quote(
        self, supplier_id: str, amount: float, day: str,
        product_id: str | None = None,
    ) -> str:
        price = await self.ctx.cache.create_price({
            "product_id": product_id or self.widget.id,
            "supplier_id": supplier_id,
            "price": amount,
            "date": day,
        })
        assert price is not None
        return price.id

    # ── Comparisons ──────────────────────────────────────

    async def test_comparison_scenario(self) -> None:
        """Widget gets one entry per supplier; Gadget has no quotes."""
        comparisons = await self.ctx.prices.get_price_comparisons()
        self.assertEqual([c.product_name for c in comparisons], ["Widget"])
        quotes = {q.supplier_name: q.latest_price
                  for q in comparisons[0].suppliers}
        self.assertEqual(quotes, {"SupplierA": 10.0, "SupplierB": 12.0})
        self.assertEqual(self.ctx.prices.last_comparisons, comparisons)

    async def test_requote_replaces_latest(self) -> None:
        """A later, cheaper quote from A becomes A's latest price."""
        await self._quote(self.a.id, 9.0, "2024-01-03")
        comparisons = await self.ctx.prices.get_price_comparisons(
            self.widget.id,
        )
        quotes = {q.supplier_name: q.latest_price
                  for q in comparisons[0].suppliers}
        self.assertEqual(quotes["SupplierA"], 9.0)

    async def test_deleting_only_price_drops_product(self) -> None:
        """A product whose last quote is deleted disappears."""
        price_id = await self._quote(
            self.a.id, 5.0, "2024-01-01", product_id=self.gadget.id,
        )
        names = [
            c.product_name
            for c in await self.ctx.prices.get_price_comparisons()
        ]
        self.assertIn("Gadget", names)
        await self.ctx.cache.delete_price(price_id)
        names = [
            c.product_name
            for c in await self.ctx.prices.get_price_comparisons()
        ]
        self.assertNotIn("Gadget", names)

    async def test_failure_keeps_last_result(self) -> None:
        """A store failure sets error and leaves the last good result."""
        first = await self.ctx.prices.get_price_comparisons()
        with patch.object(
            self.ctx.store, "fetch_all", side_effect=StoreError("down"),
        ):
            result = await self.ctx.prices.get_price_comparisons()
        self.assertEqual(result, [])
        self.assertEqual(
            self.ctx.prices.error, "Failed to generate price comparisons",
        )
        self.assertEqual(self.ctx.prices.last_comparisons, first)

        await self.ctx.prices.get_price_comparisons()
        self.assertIsNone(self.ctx.prices.error)

    async def test_generation_tracking(self) -> None:
        """Only the newest request counts as current."""
        service = self.ctx.prices
        await service.get_price_comparisons()
        current = service._generations["comparisons"]
        self.assertTrue(service.is_current("comparisons", current))
        await service.get_price_comparisons()
        self.assertFalse(service.is_current("comparisons", current))

    # ── Alerts ───────────────────────────────────────────

    async def test_alert_above_ten_percent(self) -> None:
        """$10 vs $12 is a 20% spread and alerts."""
        alerts = await self.ctx.prices.get_price_alerts()
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].product, "Widget")
        self.assertAlmostEqual(alerts[0].diff, 20.0)

    async def test_no_alert_at_exactly_ten_percent(self) -> None:
        """B re-quoting $11 makes the spread exactly 10%."""
        await self._quote(self.b.id, 11.0, "2024-01-03")
        self.assertEqual(await self.ctx.prices.get_price_alerts(), [])

    async def test_overtaken_alert_request_is_discarded(self) -> None:
        """An older alert request finishing last keeps the newer alerts."""
        service = self.ctx.prices
        store = self.ctx.store
        real_fetch_all = store.fetch_all
        started = asyncio.Event()
        release = asyncio.Event()
        loop = asyncio.get_running_loop()
        product_calls = 0

        def fetch_all(table, *args, **kwargs):  # type: ignore[no-untyped-def]
            nonlocal product_calls
            if table == "products":
                product_calls += 1
                if product_calls == 1:
                    loop.call_soon_threadsafe(started.set)
                    asyncio.run_coroutine_threadsafe(
                        release.wait(), loop,
                    ).result()
                    return []
            return real_fetch_all(table, *args, **kwargs)

        with patch.object(store, "fetch_all", side_effect=fetch_all):
            older = asyncio.create_task(service.get_price_alerts())
            await started.wait()
            newer = await service.get_price_alerts()
            release.set()
            older_result = await older

        self.assertEqual([a.product for a in newer], ["Widget"])
        self.assertEqual([a.product for a in service.last_alerts], ["Widget"])
        self.assertEqual(older_result, newer)
        self.assertFalse(
            service.is_current("alerts", service._generations["alerts"] - 1),
        )

    # ── History ──────────────────────────────────────────

    async def test_history(self) -> None:
        """Dates ascending with one compacted series per supplier."""
        await self._quote(self.a.id, 9.0, "2024-01-03")
        history = await self.ctx.prices.get_price_history(self.widget.id)
        self.assertEqual(
            history.dates, ["2024-01-01", "2024-01-02", "2024-01-03"],
        )
        self.assertEqual(history.prices["SupplierA"], [10.0, 9.0])
        self.assertEqual(history.prices["SupplierB"], [12.0])
        self.assertIs(self.ctx.prices.last_history, history)

    async def test_history_one_supplier(self) -> None:
        """The supplier filter keeps only that supplier's dates."""
        history = await self.ctx.prices.get_price_history(
            self.widget.id, self.b.id,
        )
        self.assertEqual(history.dates, ["2024-01-02"])
        self.assertEqual(list(history.prices), ["SupplierB"])

    async def test_history_failure(self) -> None:
        """A failed fetch sets error and returns an empty history."""
        good = await self.ctx.prices.get_price_history(self.widget.id)
        with patch.object(
            self.ctx.store, "fetch_joined", side_effect=StoreError("down"),
        ):
            history = await self.ctx.prices.get_price_history(self.widget.id)
        self.assertTrue(history.is_empty)
        self.assertEqual(self.ctx.prices.error, "Failed to get price history")
        self.assertIs(self.ctx.prices.last_history, good)

    # ── Dashboard ────────────────────────────────────────

    async def test_dashboard(self) -> None:
        """Counts, today's updates and alerts."""
        summary = await self.ctx.prices.get_dashboard(today=date(2024, 1, 2))
        self.assertEqual(summary.supplier_count, 2)
        self.assertEqual(summary.product_count, 2)
        self.assertEqual(summary.price_count, 2)
        self.assertEqual(summary.todays_updates, 1)
        self.assertEqual(len(summary.recent_prices), 2)
        self.assertEqual(len(summary.alerts), 1)

    async def test_signed_out_views_are_empty(self) -> None:
        """Nothing is built without a signed-in user."""
        await self.ctx.auth.sign_out()
        self.assertEqual(await self.ctx.prices.get_price_comparisons(), [])
        history = await self.ctx.prices.get_price_history(self.widget.id)
        self.assertTrue(history.is_empty)
        summary = await self.ctx.prices.get_dashboard()
        self.assertEqual(summary.price_count, 0)


if __name__ == "__main__":
    unittest.main()
