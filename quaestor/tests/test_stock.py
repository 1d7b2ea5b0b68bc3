"""
Tests for consumable stock handling.

Covers:
- derive_stock_status thresholds and the persisted ``status`` copy
- adjust_stock: restock, consume, non-negativity, zero deltas, one
  STOCK_ADJUSTED event per adjustment, NotAConsumable
- Optimistic concurrency: a lost race is re-validated against fresh stock,
  and never produces a negative level
"""

from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import override_settings

from quaestor.exceptions import ConcurrentUpdate, NegativeStock, NotAConsumable
from quaestor.lifecycle import AssetLifecycle
from quaestor.models import Asset, derive_stock_status

from .base import QuaestorTestCase


class DeriveStockStatusTests(QuaestorTestCase):
    def test_thresholds(self):
        cases = [
            (0, 5, "OUT_OF_STOCK"),
            (-1, 0, "OUT_OF_STOCK"),
            (1, 5, "LOW_STOCK"),
            (5, 5, "LOW_STOCK"),
            (6, 5, "IN_STOCK"),
            (1, 0, "IN_STOCK"),
        ]
        for stock, minimum, expected in cases:
            with self.subTest(stock=stock, minimum=minimum):
                self.assertEqual(derive_stock_status(stock, minimum), expected)

    def test_status_is_derived_on_save(self):
        self.assertEqual(self.paper.status, "IN_STOCK")
        self.paper.current_stock = 3
        self.paper.status = "IN_STOCK"
        self.paper.save(update_fields=["current_stock"])
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.status, "LOW_STOCK")

    def test_physical_assets_carry_no_stock_status(self):
        self.assertIsNone(self.laptop.status)
        self.assertIsNone(self.laptop.stock_status)

    def test_item_type_is_fixed_after_creation(self):
        from django.core.exceptions import ValidationError

        self.paper.item_type = "ASSET"
        with self.assertRaises(ValidationError):
            self.paper.save()

    def test_database_rejects_negative_stock(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Asset.objects.filter(pk=self.paper.pk).update(current_stock=-1)


class AdjustStockTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)

    def test_consume_updates_stock_and_status(self):
        consumable = self.lifecycle.adjust_stock(self.paper.pk, -6, self.admin.pk)
        self.assertEqual(consumable.current_stock, 4)
        self.assertEqual(consumable.status, "LOW_STOCK")
        self.assertEqual(consumable.version, 1)

    def test_restock(self):
        consumable = self.lifecycle.adjust_stock(self.paper.pk, 15, self.admin.pk)
        self.assertEqual(consumable.current_stock, 25)
        self.assertEqual(consumable.status, "IN_STOCK")

    def test_consume_everything(self):
        consumable = self.lifecycle.adjust_stock(self.paper.pk, -10, self.admin.pk)
        self.assertEqual(consumable.current_stock, 0)
        self.assertEqual(consumable.status, "OUT_OF_STOCK")

    def test_one_event_per_adjustment(self):
        self.lifecycle.adjust_stock(self.paper.pk, -2, self.admin.pk, note="Exam week")
        self.lifecycle.adjust_stock(self.paper.pk, 5, self.admin.pk)
        events = self.events(self.paper, "STOCK_ADJUSTED")
        self.assertEqual(
            [(e.from_value, e.to_value) for e in events], [("10", "8"), ("8", "13")]
        )
        self.assertEqual(events[0].note, "Exam week")

    def test_negative_result_is_refused_and_writes_nothing(self):
        with self.assertRaises(NegativeStock) as ctx:
            self.lifecycle.adjust_stock(self.paper.pk, -11, self.admin.pk)
        self.assertEqual(ctx.exception.context["current_stock"], 10)
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.current_stock, 10)
        self.assertEqual(self.paper.version, 0)
        self.assertEqual(self.events(self.paper), [])

    def test_zero_delta_requires_opt_in(self):
        with self.assertRaises(ValueError):
            self.lifecycle.adjust_stock(self.paper.pk, 0, self.admin.pk)
        self.assertEqual(self.events(self.paper), [])

        self.lifecycle.adjust_stock(
            self.paper.pk, 0, self.admin.pk, note="Stock check", allow_zero=True
        )
        events = self.events(self.paper, "STOCK_ADJUSTED")
        self.assertEqual(len(events), 1)
        self.assertEqual((events[0].from_value, events[0].to_value), ("10", "10"))

    def test_physical_asset_is_not_a_consumable(self):
        with self.assertRaises(NotAConsumable) as ctx:
            self.lifecycle.adjust_stock(self.laptop.pk, 1, self.admin.pk)
        self.assertEqual(ctx.exception.http_status, 400)

    def test_low_stock_is_logged(self):
        with self.assertLogs("quaestor.lifecycle", level="WARNING") as logs:
            self.lifecycle.adjust_stock(self.paper.pk, -7, self.admin.pk)
        self.assertIn("LOW_STOCK", logs.output[0])


class StockConcurrencyTests(QuaestorTestCase):
    """Interleave a second writer between a caller's read and its write."""

    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)
        self.real_write = AssetLifecycle._write_stock

    def race_with(self, competing_delta):
        """Patch ``_write_stock`` so the first write loses to *competing_delta*."""
        calls = []
        real_write = self.real_write
        org, admin_pk, paper_pk = self.org, self.admin.pk, self.paper.pk

        def racing_write(lifecycle, consumable, new_stock):
            if not calls:
                calls.append(consumable.version)
                AssetLifecycle(org).adjust_stock(paper_pk, competing_delta, admin_pk)
            return real_write(lifecycle, consumable, new_stock)

        return patch.object(AssetLifecycle, "_write_stock", autospec=True, side_effect=racing_write)

    def test_loser_revalidates_against_fresh_stock(self):
        """Two callers each taking the last 2 units: exactly one succeeds."""
        Asset.objects.filter(pk=self.paper.pk).update(current_stock=2)

        with self.race_with(-2):
            with self.assertRaises(NegativeStock):
                self.lifecycle.adjust_stock(self.paper.pk, -2, self.admin.pk)

        self.paper.refresh_from_db()
        self.assertEqual(self.paper.current_stock, 0)
        self.assertEqual(self.paper.status, "OUT_OF_STOCK")
        self.assertEqual(len(self.events(self.paper, "STOCK_ADJUSTED")), 1)

    def test_last_unit_goes_to_exactly_one_caller(self):
        Asset.objects.filter(pk=self.paper.pk).update(current_stock=1)

        with self.race_with(-1):
            with self.assertRaises(NegativeStock):
                self.lifecycle.adjust_stock(self.paper.pk, -1, self.admin.pk)

        self.paper.refresh_from_db()
        self.assertEqual(self.paper.current_stock, 0)
        self.assertEqual(len(self.events(self.paper, "STOCK_ADJUSTED")), 1)

    def test_loser_retries_when_stock_still_suffices(self):
        with self.race_with(-2):
            consumable = self.lifecycle.adjust_stock(self.paper.pk, -3, self.admin.pk)

        self.assertEqual(consumable.current_stock, 5)
        self.assertEqual(consumable.version, 2)
        events = self.events(self.paper, "STOCK_ADJUSTED")
        self.assertEqual(
            [(e.from_value, e.to_value) for e in events], [("10", "8"), ("8", "5")]
        )

    @override_settings(QUAESTOR={"STOCK_UPDATE_RETRIES": 2})
    def test_gives_up_after_bounded_retries(self):
        with patch.object(AssetLifecycle, "_write_stock", return_value=False):
            with self.assertRaises(ConcurrentUpdate):
                self.lifecycle.adjust_stock(self.paper.pk, -1, self.admin.pk)
        self.paper.refresh_from_db()
        self.assertEqual(self.paper.current_stock, 10)
        self.assertEqual(self.events(self.paper), [])
