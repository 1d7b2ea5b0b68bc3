"""
Tests for the asset lifecycle engine.

Covers:
- Status machine: every (from, to) pair accepted or rejected per the
  transition table, DISPOSED terminal, consumables rejected
- Issuance guard: status, custodian and consumable checks; issue() sets
  IN_USE and the custodian and logs one ASSIGNED event
- Condition and location changes
- Returns: AVAILABLE or REPAIR_REQUIRED, custodian cleared, no double return
- A full lifecycle walk with its event trail
- Status and issuance writes keyed on the validated status: a competing
  writer that lands first makes the later call fail without a second event
"""

from unittest.mock import patch

from django.utils import timezone

from quaestor.exceptions import InvalidTransition, NotFound, NotIssuable
from quaestor.lifecycle import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AssetLifecycle,
    allowed_transitions,
    is_transition_allowed,
)
from quaestor.models import (
    Asset,
    AssetEvent,
    AssetIssue,
    AssetRequest,
    AssetReturn,
    Organization,
)
from quaestor.store import DocumentStore

from .base import QuaestorTestCase

ALL_STATUSES = [value for value, _ in Asset.AVAILABLE_STATUS_CHOICES]


class TransitionTableTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)

    def test_table_covers_every_status(self):
        self.assertEqual(set(ALLOWED_TRANSITIONS), set(ALL_STATUSES))

    def test_disposed_is_the_only_terminal_status(self):
        self.assertEqual(TERMINAL_STATUSES, frozenset({"DISPOSED"}))
        self.assertEqual(allowed_transitions("DISPOSED"), frozenset())

    def test_unknown_status_has_no_transitions(self):
        self.assertFalse(is_transition_allowed("LOST", "AVAILABLE"))

    def test_every_pair_follows_the_table(self):
        """Allowed pairs succeed with one event; all others leave no trace."""
        for from_status in ALL_STATUSES:
            for to_status in ALL_STATUSES:
                with self.subTest(from_status=from_status, to_status=to_status):
                    self.set_status(self.laptop, from_status)
                    before = AssetEvent.objects.count()

                    if to_status in ALLOWED_TRANSITIONS[from_status]:
                        asset = self.lifecycle.transition_status(
                            self.laptop.pk, to_status, self.admin.pk
                        )
                        self.assertEqual(asset.available_status, to_status)
                        self.assertEqual(AssetEvent.objects.count(), before + 1)
                        event = AssetEvent.objects.latest("id")
                        self.assertEqual(event.event_type, "STATUS_CHANGED")
                        self.assertEqual(event.from_value, from_status)
                        self.assertEqual(event.to_value, to_status)
                        self.assertEqual(event.actor, self.admin)
                    else:
                        with self.assertRaises(InvalidTransition):
                            self.lifecycle.transition_status(
                                self.laptop.pk, to_status, self.admin.pk
                            )
                        self.laptop.refresh_from_db()
                        self.assertEqual(self.laptop.available_status, from_status)
                        self.assertEqual(AssetEvent.objects.count(), before)

    def test_invalid_transition_reports_both_states(self):
        self.set_status(self.laptop, "DISPOSED")
        with self.assertRaises(InvalidTransition) as ctx:
            self.lifecycle.transition_status(self.laptop.pk, "AVAILABLE", self.admin.pk)
        self.assertEqual(ctx.exception.context["from_status"], "DISPOSED")
        self.assertEqual(ctx.exception.context["to_status"], "AVAILABLE")
        self.assertEqual(ctx.exception.http_status, 409)

    def test_consumable_has_no_status_machine(self):
        with self.assertRaises(InvalidTransition):
            self.lifecycle.transition_status(self.paper.pk, "AVAILABLE", self.admin.pk)

    def test_unknown_asset_is_not_found(self):
        with self.assertRaises(NotFound) as ctx:
            self.lifecycle.transition_status(999999, "AVAILABLE", self.admin.pk)
        self.assertEqual(ctx.exception.code, "not_found")
        self.assertEqual(ctx.exception.http_status, 404)

    def test_asset_of_another_organization_is_not_found(self):
        other_org = Organization.objects.create(name="Elsewhere", code="ELSE")
        foreign = self.make_asset("Foreign laptop", organization=other_org)
        self.set_status(foreign, "AVAILABLE")
        with self.assertRaises(NotFound):
            self.lifecycle.transition_status(foreign.pk, "MAINTENANCE", self.admin.pk)
        foreign.refresh_from_db()
        self.assertEqual(foreign.available_status, "AVAILABLE")


class CreateAssetTests(QuaestorTestCase):
    def test_create_logs_created_event(self):
        asset = AssetLifecycle(self.org).create_asset(
            {"name": "Drill", "category": "TOOLS", "item_type": "ASSET"}, self.admin.pk
        )
        self.assertEqual(asset.available_status, "AWAITING_DEPLOY")
        self.assertTrue(asset.asset_tag.startswith("RETC-TOOL-"))
        events = self.events(asset)
        self.assertEqual([e.event_type for e in events], ["CREATED"])

    def test_caller_supplied_status_is_ignored(self):
        asset = AssetLifecycle(self.org).create_asset(
            {
                "name": "Toner",
                "item_type": "CONSUMABLE",
                "current_stock": 0,
                "minimum_stock": 2,
                "status": "IN_STOCK",
            }
        )
        self.assertEqual(asset.status, "OUT_OF_STOCK")
        self.assertIsNone(asset.available_status)

    def test_missing_stock_level_starts_at_zero(self):
        asset = AssetLifecycle(self.org).create_asset(
            {"name": "Staples", "item_type": "CONSUMABLE", "current_stock": None}
        )
        self.assertEqual(asset.current_stock, 0)
        self.assertEqual(asset.status, "OUT_OF_STOCK")


class IssuanceTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)

    def test_available_asset_with_custodian_is_issuable(self):
        self.assertTrue(
            self.lifecycle.can_issue_asset(self.laptop.pk, custodian_id=self.requester.pk)
        )

    def test_reserved_asset_is_issuable(self):
        self.set_status(self.laptop, "RESERVED")
        self.assertTrue(
            self.lifecycle.can_issue_asset(self.laptop.pk, custodian_id=self.requester.pk)
        )

    def test_existing_custodian_satisfies_guard(self):
        Asset.objects.filter(pk=self.laptop.pk).update(custodian=self.requester)
        self.assertTrue(self.lifecycle.can_issue_asset(self.laptop.pk))

    def test_missing_custodian_is_not_issuable(self):
        with self.assertRaises(NotIssuable) as ctx:
            self.lifecycle.can_issue_asset(self.laptop.pk)
        self.assertIn("custodian", ctx.exception.message)

    def test_non_issuable_statuses(self):
        for status in ALL_STATUSES:
            if status in ("AVAILABLE", "RESERVED"):
                continue
            with self.subTest(status=status):
                self.set_status(self.laptop, status)
                with self.assertRaises(NotIssuable) as ctx:
                    self.lifecycle.can_issue_asset(
                        self.laptop.pk, custodian_id=self.requester.pk
                    )
                self.assertIn(status, ctx.exception.message)

    def test_consumable_is_not_issuable(self):
        with self.assertRaises(NotIssuable):
            self.lifecycle.can_issue_asset(self.paper.pk, custodian_id=self.requester.pk)

    def test_issue_sets_in_use_and_custodian(self):
        asset = self.lifecycle.issue(self.laptop.pk, self.requester.pk, self.admin.pk)
        self.assertEqual(asset.available_status, "IN_USE")
        self.assertEqual(asset.custodian, self.requester)
        events = self.events(asset, "ASSIGNED")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].to_value, "Rafi Requester")

    def test_failed_issue_writes_nothing(self):
        self.set_status(self.laptop, "MAINTENANCE")
        with self.assertRaises(NotIssuable):
            self.lifecycle.issue(self.laptop.pk, self.requester.pk, self.admin.pk)
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "MAINTENANCE")
        self.assertIsNone(self.laptop.custodian)
        self.assertEqual(self.events(self.laptop), [])


class ConditionAndLocationTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)

    def test_change_condition_logs_event(self):
        asset = self.lifecycle.change_condition(self.laptop.pk, "FAIR", self.admin.pk)
        self.assertEqual(asset.current_condition, "FAIR")
        event = self.events(asset, "CONDITION_CHANGED")[0]
        self.assertEqual((event.from_value, event.to_value), ("NEW", "FAIR"))

    def test_unknown_or_unchanged_condition_rejected(self):
        for condition in ("BROKEN", "NEW"):
            with self.subTest(condition=condition):
                with self.assertRaises(InvalidTransition):
                    self.lifecycle.change_condition(self.laptop.pk, condition, self.admin.pk)
        self.assertEqual(self.events(self.laptop), [])

    def test_move_logs_location_change(self):
        asset = self.lifecycle.move(self.laptop.pk, "Store room B", self.admin.pk)
        self.assertEqual(asset.location, "Store room B")
        event = self.events(asset, "LOCATION_CHANGED")[0]
        self.assertIsNone(event.from_value)
        self.assertEqual(event.to_value, "Store room B")


class ReturnTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)
        issue_date, return_date = self.dates()
        self.request = AssetRequest.objects.create(
            organization=self.org,
            requester=self.requester,
            requested_items=[self.laptop.pk],
            status="FULFILLED",
            issue_date=issue_date,
            expected_return_date=return_date,
        )
        self.lifecycle.issue(self.laptop.pk, self.requester.pk, self.admin.pk)
        self.issue = AssetIssue.objects.create(
            organization=self.org,
            request=self.request,
            asset=self.laptop,
            issued_by=self.admin,
            issued_at=timezone.now(),
            due_at=return_date,
        )

    def test_good_return_makes_asset_available(self):
        self.lifecycle.record_return(self.issue.pk, self.admin.pk, "GOOD", "GOOD")
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "AVAILABLE")
        self.assertEqual(self.laptop.current_condition, "GOOD")
        self.assertIsNone(self.laptop.custodian)
        event = self.events(self.laptop, "RETURNED")[0]
        self.assertEqual(event.from_value, "Rafi Requester")
        self.assertEqual(event.to_value, "AVAILABLE")

    def test_damaged_return_requires_repair(self):
        self.lifecycle.record_return(self.issue.pk, self.admin.pk, "DAMAGED", "DAMAGED")
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "REPAIR_REQUIRED")

    def test_issue_cannot_be_returned_twice(self):
        self.lifecycle.record_return(self.issue.pk, self.admin.pk, "GOOD")
        self.set_status(self.laptop, "IN_USE")
        with self.assertRaises(InvalidTransition):
            self.lifecycle.record_return(self.issue.pk, self.admin.pk, "GOOD")
        self.assertEqual(len(self.events(self.laptop, "RETURNED")), 1)

    def test_asset_not_in_use_cannot_be_returned(self):
        self.set_status(self.laptop, "MAINTENANCE")
        with self.assertRaises(InvalidTransition):
            self.lifecycle.record_return(self.issue.pk, self.admin.pk, "GOOD")

    def test_unknown_return_delta_writes_nothing(self):
        with self.assertRaises(ValueError):
            self.lifecycle.record_return(self.issue.pk, self.admin.pk, "GOOD", "SHINY")
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "IN_USE")
        self.assertEqual(self.laptop.custodian, self.requester)
        self.assertFalse(AssetReturn.objects.exists())
        self.assertEqual(self.events(self.laptop, "RETURNED"), [])

    def test_unknown_return_condition_writes_nothing(self):
        with self.assertRaises(ValueError):
            self.lifecycle.record_return(self.issue.pk, self.admin.pk, "SPARKLING")
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "IN_USE")
        self.assertFalse(AssetReturn.objects.exists())


class FullLifecycleTests(QuaestorTestCase):
    def test_asset_walks_through_its_whole_life(self):
        lifecycle = AssetLifecycle(self.org)
        asset = lifecycle.create_asset(
            {"name": "Router", "category": "NETWORK_HARDWARE", "item_type": "ASSET"},
            self.admin.pk,
        )
        lifecycle.transition_status(asset.pk, "AVAILABLE", self.admin.pk)
        lifecycle.issue(asset.pk, self.requester.pk, self.admin.pk)
        lifecycle.transition_status(asset.pk, "REPAIR_REQUIRED", self.admin.pk)
        lifecycle.transition_status(asset.pk, "MAINTENANCE", self.admin.pk)
        lifecycle.transition_status(asset.pk, "OUT_FOR_SERVICE", self.admin.pk)
        lifecycle.transition_status(asset.pk, "AVAILABLE", self.admin.pk)
        lifecycle.transition_status(asset.pk, "RETIRED", self.admin.pk)
        asset = lifecycle.transition_status(asset.pk, "DISPOSED", self.admin.pk)

        self.assertEqual(asset.available_status, "DISPOSED")
        self.assertEqual(
            [e.event_type for e in self.events(asset)],
            ["CREATED", "STATUS_CHANGED", "ASSIGNED"] + ["STATUS_CHANGED"] * 6,
        )
        for target in ALL_STATUSES:
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition):
                    lifecycle.transition_status(asset.pk, target, self.admin.pk)

    def test_issued_asset_comes_back_and_is_disposed(self):
        lifecycle = AssetLifecycle(self.org)
        asset = lifecycle.create_asset(
            {"name": "Camera", "category": "AV_EQUIPMENT", "item_type": "ASSET"},
            self.admin.pk,
        )
        lifecycle.transition_status(asset.pk, "AVAILABLE", self.admin.pk)
        asset = lifecycle.issue(asset.pk, self.requester.pk, self.admin.pk)
        self.assertEqual(asset.available_status, "IN_USE")
        self.assertEqual(asset.custodian, self.requester)
        for status in ("AWAITING_RETURN", "AVAILABLE", "RETIRED", "DISPOSED"):
            asset = lifecycle.transition_status(asset.pk, status, self.admin.pk)

        self.assertEqual(asset.available_status, "DISPOSED")
        with self.assertRaises(InvalidTransition):
            lifecycle.transition_status(asset.pk, "AVAILABLE", self.admin.pk)


class StatusRaceTests(QuaestorTestCase):
    """Interleave a second writer between validation and the status write."""

    def setUp(self):
        super().setUp()
        self.lifecycle = AssetLifecycle(self.org)
        self.real_cas = DocumentStore.compare_and_set

    def race_with(self, competitor):
        """Patch ``compare_and_set`` so *competitor* runs before the first write."""
        calls = []
        real_cas = self.real_cas

        def racing_cas(store, collection, object_id, expected, fields):
            if not calls:
                calls.append(collection)
                competitor()
            return real_cas(store, collection, object_id, expected, fields)

        return patch.object(
            DocumentStore, "compare_and_set", autospec=True, side_effect=racing_cas
        )

    def test_stale_transition_is_rejected(self):
        org, laptop_pk, admin_pk = self.org, self.laptop.pk, self.admin.pk

        def send_to_maintenance():
            AssetLifecycle(org).transition_status(laptop_pk, "MAINTENANCE", admin_pk)

        with self.race_with(send_to_maintenance):
            with self.assertRaises(InvalidTransition) as ctx:
                self.lifecycle.transition_status(laptop_pk, "RETIRED", admin_pk)

        self.assertEqual(ctx.exception.context["from_status"], "MAINTENANCE")
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "MAINTENANCE")
        events = self.events(self.laptop, "STATUS_CHANGED")
        self.assertEqual([e.to_value for e in events], ["MAINTENANCE"])

    def test_concurrent_issue_has_one_winner(self):
        org, laptop_pk, admin_pk = self.org, self.laptop.pk, self.admin.pk
        other_pk = self.other_staff.pk

        def issue_to_other_staff():
            AssetLifecycle(org).issue(laptop_pk, other_pk, admin_pk)

        with self.race_with(issue_to_other_staff):
            with self.assertRaises(NotIssuable):
                self.lifecycle.issue(laptop_pk, self.requester.pk, admin_pk)

        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.available_status, "IN_USE")
        self.assertEqual(self.laptop.custodian, self.other_staff)
        events = self.events(self.laptop, "ASSIGNED")
        self.assertEqual([e.to_value for e in events], ["Omar Other"])
