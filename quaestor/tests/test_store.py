"""
Tests for the document-store facade.

Covers:
- Organization scoping of every read and write
- NotFound for missing, foreign and malformed ids
- list() filters, ordering and paging
- compare_and_set() conditional writes
"""

from quaestor.exceptions import NotFound
from quaestor.models import Asset, Organization
from quaestor.store import DocumentStore

from .base import QuaestorTestCase


class DocumentStoreTests(QuaestorTestCase):
    def setUp(self):
        super().setUp()
        self.store = DocumentStore(self.org)
        self.other_org = Organization.objects.create(name="Elsewhere", code="ELSE")
        self.foreign = self.make_asset("Foreign laptop", organization=self.other_org)

    def test_requires_organization(self):
        with self.assertRaises(ValueError):
            DocumentStore(None)

    def test_unknown_collection(self):
        with self.assertRaises(ValueError):
            self.store.get("widgets", 1)

    def test_get_is_scoped_to_organization(self):
        self.assertEqual(self.store.get("assets", self.laptop.pk), self.laptop)
        with self.assertRaises(NotFound):
            self.store.get("assets", self.foreign.pk)

    def test_missing_and_malformed_ids_are_not_found(self):
        for object_id in (None, "", 999999, "not-a-number"):
            with self.subTest(object_id=object_id):
                with self.assertRaises(NotFound):
                    self.store.get("assets", object_id)

    def test_list_filters_orders_and_pages(self):
        consumables = self.store.list("assets", filters={"item_type": "CONSUMABLE"})
        self.assertEqual(consumables, [self.paper])

        names = [a.name for a in self.store.list("assets", order=["name"])]
        self.assertEqual(names, ["A4 Paper", "Laptop 14", "Projector"])
        self.assertNotIn("Foreign laptop", names)

        page = self.store.list("assets", order=["name"], limit=1, offset=1)
        self.assertEqual([a.name for a in page], ["Laptop 14"])

    def test_create_stamps_organization(self):
        asset = self.store.create("assets", {"name": "Tablet", "category": "IT_EQUIPMENT"})
        self.assertEqual(asset.organization, self.org)
        self.assertEqual(asset.asset_tag, "RETC-LAPTOP-002")

    def test_update_is_partial(self):
        self.store.update("assets", self.laptop.pk, {"location": "Lab 3"})
        self.laptop.refresh_from_db()
        self.assertEqual(self.laptop.location, "Lab 3")
        self.assertEqual(self.laptop.name, "Laptop 14")

    def test_update_of_foreign_row_is_not_found(self):
        with self.assertRaises(NotFound):
            self.store.update("assets", self.foreign.pk, {"location": "Lab 3"})

    def test_compare_and_set(self):
        written = self.store.compare_and_set(
            "assets", self.paper.pk, {"version": 0}, {"current_stock": 7, "version": 1}
        )
        self.assertTrue(written)

        stale = self.store.compare_and_set(
            "assets", self.paper.pk, {"version": 0}, {"current_stock": 1, "version": 1}
        )
        self.assertFalse(stale)

        self.paper.refresh_from_db()
        self.assertEqual((self.paper.current_stock, self.paper.version), (7, 1))

    def test_compare_and_set_ignores_foreign_rows(self):
        self.assertFalse(
            self.store.compare_and_set(
                "assets", self.foreign.pk, {"version": 0}, {"location": "Moved"}
            )
        )
        self.assertEqual(Asset.objects.get(pk=self.foreign.pk).location, "")
