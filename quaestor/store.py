"""
Document-store facade over the ORM.

The engines never touch model managers directly; they go through a
``DocumentStore`` bound to one organization, addressing rows by
*collection* name and id.  The facade holds no business rules: it only
scopes, fetches and writes.

Usage::

    store = DocumentStore(organization)
    asset = store.get("assets", 42)
    store.list("assets", filters={"item_type": "CONSUMABLE"}, order=["name"])
    store.update("assets", 42, {"location": "Store room"})

    # conditional write: succeeds only if the row still matches *expected*
    store.compare_and_set(
        "assets", 42, {"version": 3}, {"current_stock": 7, "version": 4}
    )
"""

import logging

from django.utils import timezone

from .exceptions import NotFound

logger = logging.getLogger(__name__)

# Lazy so that importing the facade does not require the app registry.
_COLLECTIONS = None


def get_collections():
    """Return the ``collection name -> model class`` mapping."""
    global _COLLECTIONS
    if _COLLECTIONS is not None:
        return _COLLECTIONS

    from quaestor.models import (
        Asset,
        AssetEvent,
        AssetIssue,
        AssetRequest,
        AssetReturn,
        Staff,
    )

    _COLLECTIONS = {
        "assets": Asset,
        "requests": AssetRequest,
        "issues": AssetIssue,
        "returns": AssetReturn,
        "events": AssetEvent,
        "staff": Staff,
    }
    return _COLLECTIONS


class DocumentStore:
    """Collection-keyed CRUD scoped to a single organization."""

    def __init__(self, organization):
        if organization is None:
            raise ValueError("DocumentStore requires an organization.")
        self.organization = organization

    def _model(self, collection):
        try:
            return get_collections()[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection!r}") from None

    def _queryset(self, collection):
        return self._model(collection).objects.filter(organization=self.organization)

    def get(self, collection, object_id):
        if object_id in (None, ""):
            raise NotFound(collection, object_id)
        try:
            return self._queryset(collection).get(pk=object_id)
        except (self._model(collection).DoesNotExist, ValueError, TypeError):
            raise NotFound(collection, object_id) from None

    def list(self, collection, filters=None, order=None, limit=None, offset=0):
        """Return matching rows as a list.

        *filters* is a dict of ORM lookups (``{"current_stock__lte": 5}``),
        *order* a list of field names (prefix ``-`` for descending).
        """
        qs = self._queryset(collection)
        if filters:
            qs = qs.filter(**filters)
        if order:
            qs = qs.order_by(*order)
        if limit is not None:
            return list(qs[offset : offset + limit])
        if offset:
            return list(qs[offset:])
        return list(qs)

    def create(self, collection, fields, object_id=None):
        model = self._model(collection)
        data = dict(fields)
        if object_id is not None:
            data["pk"] = object_id
        obj = model(organization=self.organization, **data)
        obj.save()
        return obj

    def update(self, collection, object_id, fields):
        """Partial update; last write wins per field."""
        obj = self.get(collection, object_id)
        for name, value in fields.items():
            setattr(obj, name, value)
        update_fields = list(fields)
        if any(f.name == "updated_at" for f in obj._meta.concrete_fields):
            update_fields.append("updated_at")
        obj.save(update_fields=update_fields)
        return obj

    def delete(self, collection, object_id):
        obj = self.get(collection, object_id)
        obj.delete()

    def compare_and_set(self, collection, object_id, expected, fields):
        """Write *fields* only if the row still has the *expected* values.

        Runs as a single ``UPDATE ... WHERE`` so two writers holding the same
        snapshot cannot both succeed.  Bypasses ``Model.save()``: callers
        must supply every derived column themselves.  Returns True when the
        row was written.
        """
        model = self._model(collection)
        updates = dict(fields)
        if any(f.name == "updated_at" for f in model._meta.concrete_fields):
            updates.setdefault("updated_at", timezone.now())
        written = (
            self._queryset(collection)
            .filter(pk=object_id, **expected)
            .update(**updates)
        )
        if not written:
            logger.debug(
                "Conditional update on %s %s lost: expected %s", collection, object_id, expected
            )
        return written == 1
