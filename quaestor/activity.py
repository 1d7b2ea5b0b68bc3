"""
Asset audit-trail helpers.

``record_event()`` is the single entry-point for appending an
``AssetEvent`` row.  It is deliberately best-effort: the row is written
inside its own savepoint, and any failure is logged and swallowed so the
state change being documented is never rolled back or blocked by its
audit record.

Usage from an engine::

    from quaestor.activity import record_event

    store.update("assets", asset.pk, {"available_status": "MAINTENANCE"})
    record_event(
        store,
        asset,
        "STATUS_CHANGED",
        from_value="AVAILABLE",
        to_value="MAINTENANCE",
        actor=actor,
        note="Fan noise reported",
    )

``asset_history()`` returns the stored events for one asset, newest first.
"""

import logging

from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def _as_text(value):
    if value is None:
        return None
    return str(value)[:255]


def record_event(
    store,
    asset,
    event_type,
    *,
    from_value=None,
    to_value=None,
    actor=None,
    note=None,
):
    """
    Append one ``AssetEvent`` for *asset*.

    Parameters
    ----------
    store
        The ``DocumentStore`` of the organization the asset belongs to.
    asset
        The affected ``Asset`` instance.
    event_type
        One of ``AssetEvent.EVENT_TYPE_CHOICES``.
    from_value, to_value, optional
        Old and new values; stored as text.
    actor, optional
        The ``Staff`` member who performed the change.
    note, optional
        Free text shown in the asset's activity feed.

    Returns the created event, or None if the write failed.
    """
    try:
        with transaction.atomic():
            return store.create(
                "events",
                {
                    "asset": asset,
                    "event_type": event_type,
                    "from_value": _as_text(from_value),
                    "to_value": _as_text(to_value),
                    "actor": actor,
                    "at": timezone.now(),
                    "note": note,
                },
            )
    except Exception:
        # Never let an audit failure undo the change it documents.
        logger.exception(
            "Failed to record %s event for asset %s", event_type, getattr(asset, "pk", None)
        )
        return None


def asset_history(store, asset_id, limit=None):
    """Return events for *asset_id*, newest first."""
    return store.list(
        "events",
        filters={"asset_id": asset_id},
        order=["-at", "-id"],
        limit=limit,
    )
