"""
Asset lifecycle engine.

Owns the ``available_status`` state machine of physical assets, issuance
to a custodian, returns, and the stock level of consumables.  Every
successful mutation appends exactly one ``AssetEvent``; a call that fails
validation writes nothing.

Stock writes are conditional on the row's ``version`` so that two callers
working from the same snapshot cannot both succeed; the loser re-reads and
re-validates against the fresh stock level.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .activity import record_event
from .conf import get_setting
from .exceptions import (
    ConcurrentUpdate,
    InvalidTransition,
    NegativeStock,
    NotAConsumable,
    NotIssuable,
)
from .models import Asset, AssetReturn, derive_stock_status
from .store import DocumentStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "AWAITING_DEPLOY": frozenset({"AVAILABLE"}),
    "AVAILABLE": frozenset({"RESERVED", "IN_USE", "MAINTENANCE", "RETIRED"}),
    "RESERVED": frozenset({"AVAILABLE", "IN_USE"}),
    "IN_USE": frozenset({"AVAILABLE", "AWAITING_RETURN", "REPAIR_REQUIRED"}),
    "AWAITING_RETURN": frozenset({"AVAILABLE", "REPAIR_REQUIRED"}),
    "MAINTENANCE": frozenset({"AVAILABLE", "OUT_FOR_SERVICE"}),
    "REPAIR_REQUIRED": frozenset({"MAINTENANCE", "RETIRED"}),
    "OUT_FOR_SERVICE": frozenset({"MAINTENANCE", "AVAILABLE"}),
    "RETIRED": frozenset({"DISPOSED"}),
    "DISPOSED": frozenset(),
}

ISSUABLE_STATUSES = frozenset({"AVAILABLE", "RESERVED"})
RETURNABLE_STATUSES = frozenset({"IN_USE", "AWAITING_RETURN"})
RETURN_DELTAS = tuple(value for value, _ in AssetReturn.RETURN_DELTA_CHOICES)
CONDITIONS = tuple(value for value, _ in Asset.CONDITION_CHOICES)
TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def allowed_transitions(from_status):
    return ALLOWED_TRANSITIONS.get(from_status, frozenset())


def is_transition_allowed(from_status, to_status):
    return to_status in allowed_transitions(from_status)


class AssetLifecycle:
    """Lifecycle operations for the assets of one organization."""

    def __init__(self, organization, store=None):
        self.organization = organization
        self.store = store or DocumentStore(organization)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _staff(self, staff_id):
        if staff_id is None:
            return None
        return self.store.get("staff", staff_id)

    def _physical_asset(self, asset_id, to_status=None):
        asset = self.store.get("assets", asset_id)
        if asset.is_consumable:
            raise InvalidTransition(
                None,
                to_status,
                message=f"Asset {asset_id} is a consumable and has no availability status.",
            )
        return asset

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_asset(self, fields, actor_id=None):
        """Create an asset or consumable and log ``CREATED``.

        A caller-supplied ``status`` is ignored; consumable status is
        always derived from stock.
        """
        actor = self._staff(actor_id)
        data = {k: v for k, v in fields.items() if k not in ("status", "version")}
        if data.get("current_stock") is None:
            data.pop("current_stock", None)
        if data.get("item_type") == "CONSUMABLE" and data.get("current_stock", 0) < 0:
            raise NegativeStock(0, data["current_stock"])
        asset = self.store.create("assets", data)
        record_event(
            self.store,
            asset,
            "CREATED",
            to_value=asset.status if asset.is_consumable else asset.current_condition,
            actor=actor,
            note="Asset created",
        )
        logger.info("Created %s %s", asset.item_type.lower(), asset.asset_tag)
        return asset

    # ------------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------------

    def transition_status(self, asset_id, to_status, actor_id, note=None):
        asset = self._physical_asset(asset_id, to_status)
        actor = self._staff(actor_id)
        from_status = asset.available_status

        if not is_transition_allowed(from_status, to_status):
            raise InvalidTransition(from_status, to_status)

        # Keyed on the status just validated, so a concurrent move makes this a no-op.
        if not self.store.compare_and_set(
            "assets", asset.pk, {"available_status": from_status}, {"available_status": to_status}
        ):
            current = self.store.get("assets", asset.pk)
            raise InvalidTransition(
                current.available_status,
                to_status,
                message=f"Asset {asset.asset_tag} moved to {current.available_status} "
                "while this change was being made.",
            )
        asset = self.store.get("assets", asset.pk)
        record_event(
            self.store,
            asset,
            "STATUS_CHANGED",
            from_value=from_status,
            to_value=to_status,
            actor=actor,
            note=note,
        )
        logger.info(
            "Asset %s status %s -> %s", asset.asset_tag, from_status, to_status
        )
        return asset

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _check_issuable(self, asset, custodian_id=None):
        if asset.is_consumable:
            raise NotIssuable(
                f"Asset {asset.pk} is a consumable; consumables are handed out "
                "through stock adjustments, not issuance.",
                id=asset.pk,
            )
        if asset.available_status not in ISSUABLE_STATUSES:
            raise NotIssuable(
                f"Asset cannot be issued. Current status: {asset.available_status}. "
                "Only AVAILABLE or RESERVED assets can be issued.",
                id=asset.pk,
                status=asset.available_status,
            )
        if not (custodian_id or asset.custodian_id):
            raise NotIssuable(
                "Asset must have a custodian assigned before issuance.",
                id=asset.pk,
            )

    def can_issue_asset(self, asset_id, custodian_id=None):
        """Raise ``NotIssuable`` unless the asset may be handed over.

        *custodian_id* stands in for a custodian that the calling workflow
        will assign in the same step; without it the asset must already
        have one.
        """
        asset = self.store.get("assets", asset_id)
        self._check_issuable(asset, custodian_id)
        return True

    def issue(self, asset_id, custodian_id, actor_id, note=None):
        asset = self.store.get("assets", asset_id)
        actor = self._staff(actor_id)
        self._check_issuable(asset, custodian_id)
        custodian = self._staff(custodian_id) if custodian_id else asset.custodian

        if not self.store.compare_and_set(
            "assets",
            asset.pk,
            {"available_status": asset.available_status, "custodian": asset.custodian_id},
            {"available_status": "IN_USE", "custodian": custodian},
        ):
            current = self.store.get("assets", asset.pk)
            raise NotIssuable(
                f"Asset {asset.asset_tag} changed while it was being issued. "
                f"Current status: {current.available_status}.",
                id=asset.pk,
                status=current.available_status,
            )
        asset = self.store.get("assets", asset.pk)
        record_event(
            self.store,
            asset,
            "ASSIGNED",
            from_value=None,
            to_value=custodian.name,
            actor=actor,
            note=note,
        )
        logger.info("Asset %s issued to %s", asset.asset_tag, custodian)
        return asset

    # ------------------------------------------------------------------
    # Consumable stock
    # ------------------------------------------------------------------

    def _write_stock(self, consumable, new_stock):
        return self.store.compare_and_set(
            "assets",
            consumable.pk,
            {"version": consumable.version, "current_stock": consumable.current_stock},
            {
                "current_stock": new_stock,
                "status": derive_stock_status(new_stock, consumable.minimum_stock),
                "version": consumable.version + 1,
            },
        )

    def apply_stock_delta(self, consumable_id, delta):
        """Conditionally write ``current_stock + delta`` without an audit event.

        Returns ``(old_stock, refreshed_consumable)``.  Retries on lost
        races, re-validating against the fresh stock level each time.
        """
        attempts = max(1, get_setting("STOCK_UPDATE_RETRIES"))
        for _ in range(attempts):
            consumable = self.store.get("assets", consumable_id)
            if not consumable.is_consumable:
                raise NotAConsumable(consumable_id)
            old_stock = consumable.current_stock
            new_stock = old_stock + delta
            if new_stock < 0:
                raise NegativeStock(old_stock, delta)
            if self._write_stock(consumable, new_stock):
                return old_stock, self.store.get("assets", consumable_id)
            logger.info(
                "Stock write on %s raced with another writer; re-reading", consumable_id
            )
        raise ConcurrentUpdate("assets", consumable_id, attempts)

    def adjust_stock(self, consumable_id, delta, actor_id, note=None, allow_zero=False):
        """Add *delta* (negative to consume) to a consumable's stock.

        Raises ``NegativeStock`` if the result would be below zero, leaving
        the row untouched.  Zero deltas are refused unless *allow_zero* is
        set, for callers that want an audit-only entry.
        """
        if delta == 0 and not allow_zero:
            raise ValueError("Stock adjustment delta must be non-zero.")
        actor = self._staff(actor_id)

        old_stock, consumable = self.apply_stock_delta(consumable_id, delta)
        record_event(
            self.store,
            consumable,
            "STOCK_ADJUSTED",
            from_value=old_stock,
            to_value=consumable.current_stock,
            actor=actor,
            note=note,
        )
        if consumable.status != "IN_STOCK":
            logger.warning(
                "Consumable %s is %s (%s left, minimum %s)",
                consumable.asset_tag,
                consumable.status,
                consumable.current_stock,
                consumable.minimum_stock,
            )
        return consumable

    # ------------------------------------------------------------------
    # Condition, location, returns
    # ------------------------------------------------------------------

    def change_condition(self, asset_id, condition, actor_id, note=None):
        asset = self.store.get("assets", asset_id)
        actor = self._staff(actor_id)
        valid = {value for value, _ in asset.CONDITION_CHOICES}
        if condition not in valid or condition == asset.current_condition:
            raise InvalidTransition(asset.current_condition, condition)

        old_condition = asset.current_condition
        asset = self.store.update("assets", asset.pk, {"current_condition": condition})
        record_event(
            self.store,
            asset,
            "CONDITION_CHANGED",
            from_value=old_condition,
            to_value=condition,
            actor=actor,
            note=note,
        )
        return asset

    def move(self, asset_id, location, actor_id, note=None):
        asset = self.store.get("assets", asset_id)
        actor = self._staff(actor_id)
        old_location = asset.location
        asset = self.store.update("assets", asset.pk, {"location": location or ""})
        record_event(
            self.store,
            asset,
            "LOCATION_CHANGED",
            from_value=old_location or None,
            to_value=location or None,
            actor=actor,
            note=note,
        )
        return asset

    def record_return(
        self, issue_id, actor_id, return_condition, return_delta="GOOD", note=None
    ):
        """Take an issued asset back into stock.

        A ``DAMAGED`` delta sends the asset to REPAIR_REQUIRED instead of
        AVAILABLE.  The custodian is cleared and one ``RETURNED`` event is
        written.
        """
        issue = self.store.get("issues", issue_id)
        actor = self._staff(actor_id)
        asset = issue.asset

        if hasattr(issue, "asset_return"):
            raise InvalidTransition(
                asset.available_status,
                "AVAILABLE",
                message=f"Issue {issue_id} has already been returned.",
            )
        if asset.available_status not in RETURNABLE_STATUSES:
            raise InvalidTransition(
                asset.available_status,
                "AVAILABLE",
                message=f"Asset {asset.asset_tag} is {asset.available_status}; "
                "only IN_USE or AWAITING_RETURN assets can be returned.",
            )
        if return_delta not in RETURN_DELTAS:
            raise ValueError(
                f"Unknown return delta {return_delta!r}; expected one of "
                f"{', '.join(RETURN_DELTAS)}."
            )
        if return_condition not in CONDITIONS:
            raise ValueError(
                f"Unknown condition {return_condition!r}; expected one of "
                f"{', '.join(CONDITIONS)}."
            )

        to_status = "REPAIR_REQUIRED" if return_delta == "DAMAGED" else "AVAILABLE"
        previous_custodian = asset.custodian

        with transaction.atomic():
            if not self.store.compare_and_set(
                "assets",
                asset.pk,
                {"available_status": asset.available_status},
                {
                    "available_status": to_status,
                    "current_condition": return_condition,
                    "custodian": None,
                },
            ):
                current = self.store.get("assets", asset.pk)
                raise InvalidTransition(
                    current.available_status,
                    to_status,
                    message=f"Asset {asset.asset_tag} moved to {current.available_status} "
                    "while the return was being recorded.",
                )
            asset_return = self.store.create(
                "returns",
                {
                    "issue": issue,
                    "asset": asset,
                    "received_by": actor,
                    "returned_at": timezone.now(),
                    "return_condition": return_condition,
                    "return_delta": return_delta,
                    "note": note,
                },
            )
            asset = self.store.get("assets", asset.pk)
        record_event(
            self.store,
            asset,
            "RETURNED",
            from_value=previous_custodian.name if previous_custodian else None,
            to_value=to_status,
            actor=actor,
            note=note,
        )
        return asset_return
