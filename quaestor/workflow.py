"""
Request workflow engine.

Drives an ``AssetRequest`` through PENDING → APPROVED/DENIED →
FULFILLED/CANCELLED and applies the side effects of each decision.

Two fulfilment policies coexist on purpose:

* Consumable approval is one accounting operation.  Every line is checked
  before anything is deducted, the deductions run in a single database
  transaction, and a line that loses a race rolls all of them back.
* Physical issuance is N independent hand-offs.  An asset that fails the
  issuability guard is skipped and logged; the rest are still issued.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .activity import record_event
from .conf import get_setting
from .exceptions import (
    InsufficientStock,
    InvalidRequestDates,
    InvalidTransition,
    LifecycleError,
    MissingReason,
    NegativeStock,
    NotCancellable,
    NotFound,
)
from .lifecycle import AssetLifecycle
from .store import DocumentStore

logger = logging.getLogger(__name__)

APPROVE = "APPROVE"
DENY = "DENY"
DECISIONS = (APPROVE, DENY)

TERMINAL_REQUEST_STATUSES = frozenset({"DENIED", "CANCELLED", "FULFILLED"})
CANCELLABLE_STATUSES = frozenset({"PENDING", "APPROVED"})


def validate_request_dates(issue_date, expected_return_date, now=None):
    """Raise ``InvalidRequestDates`` unless now <= issue < expected return."""
    now = now or timezone.now()
    if issue_date is None or expected_return_date is None:
        raise InvalidRequestDates("Both an issue date and an expected return date are required.")
    if issue_date >= expected_return_date:
        raise InvalidRequestDates("Issue date must be before expected return date.")
    if issue_date < now:
        raise InvalidRequestDates("Issue date cannot be in the past.")


def _has_text(value):
    return bool(value and str(value).strip())


class RequestWorkflow:
    """Request operations for one organization."""

    def __init__(self, organization, store=None, lifecycle=None):
        self.organization = organization
        self.store = store or DocumentStore(organization)
        self.lifecycle = lifecycle or AssetLifecycle(organization, store=self.store)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_items(self, request):
        """Return ``[(asset, quantity), ...]`` in request order."""
        return [
            (self.store.get("assets", item_id), quantity)
            for item_id, quantity in request.item_quantities().items()
        ]

    def _claim(self, request, fields, message):
        """Move *request* out of its current status only if nobody else has.

        The status read earlier is the condition of the write, so of two
        callers acting on the same snapshot exactly one wins; the other gets
        ``InvalidTransition`` carrying the status it lost to.
        """
        if not self.store.compare_and_set(
            "requests", request.pk, {"status": request.status}, fields
        ):
            current = self.store.get("requests", request.pk)
            raise InvalidTransition(
                current.status,
                fields["status"],
                message=f"Request {request.pk} is now {current.status}; {message}",
            )
        return self.store.get("requests", request.pk)

    def _deduct_consumables(self, lines, actor, note):
        """All-or-nothing stock deduction for ``[(consumable, quantity), ...]``."""
        shortages = [
            (consumable.pk, quantity, consumable.current_stock)
            for consumable, quantity in lines
            if consumable.current_stock < quantity
        ]
        if shortages:
            raise InsufficientStock(shortages)

        applied = []
        try:
            with transaction.atomic():
                for consumable, quantity in lines:
                    old_stock, fresh = self.lifecycle.apply_stock_delta(
                        consumable.pk, -quantity
                    )
                    applied.append((fresh, old_stock))
        except NegativeStock:
            # Another writer took the stock between validation and write;
            # the transaction has rolled every line back.
            fresh_lines = [
                (self.store.get("assets", consumable.pk), quantity)
                for consumable, quantity in lines
            ]
            raise InsufficientStock(
                [
                    (c.pk, quantity, c.current_stock)
                    for c, quantity in fresh_lines
                    if c.current_stock < quantity
                ]
                or [(c.pk, quantity, c.current_stock) for c, quantity in fresh_lines]
            ) from None

        for consumable, old_stock in applied:
            record_event(
                self.store,
                consumable,
                "STOCK_ADJUSTED",
                from_value=old_stock,
                to_value=consumable.current_stock,
                actor=actor,
                note=note,
            )
        return [consumable for consumable, _ in applied]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        requester_id,
        requested_items,
        purpose,
        issue_date,
        expected_return_date,
        *,
        original_request=None,
        resubmission_reason=None,
    ):
        requester = self.store.get("staff", requester_id)
        items = list(requested_items or [])
        if not items:
            raise ValueError("A request must name at least one item.")
        validate_request_dates(issue_date, expected_return_date)
        for item_id in set(items):
            self.store.get("assets", item_id)

        request = self.store.create(
            "requests",
            {
                "requester": requester,
                "requested_items": items,
                "status": "PENDING",
                "issue_date": issue_date,
                "expected_return_date": expected_return_date,
                "purpose": purpose or "",
                "original_request": original_request,
                "resubmission_reason": resubmission_reason,
            },
        )
        logger.info("Request %s submitted by %s", request.pk, requester)
        return request

    def resubmit(
        self,
        request_id,
        requester_id,
        reason=None,
        issue_date=None,
        expected_return_date=None,
    ):
        """Open a new PENDING request from a DENIED one.

        The original keeps its terminal status; the copy points back at it.
        """
        original = self.store.get("requests", request_id)
        requester = self.store.get("staff", requester_id)
        if original.requester_id != requester.pk:
            raise InvalidTransition(
                original.status,
                "PENDING",
                message="Only the original requester can resubmit a request.",
            )
        if original.status != "DENIED":
            raise InvalidTransition(
                original.status,
                "PENDING",
                message=f"Only denied requests can be resubmitted; this one is {original.status}.",
            )
        return self.submit(
            requester.pk,
            original.requested_items,
            original.purpose,
            issue_date or original.issue_date,
            expected_return_date or original.expected_return_date,
            original_request=original,
            resubmission_reason=reason,
        )

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def decide(self, request_id, decision, actor_id, reason=None):
        if decision not in DECISIONS:
            raise ValueError(f"Unknown decision {decision!r}; expected APPROVE or DENY.")

        request = self.store.get("requests", request_id)
        actor = self.store.get("staff", actor_id)
        target = "DENIED" if decision == DENY else "APPROVED"
        if request.status != "PENDING":
            raise InvalidTransition(
                request.status,
                target,
                message=f"Request {request.pk} is {request.status}; only pending "
                "requests can be approved or denied.",
            )

        decided = {
            "decided_by": actor,
            "decided_at": timezone.now(),
            "decision_notes": reason.strip() if _has_text(reason) else None,
        }

        if decision == DENY:
            if not _has_text(reason):
                raise MissingReason("A reason is required to deny a request.")
            purpose = request.purpose or ""
            separator = "\n\n" if purpose else ""
            decided.update(
                status="DENIED",
                purpose=f"{purpose}{separator}Denial reason: {reason.strip()}",
            )
            request = self._claim(request, decided, "it was already decided.")
            logger.info("Request %s denied by %s", request.pk, actor)
            return request

        lines = self._load_items(request)
        if all(asset.is_consumable for asset, _ in lines):
            decided["status"] = "FULFILLED"
            # The claim comes first: a shortage rolls it back with the stock.
            with transaction.atomic():
                claimed = self._claim(request, decided, "it was already decided.")
                self._deduct_consumables(
                    lines, actor, reason or f"Distributed for request #{request.pk}"
                )
            logger.info("Consumable request %s approved and fulfilled", claimed.pk)
            return claimed

        decided["status"] = "APPROVED"
        with transaction.atomic():
            claimed = self._claim(request, decided, "it was already decided.")
            if get_setting("RESERVE_ON_APPROVE"):
                self._reserve(lines, actor, claimed)
        logger.info("Request %s approved by %s; awaiting issuance", claimed.pk, actor)
        return claimed

    def _reserve(self, lines, actor, request):
        for asset, _ in lines:
            if asset.is_consumable or asset.available_status != "AVAILABLE":
                continue
            self.lifecycle.transition_status(
                asset.pk, "RESERVED", actor.pk, note=f"Reserved for request #{request.pk}"
            )

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_assets(self, request_id, actor_id, per_asset_notes=None):
        """Hand over the items of an APPROVED request.

        *per_asset_notes* maps asset id to ``{"pre_condition", "accessories",
        "note"}``.  Consumable lines are deducted first, all-or-nothing.
        Returns ``{"issued": [...], "skipped": [...]}``.
        """
        per_asset_notes = per_asset_notes or {}
        request = self.store.get("requests", request_id)
        actor = self.store.get("staff", actor_id)
        if request.status != "APPROVED":
            raise InvalidTransition(
                request.status,
                "FULFILLED",
                message=f"Request {request.pk} is {request.status}; only approved "
                "requests can be issued.",
            )

        lines = self._load_items(request)
        consumable_lines = [(a, q) for a, q in lines if a.is_consumable]
        physical = [a for a, _ in lines if not a.is_consumable]

        with transaction.atomic():
            self._claim(request, {"status": "FULFILLED"}, "it was already issued.")
            result = self._hand_over(request, actor, consumable_lines, physical, per_asset_notes)
            if not result["issued"]:
                # Nothing changed hands: reopen the claim so issuance can be retried.
                self.store.update("requests", request.pk, {"status": "APPROVED"})
                logger.warning("Request %s: nothing could be issued", request.pk)
                return result

        logger.info(
            "Request %s fulfilled (%d issued, %d skipped)",
            request.pk,
            len(result["issued"]),
            len(result["skipped"]),
        )
        return result

    def _hand_over(self, request, actor, consumable_lines, physical, per_asset_notes):
        issued, skipped = [], []
        if consumable_lines:
            deducted = self._deduct_consumables(
                consumable_lines, actor, f"Distributed for request #{request.pk}"
            )
            issued.extend(c.pk for c in deducted)

        requester_id = request.requester_id
        for asset in physical:
            notes = per_asset_notes.get(asset.pk) or per_asset_notes.get(str(asset.pk)) or {}
            try:
                self.lifecycle.can_issue_asset(asset.pk, custodian_id=requester_id)
                with transaction.atomic():
                    self.lifecycle.issue(
                        asset.pk,
                        requester_id,
                        actor.pk,
                        note=f"Issued for request #{request.pk}: {request.purpose}",
                    )
                    self.store.create(
                        "issues",
                        {
                            "request": request,
                            "asset": asset,
                            "issued_by": actor,
                            "pre_condition": notes.get(
                                "pre_condition", asset.current_condition
                            ),
                            "accessories": list(notes.get("accessories", [])),
                            "issued_at": timezone.now(),
                            "due_at": request.expected_return_date,
                            "handover_note": notes.get("note"),
                        },
                    )
            except LifecycleError as exc:
                logger.warning(
                    "Skipping asset %s on request %s: %s", asset.pk, request.pk, exc.message
                )
                skipped.append(asset.pk)
                continue
            issued.append(asset.pk)
        return {"issued": issued, "skipped": skipped}

    def acknowledge_issue(self, issue_id, requester_id):
        issue = self.store.get("issues", issue_id)
        requester = self.store.get("staff", requester_id)
        if issue.request.requester_id != requester.pk:
            raise NotFound("issues", issue_id)
        return self.store.update("issues", issue.pk, {"acknowledged_by_requester": True})

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, request_id, requester_id, reason):
        request = self.store.get("requests", request_id)
        requester = self.store.get("staff", requester_id)
        if request.status not in CANCELLABLE_STATUSES:
            raise NotCancellable(
                f"Request {request.pk} is {request.status}; only pending or "
                "approved requests can be cancelled.",
                status=request.status,
            )
        if request.requester_id != requester.pk:
            raise NotCancellable(
                "Only the staff member who made a request can cancel it.",
                status=request.status,
            )
        if not _has_text(reason):
            raise MissingReason("A reason is required to cancel a request.")

        was_approved = request.status == "APPROVED"
        with transaction.atomic():
            try:
                request = self._claim(
                    request,
                    {
                        "status": "CANCELLED",
                        "decision_notes": reason.strip(),
                        "decided_at": timezone.now(),
                    },
                    "it can no longer be cancelled.",
                )
            except InvalidTransition as exc:
                raise NotCancellable(exc.message, status=exc.context["from_status"]) from None
            if was_approved and get_setting("RELEASE_ON_CANCEL"):
                self._release(request, requester)
        logger.info("Request %s cancelled by %s", request.pk, requester)
        return request

    def _release(self, request, actor):
        for asset, _ in self._load_items(request):
            if asset.is_consumable or asset.available_status != "RESERVED":
                continue
            self.lifecycle.transition_status(
                asset.pk,
                "AVAILABLE",
                actor.pk,
                note=f"Released after request #{request.pk} was cancelled",
            )
