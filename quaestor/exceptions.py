"""
Typed errors raised by the lifecycle and workflow engines.

Every error carries a stable ``code`` (used in JSON responses), the HTTP
status the view layer should answer with, and a message that tells the
caller what to do next.  "Not found" and "invalid transition" are kept
apart on purpose: one means *pick another id*, the other *pick another
action*.
"""


class LifecycleError(Exception):
    """Base class for expected, caller-recoverable workflow failures."""

    code = "lifecycle_error"
    http_status = 400

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self):
        return {"error": self.code, "message": self.message, **self.context}


class NotFound(LifecycleError):
    code = "not_found"
    http_status = 404

    def __init__(self, collection, object_id):
        super().__init__(
            f"No {collection} record with id {object_id!r} exists in this "
            "organization. Check the id and try again.",
            collection=collection,
            id=object_id,
        )


class InvalidTransition(LifecycleError):
    code = "invalid_transition"
    http_status = 409

    def __init__(self, from_status, to_status, message=None):
        super().__init__(
            message
            or f"Cannot move from {from_status} to {to_status}. "
            "Choose an action allowed from the current state.",
            from_status=from_status,
            to_status=to_status,
        )


class NotIssuable(LifecycleError):
    code = "not_issuable"
    http_status = 409


class NegativeStock(LifecycleError):
    code = "negative_stock"
    http_status = 409

    def __init__(self, current_stock, delta):
        super().__init__(
            f"Adjusting stock by {delta} would leave {current_stock + delta} "
            f"units; only {current_stock} are on hand.",
            current_stock=current_stock,
            delta=delta,
        )


class NotAConsumable(LifecycleError):
    code = "not_a_consumable"
    http_status = 400

    def __init__(self, asset_id):
        super().__init__(
            f"Asset {asset_id} is not a consumable; stock can only be "
            "adjusted on consumable items.",
            id=asset_id,
        )


class InsufficientStock(LifecycleError):
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, shortages):
        lines = ", ".join(
            f"{item_id} (requested {wanted}, available {available})"
            for item_id, wanted, available in shortages
        )
        super().__init__(
            f"Not enough stock to approve this request: {lines}. "
            "Restock or reduce the requested quantities.",
            shortages=[
                {"id": item_id, "requested": wanted, "available": available}
                for item_id, wanted, available in shortages
            ],
        )


class MissingReason(LifecycleError):
    code = "missing_reason"
    http_status = 400


class NotCancellable(LifecycleError):
    code = "not_cancellable"
    http_status = 409


class InvalidRequestDates(LifecycleError):
    code = "invalid_request_dates"
    http_status = 400


class ConcurrentUpdate(LifecycleError):
    code = "concurrent_update"
    http_status = 409

    def __init__(self, collection, object_id, attempts):
        super().__init__(
            f"{collection} {object_id} kept changing underneath this update "
            f"({attempts} attempts). Reload and try again.",
            collection=collection,
            id=object_id,
        )
