"""
Views package for the application.

This package organizes views into logical modules:
- utils.py: Payload parsing, error mapping and serialisation helpers
- assets.py: Asset lifecycle and consumable stock endpoints
- requests.py: Request workflow endpoints
"""

# ── Assets ───────────────────────────────────────────────────────────────────
from .assets import (
    asset_adjust_stock,
    asset_change_condition,
    asset_change_status,
    asset_create,
    asset_details,
    asset_events,
    asset_issuable,
    asset_issue,
    asset_transfer_location,
    issue_return,
)

# ── Requests ─────────────────────────────────────────────────────────────────
from .requests import (
    issue_acknowledge,
    request_cancel,
    request_decide,
    request_details,
    request_issue,
    request_resubmit,
    request_submit,
)
