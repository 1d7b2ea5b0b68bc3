"""Application settings with defaults, read from ``settings.QUAESTOR``."""

from django.conf import settings

DEFAULTS = {
    # Optimistic-concurrency attempts for a single stock write.
    "STOCK_UPDATE_RETRIES": 3,
    # Move AVAILABLE assets to RESERVED when a request is approved.
    "RESERVE_ON_APPROVE": False,
    # Move RESERVED assets back to AVAILABLE when an approved request is cancelled.
    "RELEASE_ON_CANCEL": False,
    # Days past ``due_at`` before an issue counts as overdue.
    "OVERDUE_GRACE_DAYS": 0,
}


def get_setting(name):
    overrides = getattr(settings, "QUAESTOR", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
