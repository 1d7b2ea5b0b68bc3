"""
Asset tag generation.

Tags follow the ``ORG-TYPE-NNN`` layout (e.g. ``RETC-LAPTOP-001``).  The
TYPE segment is resolved from ``tag_prefixes.toml`` in the project root:

    Organization category override → global category code → built-in code

Usage::

    from quaestor.tagging import generate_asset_tag

    tag = generate_asset_tag(organization=org, category="IT_EQUIPMENT")
"""

import logging
import re
import time
import tomllib
from pathlib import Path

from django.conf import settings as django_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Built-in fallbacks (used when the config file is missing or incomplete)
# ---------------------------------------------------------------------------
_FALLBACK_CATEGORY_CODES = {
    "IT_EQUIPMENT": "LAPTOP",
    "NETWORK_HARDWARE": "NET",
    "OFFICE_FURNITURE": "FURN",
    "VEHICLE": "VEH",
    "POWER_ASSET": "PWR",
    "TOOLS": "TOOL",
    "HEAVY_MACHINERY": "MACH",
    "LAB_EQUIPMENT": "LAB",
    "SAFETY_EQUIPMENT": "SAFE",
    "AV_EQUIPMENT": "AV",
    "SOFTWARE_LICENSE": "SW",
    "CONSUMABLE": "CONS",
    "BUILDING_INFRA": "BLD",
}
_FALLBACK_TAG_SETTINGS = {
    "sequence_digits": 3,
    "separator": "-",
}

# ---------------------------------------------------------------------------
# Config loading & caching
# ---------------------------------------------------------------------------
_config_cache: dict | None = None
_config_mtime: float = 0.0


def _config_path() -> Path:
    return Path(django_settings.BASE_DIR) / "tag_prefixes.toml"


def load_config(*, force_reload: bool = False) -> dict:
    """Load and cache ``tag_prefixes.toml``.

    The file's mtime is checked on every call so edits take effect without
    restarting the server.
    """
    global _config_cache, _config_mtime

    path = _config_path()

    if not path.exists():
        logger.debug("Tag config file not found at %s; using built-in fallbacks.", path)
        _config_cache = {}
        _config_mtime = 0.0
        return _config_cache

    try:
        current_mtime = path.stat().st_mtime
    except OSError:
        current_mtime = 0.0

    if _config_cache is not None and not force_reload and current_mtime == _config_mtime:
        return _config_cache

    try:
        with open(path, "rb") as fh:
            _config_cache = tomllib.load(fh)
        _config_mtime = current_mtime
        logger.info("Loaded tag prefix config from %s", path)
    except Exception:
        logger.exception("Failed to parse %s; using built-in fallbacks.", path)
        _config_cache = {}
        _config_mtime = 0.0

    return _config_cache


def clear_config_cache() -> None:
    """Reset the cached config.  Mainly useful in tests."""
    global _config_cache, _config_mtime
    _config_cache = None
    _config_mtime = 0.0


def get_tag_settings() -> dict:
    """Return the ``[tag_settings]`` section merged with fallback defaults."""
    section = load_config().get("tag_settings", {})
    return {
        "sequence_digits": section.get(
            "sequence_digits", _FALLBACK_TAG_SETTINGS["sequence_digits"]
        ),
        "separator": section.get("separator", _FALLBACK_TAG_SETTINGS["separator"]),
    }


# ---------------------------------------------------------------------------
# Segment resolution
# ---------------------------------------------------------------------------


def slug(value, max_len=8) -> str:
    """Upper-case alphanumerics of *value*, truncated to *max_len*."""
    if not value:
        return ""
    return re.sub(r"[^A-Z0-9]", "", str(value).upper())[:max_len]


def resolve_type_code(category: str | None, *, org_code: str | None = None, name: str = "") -> str:
    """Resolve the TYPE segment for *category*.

    Resolution order (most specific wins):

    1. ``[organizations.<org_code>.categories]``
    2. ``[categories]``
    3. Built-in category codes
    4. Slug of the category, then of the asset name, then ``AST``
    """
    config = load_config()
    code = None

    if category:
        code = config.get("categories", {}).get(category) or _FALLBACK_CATEGORY_CODES.get(
            category
        )
        if org_code:
            org_section = config.get("organizations", {}).get(org_code, {})
            code = org_section.get("categories", {}).get(category, code)

    return code or slug(category, 6) or slug(name, 6) or "AST"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def generate_asset_tag(*, organization=None, category=None, name="") -> str:
    """Generate the next unique asset tag for *organization* and *category*.

    Scans existing tags under the resolved prefix and returns the next
    sequence number.
    """
    from quaestor.models import Asset  # noqa: avoid circular import

    org_code = getattr(organization, "code", None)
    tag_settings = get_tag_settings()
    separator = tag_settings["separator"]
    digits = tag_settings["sequence_digits"]

    org_segment = slug(org_code, 4) or "ORG"
    type_segment = resolve_type_code(category, org_code=org_code, name=name)
    full_prefix = f"{org_segment}{separator}{type_segment}{separator}"

    existing_tags = list(
        Asset.objects.filter(asset_tag__startswith=full_prefix)
        .order_by("-asset_tag")
        .values_list("asset_tag", flat=True)[:100]
    )

    max_seq = 0
    prefix_len = len(full_prefix)
    for tag in existing_tags:
        try:
            max_seq = max(max_seq, int(tag[prefix_len:]))
        except ValueError:
            continue

    for attempt in range(500):
        candidate = f"{full_prefix}{max_seq + attempt + 1:0{digits}d}"
        if not Asset.objects.filter(asset_tag=candidate).exists():
            return candidate

    fallback = f"{full_prefix}{int(time.time())}"
    logger.warning(
        "Exhausted 500 sequential candidates for prefix '%s'; "
        "falling back to timestamp-based tag: %s",
        full_prefix,
        fallback,
    )
    return fallback


def generate_asset_tag_for_instance(asset) -> str:
    """Generate a tag from an unsaved ``Asset``'s organization, category and name."""
    return generate_asset_tag(
        organization=getattr(asset, "organization", None),
        category=asset.category or ("CONSUMABLE" if asset.is_consumable else None),
        name=asset.name,
    )
