"""Utility helpers for the discount sync app."""

import json
import logging
import re

logger = logging.getLogger(__name__)

_GID_RE = re.compile(r"gid://shopify/([^/]+)/(\d+)")


def to_shopify_gid(resource_type, numeric_id):
    """Convert a numeric Shopify ID to the Global ID (GID) format.

    Examples::

        >>> to_shopify_gid("Product", "9154924904679")
        'gid://shopify/Product/9154924904679'
        >>> to_shopify_gid("Collection", 412)
        'gid://shopify/Collection/412'
    """
    return f"gid://shopify/{resource_type}/{numeric_id}"


def parse_gid(gid):
    """Split a GID into its resource type and numeric ID.

    Returns:
        dict with ``type``, ``id`` and ``gid`` keys, or ``None`` when *gid*
        is not a string of the form ``gid://shopify/<Type>/<digits>``.
    """
    if not gid or not isinstance(gid, str):
        return None
    match = _GID_RE.search(gid)
    if not match:
        return None
    return {"type": match.group(1), "id": match.group(2), "gid": gid}


def extract_id(gid):
    """Return the numeric suffix of a GID as a string, or ``None``.

    ``"gid://shopify/ProductVariant/444"`` → ``"444"``
    """
    parsed = parse_gid(gid)
    return parsed["id"] if parsed else None


def ensure_list(value):
    """Wrap scalars in a list; ``None`` becomes an empty list."""
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def safe_json_list(value):
    """Coerce a stored JSON column (list or serialized string) to a list."""
    if isinstance(value, list):
        return value
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        logger.error("Failed to parse stored JSON list: %r", value)
        return []
    return parsed if isinstance(parsed, list) else []
