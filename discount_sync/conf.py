"""Tunable limits for the discount sync pipeline.

Defaults can be overridden per deployment through a ``DISCOUNT_SYNC`` dict in
Django settings, e.g.::

    DISCOUNT_SYNC = {
        "MAX_RETRIES": 5,
        "MAX_ITEMS": 20000,
    }

Components receive a :class:`SyncLimits` at construction time instead of
reading module-level constants, so tests can pass tiny caps.
"""

import dataclasses

from django.conf import settings

DEFAULT_API_VERSION = "2025-01"


@dataclasses.dataclass(frozen=True)
class SyncLimits:
    max_retries: int = 3
    throttle_threshold: int = 100
    default_restore_rate: float = 50.0
    base_delay: float = 0.5
    max_delay: float = 10.0
    max_items: int = 10000
    discount_page_size: int = 100
    catalog_page_size: int = 250
    code_page_size: int = 100
    request_timeout: int = 30
    api_version: str = DEFAULT_API_VERSION


_SETTING_KEYS = {
    "MAX_RETRIES": "max_retries",
    "THROTTLE_THRESHOLD": "throttle_threshold",
    "DEFAULT_RESTORE_RATE": "default_restore_rate",
    "BASE_DELAY": "base_delay",
    "MAX_DELAY": "max_delay",
    "MAX_ITEMS": "max_items",
    "DISCOUNT_PAGE_SIZE": "discount_page_size",
    "CATALOG_PAGE_SIZE": "catalog_page_size",
    "CODE_PAGE_SIZE": "code_page_size",
    "REQUEST_TIMEOUT": "request_timeout",
    "API_VERSION": "api_version",
}


def get_limits(**overrides):
    """Build :class:`SyncLimits` from ``settings.DISCOUNT_SYNC`` plus *overrides*.

    Unknown keys in the settings dict are ignored.
    """
    configured = getattr(settings, "DISCOUNT_SYNC", None) or {}
    values = {
        field: configured[key]
        for key, field in _SETTING_KEYS.items()
        if key in configured
    }
    values.update(overrides)
    return SyncLimits(**values)
