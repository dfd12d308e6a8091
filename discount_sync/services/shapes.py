"""Typed views over the raw Shopify discount payload.

Shopify returns discounts as loosely-shaped GraphQL unions: the value may carry
``percentage`` or ``amount``, the item scope may carry ``collections``,
``products``, ``productVariants`` or nothing at all.  Everything downstream
(storage, tier gating, classification) reads the payload through the helpers
in this module so the duck-typing lives in one place.
"""

import dataclasses
import datetime
import decimal
import enum

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ..utils import ensure_list

PRODUCT_CLASS = "PRODUCT"
EXPIRED_STATUS = "EXPIRED"
ACTIVE_STATUS = "ACTIVE"


# ---------------------------------------------------------------------------
# Value shape
# ---------------------------------------------------------------------------

class ValueKind(enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "AMOUNT"


@dataclasses.dataclass(frozen=True)
class PercentageValue:
    rate: float
    kind: ValueKind = ValueKind.PERCENTAGE


@dataclasses.dataclass(frozen=True)
class FixedAmountValue:
    amount: decimal.Decimal
    currency_code: str = None
    kind: ValueKind = ValueKind.FIXED_AMOUNT


def parse_value(discount_data):
    """Return a :class:`PercentageValue`, :class:`FixedAmountValue` or ``None``."""
    value = (discount_data.get("customerGets") or {}).get("value") or {}
    if value.get("percentage") is not None:
        return PercentageValue(rate=float(value["percentage"]))
    amount = value.get("amount")
    if amount:
        try:
            parsed = decimal.Decimal(str(amount.get("amount")))
        except (decimal.InvalidOperation, TypeError):
            return None
        return FixedAmountValue(
            amount=parsed, currency_code=amount.get("currencyCode")
        )
    return None


# ---------------------------------------------------------------------------
# Item scope
# ---------------------------------------------------------------------------

class ScopeKind(enum.Enum):
    ALL = "ALL"
    PRODUCTS = "PRODUCTS"
    VARIANTS = "VARIANTS"
    COLLECTIONS = "COLLECTIONS"


@dataclasses.dataclass(frozen=True)
class ScopeEntry:
    kind: ScopeKind
    ids: tuple = ()


def _node_ids(connection):
    if not connection:
        return ()
    nodes = connection.get("nodes")
    if nodes is None:
        nodes = [edge.get("node") for edge in connection.get("edges", [])]
    return tuple(node["id"] for node in nodes if node and node.get("id"))


def get_items(discount_data):
    """Return ``customerGets.items`` as a list (empty when absent)."""
    customer_gets = discount_data.get("customerGets") or {}
    return [item for item in ensure_list(customer_gets.get("items")) if item]


def parse_scope(discount_data):
    """Flatten ``customerGets.items`` into a list of :class:`ScopeEntry`.

    An item that matched neither ``DiscountCollections`` nor
    ``DiscountProducts`` (Shopify's ``AllDiscountItems``) yields an ``ALL``
    entry.
    """
    entries = []
    for item in get_items(discount_data):
        matched = False
        if "collections" in item:
            matched = True
            entries.append(
                ScopeEntry(ScopeKind.COLLECTIONS, _node_ids(item["collections"]))
            )
        if "products" in item:
            matched = True
            entries.append(
                ScopeEntry(ScopeKind.PRODUCTS, _node_ids(item["products"]))
            )
        if "productVariants" in item:
            matched = True
            entries.append(
                ScopeEntry(ScopeKind.VARIANTS, _node_ids(item["productVariants"]))
            )
        if not matched:
            entries.append(ScopeEntry(ScopeKind.ALL))
    return entries


def has_variant_targets(discount_data):
    return any(
        entry.kind is ScopeKind.VARIANTS and entry.ids
        for entry in parse_scope(discount_data)
    )


def compute_target_type(discount_data):
    """Classify the scope as ``COLLECTION``, ``PRODUCT`` or ``UNKNOWN``."""
    kinds = {entry.kind for entry in parse_scope(discount_data)}
    if ScopeKind.COLLECTIONS in kinds:
        return "COLLECTION"
    if ScopeKind.PRODUCTS in kinds or ScopeKind.VARIANTS in kinds:
        return "PRODUCT"
    return "UNKNOWN"


# ---------------------------------------------------------------------------
# Discount class, selection and requirements
# ---------------------------------------------------------------------------

def get_discount_class(discount_data):
    """Return ``discountClass`` or the first of ``discountClasses``."""
    if not discount_data:
        return None
    discount_class = discount_data.get("discountClass")
    if isinstance(discount_class, str) and discount_class:
        return discount_class
    classes = discount_data.get("discountClasses")
    if isinstance(classes, list) and classes:
        first = classes[0]
        if isinstance(first, str) and first:
            return first
    return None


def is_product_discount(discount_data):
    discount_class = get_discount_class(discount_data)
    return isinstance(discount_class, str) and discount_class.upper() == PRODUCT_CLASS


def is_bxgy_discount(discount_data):
    return "Bxgy" in (discount_data.get("__typename") or "")


def is_all_customers_selection(discount_data):
    """``True`` unless the buyer context names a segment or customer list."""
    selection = discount_data.get("context") or discount_data.get("customerSelection")
    typename = selection.get("__typename") if isinstance(selection, dict) else None
    if not isinstance(typename, str) or not typename:
        return True
    return "all" in typename.lower()


def has_minimum_requirement(discount_data):
    requirement = discount_data.get("minimumRequirement")
    if isinstance(requirement, dict):
        return any(requirement.values()) or "__typename" in requirement
    return bool(requirement)


def applies_on_subscription(discount_data):
    return bool((discount_data.get("customerGets") or {}).get("appliesOnSubscription"))


def applies_on_one_time_purchase(discount_data):
    return bool(
        (discount_data.get("customerGets") or {}).get("appliesOnOneTimePurchase")
    )


def compute_discount_type(gid):
    """Code discounts live under ``DiscountCodeNode`` GIDs, the rest are automatic."""
    return "CODE" if "DiscountCodeNode" in (gid or "") else "AUTO"


def get_codes(discount_data):
    codes = discount_data.get("codes") or {}
    return [node["code"] for node in codes.get("nodes", []) if node and node.get("code")]


# ---------------------------------------------------------------------------
# Temporal bounds
# ---------------------------------------------------------------------------

def _coerce_datetime(value):
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = parse_datetime(value)
        except ValueError:
            parsed = None
    else:
        parsed = None
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, datetime.timezone.utc)
    return parsed


def get_temporal_bounds(discount_data):
    """Return ``(starts_at, ends_at)``; a missing or invalid start means now."""
    starts_at = _coerce_datetime(discount_data.get("startsAt")) or timezone.now()
    ends_at = _coerce_datetime(discount_data.get("endsAt"))
    return starts_at, ends_at


def is_expired_status(status):
    return status == EXPIRED_STATUS


def is_past_end_date(ends_at, now=None):
    if ends_at is None:
        return False
    return (now or timezone.now()) > ends_at
