"""Best-discount selection on integer minor currency units (cents).

Pure functions; no database access.  A discount is a dict shaped like the
storefront payload::

    {
        "type": "percentage" | "fixed",
        "value": 20,                      # percent, or cents for "fixed"
        "isAutomatic": True,
        "variantScope": {"type": "ALL" | "PARTIAL", "ids": ["444"]},
    }

Malformed input never raises: prices fall back to the regular price, savings
to zero and selections to ``None``.
"""

import logging
import math
import numbers

logger = logging.getLogger(__name__)

PERCENTAGE = "percentage"
FIXED = "fixed"

SCOPE_ALL = "ALL"
SCOPE_PARTIAL = "PARTIAL"


def is_finite_number(value):
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _round_half_up(value):
    return math.floor(value + 0.5)


def _nominal_value(discount):
    value = discount.get("value")
    return value if is_finite_number(value) else 0


def _discount_amount(regular_price_cents, discount):
    if discount.get("type") == PERCENTAGE:
        percentage = min(max(_nominal_value(discount), 0), 100)
        return math.floor(regular_price_cents * (percentage / 100))
    return min(max(_round_half_up(_nominal_value(discount)), 0), regular_price_cents)


def discounted_price(regular_price_cents, discount):
    """Price after applying *discount*, never below zero.

    Percentage rates are clamped to [0, 100] and the discount floored; fixed
    amounts are rounded and clamped to [0, regular price].
    """
    if not discount or not is_finite_number(regular_price_cents):
        return regular_price_cents
    try:
        price = regular_price_cents - _discount_amount(regular_price_cents, discount)
    except (TypeError, ValueError, AttributeError):
        logger.warning("Error calculating discounted price for %r", discount)
        return regular_price_cents
    if not math.isfinite(price):
        return regular_price_cents
    return max(0, price)


def actual_savings(regular_price_cents, discount):
    """Cents saved by *discount*; always >= 0."""
    if not discount or not is_finite_number(regular_price_cents):
        return 0
    try:
        return _discount_amount(regular_price_cents, discount)
    except (TypeError, ValueError, AttributeError):
        logger.warning("Error calculating savings for %r", discount)
        return 0


def is_eligible_for_variant(discount, current_variant_id):
    """Whether *discount* applies to the given variant.

    No scope (or ``ALL``) applies everywhere.  ``PARTIAL`` requires the
    variant id, compared as strings, to be listed.  Anything else excludes.
    """
    scope = discount.get("variantScope") if isinstance(discount, dict) else None
    if not scope or not scope.get("type"):
        return True
    if scope["type"] == SCOPE_ALL:
        return True
    if scope["type"] == SCOPE_PARTIAL and isinstance(scope.get("ids"), list):
        if current_variant_id is None:
            return False
        return str(current_variant_id) in {str(i) for i in scope["ids"]}
    return False


def find_best_discount(discounts, regular_price_cents, current_variant_id):
    """Pick the eligible discount with the greatest savings.

    Ties go to the higher nominal ``value``.

    Returns:
        dict with ``discount``, ``final_price`` and ``savings``, or ``None``.
    """
    best = None
    best_savings = -1
    best_value = -1
    for discount in discounts or []:
        if not isinstance(discount, dict):
            continue
        if not is_eligible_for_variant(discount, current_variant_id):
            continue
        savings = actual_savings(regular_price_cents, discount)
        value = _nominal_value(discount)
        if savings > best_savings or (savings == best_savings and value > best_value):
            best, best_savings, best_value = discount, savings, value

    if best is None:
        return None
    return {
        "discount": best,
        "final_price": discounted_price(regular_price_cents, best),
        "savings": best_savings,
    }


def find_best_discounts(discounts, regular_price_cents, current_variant_id):
    """Best automatic and best coupon discount, chosen independently."""
    discounts = [d for d in discounts or [] if isinstance(d, dict)]
    automatic = find_best_discount(
        [d for d in discounts if d.get("isAutomatic") is True],
        regular_price_cents,
        current_variant_id,
    )
    coupon = find_best_discount(
        [d for d in discounts if not d.get("isAutomatic")],
        regular_price_cents,
        current_variant_id,
    )
    return {"automatic": automatic, "coupon": coupon}


def _empty_resolution(base_price_cents=None):
    return {
        "automaticDiscount": None,
        "couponDiscount": None,
        "automaticEntry": None,
        "couponEntry": None,
        "basePriceCents": base_price_cents,
    }


def resolve_best_discounts(discounts, regular_price_cents, current_variant_id=None):
    """Select what to display for one product, with coupon suppression.

    Stacking is not modelled: when both an automatic and a coupon discount
    apply and the automatic one is at least as good (lower or equal final
    price, or greater or equal savings when a price is unavailable), the
    coupon is dropped.
    """
    if not isinstance(discounts, list) or not is_finite_number(regular_price_cents):
        return _empty_resolution()

    best = find_best_discounts(discounts, regular_price_cents, current_variant_id)
    automatic, coupon = best["automatic"], best["coupon"]

    if automatic and coupon:
        if automatic["final_price"] is not None and coupon["final_price"] is not None:
            automatic_is_better = automatic["final_price"] <= coupon["final_price"]
        else:
            automatic_is_better = automatic["savings"] >= coupon["savings"]
        if automatic_is_better:
            coupon = None

    resolution = _empty_resolution(regular_price_cents)
    if automatic:
        resolution["automaticDiscount"] = automatic["discount"]
        resolution["automaticEntry"] = {
            "finalPriceCents": automatic["final_price"],
            "regularPriceCents": regular_price_cents,
        }
    if coupon:
        resolution["couponDiscount"] = coupon["discount"]
        resolution["couponEntry"] = {
            "finalPriceCents": coupon["final_price"],
            "regularPriceCents": regular_price_cents,
        }
    return resolution


def filter_for_purchase(discounts, purchase_context=None, is_subscription=None):
    """Keep the discounts that apply to the shopper's purchase type.

    Subscription purchases keep only discounts that apply on subscription;
    one-time purchases drop discounts that explicitly exclude them.
    """
    wants_subscription = (
        purchase_context in ("subscription", "SUBSCRIPTION") or is_subscription is True
    )
    wants_one_time = purchase_context in ("one_time", "ONE_TIME")

    kept = []
    for discount in discounts or []:
        if not isinstance(discount, dict):
            continue
        if wants_subscription:
            if discount.get("appliesOnSubscription") is not True:
                continue
        elif wants_one_time and discount.get("appliesOnOneTimePurchase") is False:
            continue
        kept.append(discount)
    return kept


def normalize_discounts(discounts):
    """Coerce ``type`` to lower case, ``value`` to a number and ``isAutomatic`` to bool.

    Entries without a finite value or with a type other than percentage or
    fixed are dropped.
    """
    normalized = []
    for discount in discounts:
        kind = discount.get("type")
        kind = kind.lower() if isinstance(kind, str) else None
        if kind not in (PERCENTAGE, FIXED):
            continue
        value = discount.get("value")
        if not is_finite_number(value):
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(value):
                continue
        normalized.append(
            {
                **discount,
                "type": kind,
                "value": value,
                "isAutomatic": bool(discount.get("isAutomatic")),
            }
        )
    return normalized
