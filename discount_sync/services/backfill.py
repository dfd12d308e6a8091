"""Repair missing LiveDiscount rows from already-stored Discount data.

Discount and LiveDiscount are normally written together, but a crash between
the two (or a partially processed webhook) leaves a Discount without its
storefront projection.  ``reconcile`` finds those gaps and rebuilds the
projection from stored fields only, without calling Shopify.
"""

import logging

from django.db.models import Prefetch

from ..models import Discount, DiscountProduct, DiscountVariant, LiveDiscount
from .classifier import ClassificationMode, StatusClassifier

logger = logging.getLogger(__name__)


def build_discount_data_from_stored(discount):
    """Rebuild the subset of the Shopify payload the classifier reads.

    One product and one variant GID are enough to signal that targets exist;
    full resolution is not needed to classify.
    """
    item = {}
    products = list(discount.products.all()[:1])
    variants = list(discount.variants.all()[:1])
    if products:
        item["products"] = {"nodes": [{"id": products[0].product_gid}]}
    if variants:
        item["productVariants"] = {"nodes": [{"id": variants[0].variant_gid}]}

    customer_gets = {
        "appliesOnOneTimePurchase": bool(discount.applies_on_one_time_purchase),
        "appliesOnSubscription": bool(discount.applies_on_subscription),
        "items": [item] if item else [],
    }
    if discount.value_type == Discount.ValueType.AMOUNT and discount.amount is not None:
        customer_gets["value"] = {
            "amount": {
                "amount": str(discount.amount),
                "currencyCode": discount.currency_code or "USD",
            }
        }
    elif discount.value_type == Discount.ValueType.PERCENTAGE and discount.percentage is not None:
        customer_gets["value"] = {"percentage": discount.percentage}

    return {
        "title": discount.title,
        "status": discount.status,
        "startsAt": discount.starts_at,
        "endsAt": discount.ends_at,
        "summary": discount.summary,
        "discountClass": discount.discount_class,
        "context": {
            "__typename": "DiscountBuyerSelectionAll"
            if discount.customer_selection_all
            else "DiscountCustomerSegments"
        },
        "minimumRequirement": discount.minimum_requirement,
        "customerGets": customer_gets,
    }


def reconcile(shop_domain):
    """Backfill a LiveDiscount for every Discount of the shop that lacks one.

    Backfilled rows go through :class:`ClassificationMode.ROUTINE`, so they
    start HIDDEN rather than silently going live.

    Returns:
        dict: ``{"backfilled": n}``
    """
    try:
        live_gids = LiveDiscount.objects.filter(shop__domain=shop_domain).values("gid")
        missing = list(
            Discount.objects.filter(shop__domain=shop_domain)
            .exclude(gid__in=live_gids)
            .prefetch_related(
                Prefetch("products", queryset=DiscountProduct.objects.order_by("id")),
                Prefetch("variants", queryset=DiscountVariant.objects.order_by("id")),
            )
        )
    except Exception:
        logger.exception("Error looking up discounts to backfill (shop=%s)", shop_domain)
        return {"backfilled": 0}

    if not missing:
        return {"backfilled": 0}

    classifier = StatusClassifier(ClassificationMode.ROUTINE)
    backfilled = 0
    for stored in missing:
        try:
            result = classifier.classify(
                stored.gid, build_discount_data_from_stored(stored), shop_domain
            )
        except Exception:
            logger.exception("Failed to backfill live discount %s", stored.gid)
            continue
        # A None status means the stored discount had expired and was removed.
        if result and result.value is not None:
            backfilled += 1

    logger.debug(
        "Backfill completed (shop=%s, backfilled=%d, total=%d)",
        shop_domain,
        backfilled,
        len(missing),
    )
    return {"backfilled": backfilled}


def needs_backfill(shop_domain):
    """``True`` when the shop has more Discount rows than LiveDiscount rows."""
    return (
        Discount.objects.filter(shop__domain=shop_domain).count()
        > LiveDiscount.objects.filter(shop__domain=shop_domain).count()
    )
