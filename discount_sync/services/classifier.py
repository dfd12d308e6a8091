"""Decide the storefront status of a discount and persist its LiveDiscount row.

Rules are evaluated in strict priority order; the first match wins:

1. Upstream status EXPIRED or end date passed: both rows are deleted.
2. Not a product-class discount: NOT_SUPPORTED.
3. Buy X get Y: NOT_SUPPORTED.
4. Segmented customer selection: NOT_SUPPORTED.
5. Minimum cart requirement: NOT_SUPPORTED.
6. Plan tier gates (subscription, variant, fixed amount): UPGRADE_REQUIRED.
7. Otherwise SCHEDULED, LIVE or HIDDEN from the temporal window.
8. The :class:`ClassificationMode` overlay on top of the base status.
"""

import enum
import logging

from django.db import transaction
from django.utils import timezone

from ..models import PRESERVABLE_STATUSES, Discount, LiveDiscount, Shop
from . import billing
from .cleanup import sweep_expired
from .results import ErrorKind, Result
from .shapes import (
    ACTIVE_STATUS,
    FixedAmountValue,
    compute_discount_type,
    get_discount_class,
    get_temporal_bounds,
    has_minimum_requirement,
    is_all_customers_selection,
    is_bxgy_discount,
    is_expired_status,
    is_past_end_date,
    is_product_discount,
    parse_value,
)
from .tier_gate import evaluate_tier_gating

logger = logging.getLogger(__name__)

Reason = LiveDiscount.ExclusionReason
Status = LiveDiscount.Status


class ClassificationMode(enum.Enum):
    """How an existing LiveDiscount status is treated on reclassification.

    ``ROUTINE`` keeps a LIVE / HIDDEN / SCHEDULED status chosen earlier (by
    the merchant or a previous run) and starts brand-new rows HIDDEN.
    ``FORCE_RECOMPUTE`` takes the freshly computed status, subject to the
    plan's live quota when a row newly becomes LIVE.
    """

    ROUTINE = "routine"
    FORCE_RECOMPUTE = "force_recompute"


EXCLUSION_DETAILS = {
    Reason.NOT_PRODUCT_DISCOUNT: (
        "This {discount_class} type cannot be displayed on product pages. "
        "Only product-level discounts are supported."
    ),
    Reason.BXGY_DISCOUNT: (
        "Buy X Get Y discounts cannot be displayed on product pages. "
        "These discounts require cart-level calculations."
    ),
    Reason.CUSTOMER_SEGMENT: (
        "This discount is limited to specific customer groups and cannot be "
        "displayed publicly on your storefront."
    ),
    Reason.MIN_REQUIREMENT: (
        "This discount requires a minimum cart value or quantity, which cannot "
        "be verified on the product page."
    ),
    Reason.SUBSCRIPTION_TIER: (
        "Subscription discounts require the Advanced plan. "
        "Your current plan is {tier}."
    ),
    Reason.VARIANT_TIER: (
        "Variant-specific discounts require the Advanced plan. "
        "Your current plan is {tier}."
    ),
    Reason.FIXED_AMOUNT_TIER: (
        "Fixed-amount discounts require the Basic plan or higher. "
        "Your current plan is {tier}."
    ),
    Reason.TIER_CHECK_FAILED: (
        "Unable to verify plan eligibility. "
        "Please try refreshing or contact support."
    ),
}


def remove_discount_everywhere(gid, shop_domain):
    """Delete the Discount (with its junctions) and LiveDiscount rows for *gid*."""
    with transaction.atomic():
        LiveDiscount.objects.filter(gid=gid, shop__domain=shop_domain).delete()
        Discount.objects.filter(gid=gid, shop__domain=shop_domain).delete()


def _exclusion(discount_data, shop_domain):
    """Return ``(status, reason, details)`` for rules 2 to 6, or ``None``."""
    if not is_product_discount(discount_data):
        discount_class = (get_discount_class(discount_data) or "discount").lower()
        return (
            Status.NOT_SUPPORTED,
            Reason.NOT_PRODUCT_DISCOUNT,
            EXCLUSION_DETAILS[Reason.NOT_PRODUCT_DISCOUNT].format(
                discount_class=discount_class
            ),
        )
    if is_bxgy_discount(discount_data):
        return Status.NOT_SUPPORTED, Reason.BXGY_DISCOUNT, EXCLUSION_DETAILS[Reason.BXGY_DISCOUNT]
    if not is_all_customers_selection(discount_data):
        return (
            Status.NOT_SUPPORTED,
            Reason.CUSTOMER_SEGMENT,
            EXCLUSION_DETAILS[Reason.CUSTOMER_SEGMENT],
        )
    if has_minimum_requirement(discount_data):
        return (
            Status.NOT_SUPPORTED,
            Reason.MIN_REQUIREMENT,
            EXCLUSION_DETAILS[Reason.MIN_REQUIREMENT],
        )

    try:
        gating = evaluate_tier_gating(discount_data, shop_domain)
    except Exception:
        logger.exception("Tier gating check failed for %s (shop=%s)", discount_data.get("title"), shop_domain)
        return (
            Status.NOT_SUPPORTED,
            Reason.TIER_CHECK_FAILED,
            EXCLUSION_DETAILS[Reason.TIER_CHECK_FAILED],
        )

    reason = None
    if gating.applies_on_subscription and not gating.is_advanced:
        reason = Reason.SUBSCRIPTION_TIER
    elif gating.has_variant_targets and not gating.is_advanced:
        reason = Reason.VARIANT_TIER
    elif isinstance(parse_value(discount_data), FixedAmountValue) and not gating.is_basic_or_higher:
        reason = Reason.FIXED_AMOUNT_TIER
    if reason is None:
        return None
    return Status.UPGRADE_REQUIRED, reason, EXCLUSION_DETAILS[reason].format(tier=gating.tier)


def base_status(discount_data, starts_at, ends_at, now):
    if now < starts_at:
        return Status.SCHEDULED
    if discount_data.get("status") == ACTIVE_STATUS and (ends_at is None or now <= ends_at):
        return Status.LIVE
    return Status.HIDDEN


class StatusClassifier:
    """Classifies discounts under a fixed :class:`ClassificationMode`.

    Example::

        classifier = StatusClassifier(ClassificationMode.ROUTINE)
        result = classifier.classify(gid, discount_data, "shop.myshopify.com")
        if result:
            print(result.value)  # "HIDDEN", or None when the discount was deleted
    """

    def __init__(self, mode=ClassificationMode.ROUTINE):
        self.mode = mode

    def classify(self, gid, discount_data, shop_domain):
        """Compute and persist the LiveDiscount status for one discount.

        Never raises; failures come back as a falsy
        :class:`~discount_sync.services.results.Result`.  A successful
        result carries the persisted status, or ``None`` when the discount
        had expired and both rows were removed.
        """
        if not gid or not discount_data:
            return Result.failure(ErrorKind.INVALID_INPUT, "missing gid or payload")

        try:
            starts_at, ends_at = get_temporal_bounds(discount_data)
            now = timezone.now()

            if is_expired_status(discount_data.get("status")) or is_past_end_date(ends_at, now):
                remove_discount_everywhere(gid, shop_domain)
                logger.info("Removed expired discount %s (shop=%s)", gid, shop_domain)
                return Result.success(None)

            shop = Shop.objects.filter(domain=shop_domain).first()
            if shop is None:
                logger.error("Shop not found for LiveDiscount upsert: %s (%s)", shop_domain, gid)
                return Result.failure(ErrorKind.NOT_FOUND, f"unknown shop {shop_domain}")

            exclusion = _exclusion(discount_data, shop_domain)
            if exclusion is not None:
                status, reason, details = exclusion
            else:
                reason = details = None
                status = self._apply_mode(
                    gid, shop_domain, base_status(discount_data, starts_at, ends_at, now)
                )

            LiveDiscount.objects.update_or_create(
                gid=gid,
                defaults={
                    "shop": shop,
                    "summary": discount_data.get("summary") or "",
                    "discount_type": compute_discount_type(gid),
                    "status": status,
                    "starts_at": starts_at,
                    "ends_at": ends_at,
                    "exclusion_reason": reason,
                    "exclusion_details": details,
                },
            )
        except Exception as exc:
            logger.exception("Error updating live discount data for %s (shop=%s)", gid, shop_domain)
            return Result.failure(ErrorKind.PERMANENT, str(exc))

        sweep_expired(shop_domain)
        return Result.success(status)

    def _apply_mode(self, gid, shop_domain, status):
        existing = (
            LiveDiscount.objects.filter(gid=gid)
            .values_list("status", flat=True)
            .first()
        )
        if self.mode is ClassificationMode.ROUTINE:
            if existing is None:
                return Status.HIDDEN
            if existing in PRESERVABLE_STATUSES:
                return existing
            # Rows leaving an excluded status take the computed status without a quota check.
            return status

        if status == Status.LIVE and existing != Status.LIVE:
            if not billing.can_create_live(shop_domain):
                logger.info(
                    "Live quota reached for %s; %s starts hidden", shop_domain, gid
                )
                return Status.HIDDEN
        return status


def set_live_status(gid, shop_domain, status):
    """Merchant toggle between LIVE and HIDDEN.

    Only HIDDEN / SCHEDULED rows can be made LIVE, subject to the plan's live
    quota; only LIVE rows can be hidden.  Excluded rows are never toggled.
    """
    if status not in (Status.LIVE, Status.HIDDEN):
        return Result.failure(ErrorKind.INVALID_INPUT, f"cannot set status {status}")

    row = LiveDiscount.objects.filter(gid=gid, shop__domain=shop_domain).first()
    if row is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"no live discount {gid}")

    if status == Status.LIVE:
        if row.status == Status.LIVE:
            return Result.success(row.status)
        if row.status not in (Status.HIDDEN, Status.SCHEDULED):
            return Result.failure(
                ErrorKind.INVALID_INPUT, f"{gid} is {row.status} and cannot go live"
            )
        if not billing.can_create_live(shop_domain):
            return Result.failure(
                ErrorKind.PERMANENT, "activating this discount would exceed the plan limit"
            )
    elif row.status != Status.LIVE:
        return Result.success(row.status)

    row.status = status
    row.save(update_fields=["status", "updated_at"])
    logger.info("Set %s to %s (shop=%s)", gid, status, shop_domain)
    return Result.success(row.status)
