"""Read side of the plan tier record: tier lookup, live quota and upgrades.

Subscription bookkeeping itself (charges, trials, plan selection) happens
elsewhere; this module only keeps ``Shop.tier`` / ``live_discount_limit``
consistent and answers the questions the classifier asks.
"""

import logging

from django.db import transaction
from django.utils import timezone

from ..models import Discount, LiveDiscount, Shop

logger = logging.getLogger(__name__)

TIER_CONFIG = {
    Shop.Tier.FREE: {"name": "Free", "live_discount_limit": 1},
    Shop.Tier.BASIC: {"name": "Basic", "live_discount_limit": 3},
    Shop.Tier.ADVANCED: {"name": "Advanced", "live_discount_limit": None},
}

TIER_ORDER = [Shop.Tier.FREE, Shop.Tier.BASIC, Shop.Tier.ADVANCED]

# Exclusion reasons that stop applying once the shop reaches the given tier.
UPGRADE_ELIGIBLE_REASONS = {
    Shop.Tier.FREE: [],
    Shop.Tier.BASIC: [LiveDiscount.ExclusionReason.FIXED_AMOUNT_TIER],
    Shop.Tier.ADVANCED: [
        LiveDiscount.ExclusionReason.SUBSCRIPTION_TIER,
        LiveDiscount.ExclusionReason.VARIANT_TIER,
        LiveDiscount.ExclusionReason.FIXED_AMOUNT_TIER,
    ],
}


def get_effective_tier(shop):
    """Return the shop's tier, falling back to FREE for unknown values."""
    tier = getattr(shop, "tier", None)
    return tier if tier in TIER_CONFIG else Shop.Tier.FREE


def get_live_discount_limit(tier):
    """``None`` means unlimited."""
    return TIER_CONFIG.get(tier, TIER_CONFIG[Shop.Tier.FREE])["live_discount_limit"]


def tier_from_plan_name(plan_name):
    """Map a Shopify app subscription plan name onto a tier key."""
    normalized = (plan_name or "").strip().upper()
    for tier in reversed(TIER_ORDER):
        if tier in normalized:
            return tier
    return Shop.Tier.FREE


def apply_pending_tier_if_due(shop, now=None):
    """Apply a scheduled downgrade once its effective date has passed."""
    if not shop.pending_tier or not shop.pending_tier_effective_at:
        return shop
    if shop.pending_tier_effective_at > (now or timezone.now()):
        return shop

    logger.info(
        "Applying pending tier %s for %s (was %s)",
        shop.pending_tier,
        shop.domain,
        shop.tier,
    )
    shop.tier = shop.pending_tier
    shop.live_discount_limit = get_live_discount_limit(shop.tier)
    shop.pending_tier = None
    shop.pending_tier_effective_at = None
    shop.save(
        update_fields=[
            "tier",
            "live_discount_limit",
            "pending_tier",
            "pending_tier_effective_at",
            "updated_at",
        ]
    )
    return shop


def get_or_create_shop(shop_domain):
    """Load the shop's tier record, creating a FREE one on first sight."""
    shop, created = Shop.objects.get_or_create(
        domain=shop_domain,
        defaults={
            "tier": Shop.Tier.FREE,
            "live_discount_limit": get_live_discount_limit(Shop.Tier.FREE),
        },
    )
    if created:
        logger.info("Created tier record for %s", shop_domain)
    return apply_pending_tier_if_due(shop)


def count_live(shop):
    return LiveDiscount.objects.filter(shop=shop, status=LiveDiscount.Status.LIVE).count()


def enforce_live_limit(shop):
    """Hide every LIVE discount when the count exceeds the plan limit.

    Returns:
        int: the LIVE count after enforcement.
    """
    limit = get_live_discount_limit(get_effective_tier(shop))
    live_count = count_live(shop)
    if limit is None or live_count <= limit:
        return live_count

    with transaction.atomic():
        LiveDiscount.objects.filter(shop=shop, status=LiveDiscount.Status.LIVE).update(
            status=LiveDiscount.Status.HIDDEN, updated_at=timezone.now()
        )
    logger.warning(
        "Live discount count (%d) exceeded limit (%d) for %s; all discounts hidden",
        live_count,
        limit,
        shop.domain,
    )
    return 0


def get_tier(shop_domain):
    """Return ``{"tier", "quota", "current_live"}`` for the shop."""
    shop = get_or_create_shop(shop_domain)
    tier = get_effective_tier(shop)
    return {
        "tier": tier,
        "quota": get_live_discount_limit(tier),
        "current_live": count_live(shop),
    }


def can_create_live(shop_domain):
    """``True`` when one more discount may go LIVE under the shop's plan.

    Errors default to allowing.
    """
    try:
        shop = get_or_create_shop(shop_domain)
        limit = get_live_discount_limit(get_effective_tier(shop))
        if limit is None:
            return True
        return enforce_live_limit(shop) < limit
    except Exception:
        logger.exception("Error checking live discount quota for %s", shop_domain)
        return True


def refresh_upgrade_required(shop, tier=None):
    """Release discounts gated by reasons the shop's tier now unlocks.

    Released rows become SCHEDULED (start in the future) or HIDDEN with their
    exclusion cleared; the merchant decides when they go LIVE.

    Returns:
        int: number of rows refreshed.
    """
    reasons = UPGRADE_ELIGIBLE_REASONS.get(tier or get_effective_tier(shop), [])
    if not reasons:
        return 0

    candidates = LiveDiscount.objects.filter(
        shop=shop,
        status=LiveDiscount.Status.UPGRADE_REQUIRED,
        exclusion_reason__in=reasons,
    )
    stored = dict(
        Discount.objects.filter(
            shop=shop, gid__in=candidates.values("gid")
        ).values_list("gid", "starts_at")
    )

    now = timezone.now()
    refreshed = 0
    for row in candidates:
        if row.gid not in stored:
            continue
        starts_at = stored[row.gid]
        row.status = (
            LiveDiscount.Status.SCHEDULED
            if starts_at and starts_at > now
            else LiveDiscount.Status.HIDDEN
        )
        row.exclusion_reason = None
        row.exclusion_details = None
        row.save(update_fields=["status", "exclusion_reason", "exclusion_details", "updated_at"])
        refreshed += 1

    if refreshed:
        logger.info(
            "Cleared %d upgrade-required discounts after tier change (shop=%s)",
            refreshed,
            shop.domain,
        )
    return refreshed


def update_shop_tier(shop_domain, new_tier):
    """Switch the shop to *new_tier* immediately and release unlocked discounts."""
    if new_tier not in TIER_CONFIG:
        raise ValueError(f"Invalid tier: {new_tier}")

    shop = get_or_create_shop(shop_domain)
    shop.tier = new_tier
    shop.live_discount_limit = get_live_discount_limit(new_tier)
    if shop.pending_tier == new_tier:
        shop.pending_tier = None
        shop.pending_tier_effective_at = None
    shop.save()

    refresh_upgrade_required(shop, new_tier)
    enforce_live_limit(shop)
    return shop


def schedule_tier_change(shop_domain, new_tier, effective_at):
    """Record a downgrade that takes effect at *effective_at*."""
    if new_tier not in TIER_CONFIG:
        raise ValueError(f"Invalid tier: {new_tier}")

    shop = get_or_create_shop(shop_domain)
    shop.pending_tier = new_tier
    shop.pending_tier_effective_at = effective_at
    shop.save(update_fields=["pending_tier", "pending_tier_effective_at", "updated_at"])
    return shop
