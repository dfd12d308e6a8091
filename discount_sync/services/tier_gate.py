"""Plan-tier feature flags for a single discount."""

import dataclasses

from ..models import Shop
from .billing import get_effective_tier, get_or_create_shop
from .shapes import applies_on_subscription, has_variant_targets


@dataclasses.dataclass(frozen=True)
class TierGating:
    tier: str
    is_advanced: bool
    is_basic_or_higher: bool
    has_variant_targets: bool
    applies_on_subscription: bool


def evaluate_tier_gating(discount_data, shop_domain):
    """Load (or lazily create) the shop's tier record and inspect the discount."""
    shop = get_or_create_shop(shop_domain)
    tier = get_effective_tier(shop)
    return TierGating(
        tier=tier,
        is_advanced=tier == Shop.Tier.ADVANCED,
        is_basic_or_higher=tier != Shop.Tier.FREE,
        has_variant_targets=has_variant_targets(discount_data),
        applies_on_subscription=applies_on_subscription(discount_data),
    )
