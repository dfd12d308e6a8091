import logging

from ..models import Shop
from ..router import register_handler
from ..services import billing
from ..services.reprocess import Reprocessor

logger = logging.getLogger(__name__)

IGNORED_STATUSES = frozenset({"DECLINED", "EXPIRED", "CANCELLED", "PENDING"})
ACTIVE_STATUSES = frozenset({"ACTIVE", "ACCEPTED"})


def handle_app_subscription_update(event, payload):
    """Handle ``app_subscriptions/update`` and keep the tier in step with the plan.

    CANCELLED is ignored because Shopify sends it alongside the ACTIVE
    webhook of the replacement plan.  FROZEN drops the shop to FREE.  After
    a tier change, discounts the new tier unlocks are released and every
    discount is reprocessed so tier gates and the live quota re-apply.
    """
    subscription = payload.get("app_subscription") or {}
    status = (subscription.get("status") or "").upper()
    plan_name = subscription.get("name")

    if status in IGNORED_STATUSES:
        logger.info(
            "Ignoring %s subscription update (shop=%s)", status, event.shop_domain
        )
        return

    if status == "FROZEN":
        new_tier = Shop.Tier.FREE
    elif status in ACTIVE_STATUSES:
        new_tier = billing.tier_from_plan_name(plan_name)
    else:
        logger.info(
            "Ignoring non-active subscription status %r (shop=%s)",
            status,
            event.shop_domain,
        )
        return

    current_tier = billing.get_tier(event.shop_domain)["tier"]
    if new_tier == current_tier:
        logger.info(
            "Subscription update keeps tier %s (shop=%s)", current_tier, event.shop_domain
        )
        return

    shop = billing.update_shop_tier(event.shop_domain, new_tier)
    logger.info(
        "Tier changed %s -> %s for %s (plan=%r)",
        current_tier,
        new_tier,
        event.shop_domain,
        plan_name,
    )
    Reprocessor(shop).reprocess_all()


register_handler("app_subscriptions/update", handle_app_subscription_update)
