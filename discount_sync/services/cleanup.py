import logging

from django.db import transaction
from django.utils import timezone

from ..models import Discount, LiveDiscount

logger = logging.getLogger(__name__)


def sweep_expired(shop_domain):
    """Delete Discount and LiveDiscount rows whose end date has passed.

    Scoped to one shop. Best-effort: errors are logged and reported as zero
    counts so the calling pipeline carries on.

    Returns:
        dict: ``{"cleaned": rows deleted across both tables, "total": distinct gids}``
    """
    try:
        now = timezone.now()
        expired_gids = set(
            Discount.objects.filter(
                shop__domain=shop_domain, ends_at__isnull=False, ends_at__lt=now
            ).values_list("gid", flat=True)
        )
        expired_gids.update(
            LiveDiscount.objects.filter(
                shop__domain=shop_domain, ends_at__isnull=False, ends_at__lt=now
            ).values_list("gid", flat=True)
        )
        if not expired_gids:
            return {"cleaned": 0, "total": 0}

        with transaction.atomic():
            # Count parent rows only; cascaded junction deletes are not reported.
            discounts = Discount.objects.filter(
                shop__domain=shop_domain, gid__in=expired_gids
            )
            discounts_deleted = discounts.count()
            discounts.delete()
            live_deleted, _ = LiveDiscount.objects.filter(
                shop__domain=shop_domain, gid__in=expired_gids
            ).delete()
    except Exception:
        logger.exception("Error checking for expired discounts (shop=%s)", shop_domain)
        return {"cleaned": 0, "total": 0}

    cleaned = discounts_deleted + live_deleted
    logger.info(
        "Cleaned up expired discount records (shop=%s, cleaned=%d, total=%d)",
        shop_domain,
        cleaned,
        len(expired_gids),
    )
    return {"cleaned": cleaned, "total": len(expired_gids)}
