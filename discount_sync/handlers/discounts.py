import logging

from ..router import register_handler
from ..services.reprocess import Reprocessor
from ..services.results import ErrorKind

logger = logging.getLogger(__name__)


def _discount_gid(payload):
    """Return the discount GID from a ``discounts/*`` payload.

    Raises:
        ValueError: the payload carries no ``admin_graphql_api_id``.
    """
    gid = payload.get("admin_graphql_api_id")
    if not gid:
        raise ValueError("Missing admin_graphql_api_id in discount payload")
    return gid


def handle_discount_upsert(event, payload):
    """Handle ``discounts/create`` and ``discounts/update``.

    The payload only identifies the discount; the current node is refetched
    from Shopify, its targets re-resolved without the cache, then stored
    and classified with the routine policy so a merchant's LIVE/HIDDEN
    choice survives.  Transient Shopify failures raise so the actor retries.
    """
    gid = _discount_gid(payload)
    result = Reprocessor(event.shop).sync_discount(gid)
    if not result and result.error is not ErrorKind.NOT_FOUND:
        result.raise_for_error()

    logger.info(
        "Processed %s for discount %s (shop=%s, status=%s)",
        event.topic,
        gid,
        event.shop_domain,
        result.value,
    )


def handle_discount_delete(event, payload):
    """Handle ``discounts/delete`` by removing both local rows."""
    gid = _discount_gid(payload)
    Reprocessor(event.shop).delete_discount(gid).raise_for_error()
    logger.info("Deleted discount %s (shop=%s)", gid, event.shop_domain)


register_handler("discounts/create", handle_discount_upsert)
register_handler("discounts/update", handle_discount_upsert)
register_handler("discounts/delete", handle_discount_delete)
