import logging

from ..router import register_handler
from ..services.reprocess import Reprocessor
from ..utils import to_shopify_gid

logger = logging.getLogger(__name__)


def _resource_gid(payload, resource_type):
    """Prefer ``admin_graphql_api_id``; delete payloads only carry the numeric ``id``."""
    gid = payload.get("admin_graphql_api_id")
    if gid:
        return gid
    numeric_id = payload.get("id")
    if numeric_id is None:
        raise ValueError(f"Missing id in {resource_type} payload")
    return to_shopify_gid(resource_type, numeric_id)


def handle_product_update(event, payload):
    """Handle ``products/update``: refresh the cached product only.

    Product updates are frequent (prices, inventory), so affected
    discounts are not re-resolved here; the refreshed variant list and
    single-price flag are enough for the storefront.
    """
    product_gid = _resource_gid(payload, "Product")
    product = Reprocessor(event.shop).store_product_data(product_gid)
    logger.info(
        "Refreshed cached product %s (shop=%s, variants=%d)",
        product_gid,
        event.shop_domain,
        len(product.variant_ids) if product else 0,
    )


def handle_product_delete(event, payload):
    """Handle ``products/delete``: re-resolve affected discounts, drop the cache row."""
    product_gid = _resource_gid(payload, "Product")
    reprocessor = Reprocessor(event.shop)
    counts = reprocessor.reprocess_for_product(product_gid)
    reprocessor.cache.delete_product(product_gid)
    logger.info(
        "Processed deletion of product %s (shop=%s, processed=%d, errors=%d)",
        product_gid,
        event.shop_domain,
        counts["processed"],
        counts["errors"],
    )


def handle_collection_update(event, payload):
    """Handle ``collections/update``: refresh membership, then re-resolve discounts."""
    collection_gid = _resource_gid(payload, "Collection")
    reprocessor = Reprocessor(event.shop)
    reprocessor.store_collection_data(collection_gid)
    counts = reprocessor.reprocess_for_collection(collection_gid)
    logger.info(
        "Processed update of collection %s (shop=%s, processed=%d, errors=%d)",
        collection_gid,
        event.shop_domain,
        counts["processed"],
        counts["errors"],
    )


def handle_collection_delete(event, payload):
    """Handle ``collections/delete``: re-resolve affected discounts, drop the cache row."""
    collection_gid = _resource_gid(payload, "Collection")
    reprocessor = Reprocessor(event.shop)
    counts = reprocessor.reprocess_for_collection(collection_gid)
    reprocessor.cache.delete_collection(collection_gid)
    logger.info(
        "Processed deletion of collection %s (shop=%s, processed=%d, errors=%d)",
        collection_gid,
        event.shop_domain,
        counts["processed"],
        counts["errors"],
    )


register_handler("products/update", handle_product_update)
register_handler("products/delete", handle_product_delete)
register_handler("collections/update", handle_collection_update)
register_handler("collections/delete", handle_collection_delete)
