"""Paginated Shopify reads that feed the target resolver and the reprocessor.

Every loop here is sequential and capped at ``limits.max_items`` so a huge
collection cannot exhaust memory or pin a worker indefinitely; hitting the
cap truncates the result and logs a warning instead of failing.
"""

import decimal
import logging

from ..conf import get_limits
from .cache import CachedCollection, CachedProduct
from .graphql_client import ShopifyAPIError
from .queries import (
    GET_ALL_DISCOUNTS_QUERY,
    GET_COLLECTION_PRODUCTS_QUERY,
    GET_DISCOUNT_CODES_QUERY,
    GET_DISCOUNT_NODE_QUERY,
    GET_PRODUCT_VARIANTS_QUERY,
    GET_VARIANT_PRODUCT_QUERY,
)

logger = logging.getLogger(__name__)


def _single_price(price_range):
    """``True`` when every variant of the product has the same price."""
    try:
        low = decimal.Decimal(str(price_range["minVariantPrice"]["amount"]))
        high = decimal.Decimal(str(price_range["maxVariantPrice"]["amount"]))
    except (KeyError, TypeError, decimal.InvalidOperation):
        return False
    return low == high


class CatalogFetcher:
    """Reads collections, products, variants and discounts for one shop.

    Args:
        client: :class:`~discount_sync.services.graphql_client.ShopifyGraphQLClient`.
        cache: :class:`~discount_sync.services.cache.TargetCache` for lookups.
        limits: :class:`~discount_sync.conf.SyncLimits`.
    """

    def __init__(self, client, cache, limits=None):
        self.client = client
        self.cache = cache
        self.limits = limits or get_limits()

    # ------------------------------------------------------------------
    # Generic pagination
    # ------------------------------------------------------------------

    def _collect_ids(self, document, variables, root_key, connection_key, label):
        """Walk ``data[root_key][connection_key]`` and collect node IDs.

        Returns:
            tuple: ``(root, ids, truncated)`` where ``root`` is the first
            page's ``data[root_key]`` (``None`` if it did not exist).
        """
        root = None
        ids = []
        truncated = False
        after = None
        page_size = self.limits.catalog_page_size

        while True:
            result = self.client.query(
                document, {**variables, "first": page_size, "after": after}
            )
            node = (result.data or {}).get(root_key)
            if not node:
                break
            if root is None:
                root = node

            connection = node.get(connection_key) or {}
            edges = connection.get("edges")
            if edges is None:
                break
            ids.extend(edge["node"]["id"] for edge in edges if edge.get("node"))

            if len(ids) >= self.limits.max_items:
                truncated = len(ids) > self.limits.max_items or bool(
                    (connection.get("pageInfo") or {}).get("hasNextPage")
                )
                ids = ids[: self.limits.max_items]
                if truncated:
                    logger.warning(
                        "Hit safety limit of %d items fetching %s (%s)",
                        self.limits.max_items,
                        label,
                        variables.get("id"),
                    )
                break

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            after = page_info.get("endCursor")

        return root, ids, truncated

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def fetch_collection(self, collection_gid, force_refresh=False):
        """Return a :class:`CachedCollection`, refreshing the cache on a miss.

        A cached collection with no products counts as a miss.  Returns
        ``None`` when Shopify does not know the collection.
        """
        if not force_refresh:
            cached = self.cache.get_collection(collection_gid)
            if cached and cached.product_ids:
                return cached

        root, product_ids, _ = self._collect_ids(
            GET_COLLECTION_PRODUCTS_QUERY,
            {"id": collection_gid},
            "collection",
            "products",
            "collection products",
        )
        if root is None:
            logger.info("Collection %s not found in Shopify", collection_gid)
            return None

        collection = CachedCollection(
            gid=collection_gid,
            product_ids=list(dict.fromkeys(product_ids)),
            title=root.get("title") or "",
        )
        self.cache.put_collection(collection)
        return collection

    def fetch_collection_products(self, collection_gid, force_refresh=False):
        """Return the product GIDs of a collection; empty on any API failure."""
        try:
            collection = self.fetch_collection(collection_gid, force_refresh)
        except ShopifyAPIError:
            logger.exception(
                "Error fetching products of collection %s", collection_gid
            )
            return []
        return collection.product_ids if collection else []

    # ------------------------------------------------------------------
    # Products and variants
    # ------------------------------------------------------------------

    def fetch_product(self, product_gid, force_refresh=False):
        """Return a :class:`CachedProduct` with every variant GID of the product."""
        if not force_refresh:
            cached = self.cache.get_product(product_gid)
            if cached and cached.variant_ids:
                return cached

        root, variant_ids, _ = self._collect_ids(
            GET_PRODUCT_VARIANTS_QUERY,
            {"id": product_gid},
            "product",
            "variants",
            "product variants",
        )
        if root is None:
            logger.info("Product %s not found in Shopify", product_gid)
            return None

        product = CachedProduct(
            gid=product_gid,
            variant_ids=list(dict.fromkeys(variant_ids)),
            title=root.get("title") or "",
            handle=root.get("handle") or "",
            single_price=_single_price(root.get("priceRangeV2")),
        )
        self.cache.put_product(product)
        return product

    def fetch_variant_product(self, variant_gid, force_refresh=False):
        """Resolve a variant to its owning product and that product's variants.

        Returns:
            tuple: ``(product_gid, variant_ids)``; ``(None, [])`` when the
            variant cannot be resolved.
        """
        result = self.client.query(GET_VARIANT_PRODUCT_QUERY, {"id": variant_gid})
        variant = (result.data or {}).get("productVariant") or {}
        product_gid = (variant.get("product") or {}).get("id")
        if not product_gid:
            return None, []

        product = self.fetch_product(product_gid, force_refresh)
        return product_gid, (product.variant_ids if product else [])

    # ------------------------------------------------------------------
    # Discounts
    # ------------------------------------------------------------------

    def fetch_discount_node(self, discount_gid):
        """Fetch one discount; ``None`` when Shopify no longer has it."""
        result = self.client.query(GET_DISCOUNT_NODE_QUERY, {"id": discount_gid})
        node = (result.data or {}).get("discountNode") or {}
        return node.get("discount") or None

    def fetch_discount_page(self, after=None):
        """Fetch one page of ``discountNodes``.

        Returns:
            tuple: ``(edges, next_cursor, errors)``; ``edges`` is ``None`` if
            the response carried no connection at all.
        """
        result = self.client.query(
            GET_ALL_DISCOUNTS_QUERY,
            {"first": self.limits.discount_page_size, "after": after},
        )
        connection = (result.data or {}).get("discountNodes")
        if not connection or connection.get("edges") is None:
            return None, None, result.errors
        page_info = connection.get("pageInfo") or {}
        next_cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        return connection["edges"], next_cursor, result.errors

    def fetch_all_codes(self, discount_gid, initial_codes):
        """Return every code of a code discount.

        The discount fragment only carries the first 100 codes; further pages
        are fetched when ``initial_codes.pageInfo.hasNextPage`` is set.  On an
        API failure the codes collected so far are returned.
        """
        initial_codes = initial_codes or {}
        codes = [n["code"] for n in initial_codes.get("nodes", []) if n and n.get("code")]
        page_info = initial_codes.get("pageInfo") or {}
        after = page_info.get("endCursor") if page_info.get("hasNextPage") else None

        try:
            while after:
                result = self.client.query(
                    GET_DISCOUNT_CODES_QUERY,
                    {
                        "id": discount_gid,
                        "first": self.limits.code_page_size,
                        "after": after,
                    },
                )
                code_discount = (
                    (result.data or {}).get("codeDiscountNode") or {}
                ).get("codeDiscount") or {}
                page = code_discount.get("codes")
                if not page or page.get("nodes") is None:
                    break
                codes.extend(n["code"] for n in page["nodes"] if n and n.get("code"))

                if len(codes) >= self.limits.max_items:
                    logger.warning(
                        "Hit safety limit of %d codes fetching discount %s",
                        self.limits.max_items,
                        discount_gid,
                    )
                    codes = codes[: self.limits.max_items]
                    break

                page_info = page.get("pageInfo") or {}
                after = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        except ShopifyAPIError:
            logger.exception("Error fetching codes for discount %s", discount_gid)

        return list(dict.fromkeys(codes))
