"""Expand a discount's item scope into concrete product and variant GIDs."""

import dataclasses
import logging

from ..utils import parse_gid
from .graphql_client import ShopifyAPIError
from .shapes import ScopeKind, is_product_discount, parse_scope

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ResolvedTargets:
    product_ids: set = dataclasses.field(default_factory=set)
    variant_ids: set = dataclasses.field(default_factory=set)

    @classmethod
    def from_lists(cls, product_ids, variant_ids):
        return cls(set(product_ids), set(variant_ids))


class TargetResolver:
    """Resolves collection / product / variant scope entries.

    Collections expand to their member products, direct products pass through
    and variants add their owning product.  Every product reached this way is
    written to the product cache.  Lookups go through the fetcher's
    cache unless ``force_refresh`` is set.
    """

    def __init__(self, fetcher):
        self.fetcher = fetcher

    def resolve(self, discount_data, force_refresh=False):
        """Return :class:`ResolvedTargets` or ``None``.

        ``None`` means the discount is not a product-class discount or has
        no ``customerGets.items`` at all; callers treat that as "keep what
        you had".
        """
        if not discount_data or not is_product_discount(discount_data):
            return None
        customer_gets = discount_data.get("customerGets") or {}
        if customer_gets.get("items") is None:
            return None

        resolved = ResolvedTargets()
        for entry in parse_scope(discount_data):
            if entry.kind is ScopeKind.COLLECTIONS:
                for collection_gid in entry.ids:
                    self._add_collection(resolved, collection_gid, force_refresh)
            elif entry.kind is ScopeKind.PRODUCTS:
                for product_gid in entry.ids:
                    self._add_product(resolved, product_gid, force_refresh)
            elif entry.kind is ScopeKind.VARIANTS:
                for variant_gid in entry.ids:
                    self._add_variant(resolved, variant_gid, force_refresh)
        return resolved

    def _add_collection(self, resolved, collection_gid, force_refresh):
        if not parse_gid(collection_gid):
            logger.warning("Skipping malformed collection GID %r", collection_gid)
            return
        member_gids = self.fetcher.fetch_collection_products(collection_gid, force_refresh)
        resolved.product_ids.update(member_gids)
        for product_gid in member_gids:
            self._cache_product(product_gid, force_refresh)

    def _add_product(self, resolved, product_gid, force_refresh):
        resolved.product_ids.add(product_gid)
        self._cache_product(product_gid, force_refresh)

    def _cache_product(self, product_gid, force_refresh):
        try:
            self.fetcher.fetch_product(product_gid, force_refresh)
        except ShopifyAPIError:
            logger.exception("Error caching targeted product %s", product_gid)

    def _add_variant(self, resolved, variant_gid, force_refresh):
        resolved.variant_ids.add(variant_gid)
        try:
            product_gid, _ = self.fetcher.fetch_variant_product(
                variant_gid, force_refresh
            )
        except ShopifyAPIError:
            logger.exception("Error resolving parent product of variant %s", variant_gid)
            return
        if product_gid:
            resolved.product_ids.add(product_gid)
