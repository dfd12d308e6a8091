"""Orchestration of full and scoped discount re-syncs for one shop.

Every entry point here walks discounts sequentially through the same
pipeline: fetch from Shopify, resolve targets, store, classify.  Per-item
failures are counted and logged; they never abort the walk.
"""

import logging

from django.db import transaction

from ..conf import get_limits
from ..models import Discount, DiscountProduct, DiscountTarget, LiveDiscount
from .backfill import reconcile
from .cache import DatabaseTargetCache
from .classifier import ClassificationMode, StatusClassifier, remove_discount_everywhere
from .cleanup import sweep_expired
from .fetchers import CatalogFetcher
from .graphql_client import ShopifyAPIError, ShopifyGraphQLClient
from .results import ErrorKind, Result
from .storage import DiscountStore
from .targets import ResolvedTargets, TargetResolver

logger = logging.getLogger(__name__)


def _empty_counts():
    return {
        "total": 0,
        "processed": 0,
        "updated": 0,
        "added": 0,
        "deleted": 0,
        "backfilled": 0,
    }


def _stored_targets(gid):
    """Previously resolved targets of a stored discount, or ``None``."""
    discount = Discount.objects.filter(gid=gid).first()
    if discount is None:
        return None
    return ResolvedTargets.from_lists(
        discount.products.values_list("product_gid", flat=True),
        discount.variants.values_list("variant_gid", flat=True),
    )


class Reprocessor:
    """Re-syncs the discounts of one shop.

    Args:
        shop: :class:`~discount_sync.models.Shop`.
        client: optional GraphQL client; built from the shop's credentials
            when omitted.
        cache: optional :class:`~discount_sync.services.cache.TargetCache`;
            defaults to the shop's Product / Collection tables.
        limits: optional :class:`~discount_sync.conf.SyncLimits`.
    """

    def __init__(self, shop, client=None, cache=None, limits=None):
        self.shop = shop
        self.limits = limits or get_limits()
        self.client = client or ShopifyGraphQLClient.for_shop(shop, limits=self.limits)
        self.cache = cache or DatabaseTargetCache(shop)
        self.fetcher = CatalogFetcher(self.client, self.cache, self.limits)
        self.resolver = TargetResolver(self.fetcher)
        self.store = DiscountStore(shop, fetcher=self.fetcher)

    @property
    def shop_domain(self):
        return self.shop.domain

    def _exists(self, gid):
        return Discount.objects.filter(gid=gid, shop=self.shop).exists()

    def _process(self, gid, discount_data, mode, force_refresh=False, fallback_to_stored=False):
        """Resolve, store and classify one discount.

        Returns:
            :class:`Result` whose value is the persisted status (``None``
            when the discount expired and was removed).
        """
        resolved = self.resolver.resolve(discount_data, force_refresh=force_refresh)
        if resolved is None and fallback_to_stored:
            resolved = _stored_targets(gid)

        stored = self.store.store(gid, discount_data, resolved or ResolvedTargets())
        if not stored:
            return stored
        return StatusClassifier(mode).classify(gid, discount_data, self.shop_domain)

    # ------------------------------------------------------------------
    # Full walk
    # ------------------------------------------------------------------

    def reprocess_all(self, mode=ClassificationMode.ROUTINE, prune=False):
        """Walk every discount Shopify knows about and re-sync it.

        No status or class filter is applied; unsupported discounts must be
        classified too.  Always ends with a backfill pass.

        With ``prune``, local discounts the walk did not return are deleted,
        but only when it completed without page errors or truncation.  They
        are reported under ``pruned`` and never counted as ``deleted``.

        Returns:
            dict: ``{total, processed, updated, added, deleted, backfilled}``,
            plus ``pruned`` when pruning was requested.
        """
        counts = _empty_counts()
        errors = 0
        seen = set()
        complete = True
        after = None

        while True:
            try:
                edges, after, page_errors = self.fetcher.fetch_discount_page(after)
            except ShopifyAPIError:
                logger.exception("Error fetching discounts page (shop=%s)", self.shop_domain)
                complete = False
                break
            if edges is None:
                if page_errors:
                    logger.error(
                        "GraphQL error during reprocess (shop=%s): %s",
                        self.shop_domain,
                        page_errors,
                    )
                    complete = False
                break
            if page_errors:
                complete = False

            counts["total"] += len(edges)
            for edge in edges:
                node = edge.get("node") or {}
                gid = node.get("id")
                if not gid:
                    continue
                seen.add(gid)
                if not node.get("discount"):
                    logger.warning(
                        "Discount node %s returned without data (shop=%s)", gid, self.shop_domain
                    )
                    continue
                counts["processed"] += 1

                try:
                    existed = self._exists(gid)
                    result = self._process(gid, node["discount"], mode)
                    if result:
                        counts["updated"] += 1
                    exists = self._exists(gid)
                except Exception:
                    errors += 1
                    logger.exception(
                        "Failed to reprocess discount %s (shop=%s)", gid, self.shop_domain
                    )
                    continue
                if not existed and exists:
                    counts["added"] += 1
                if existed and not exists:
                    counts["deleted"] += 1

            if counts["total"] >= self.limits.max_items:
                if after:
                    logger.warning(
                        "Hit safety limit of %d discounts reprocessing %s",
                        self.limits.max_items,
                        self.shop_domain,
                    )
                    complete = False
                break
            if not after:
                break

        if prune:
            counts["pruned"] = self.prune_missing(seen) if complete else 0

        counts["backfilled"] = reconcile(self.shop_domain)["backfilled"]

        logger.info(
            "Reprocess completed (shop=%s, total=%d, processed=%d, updated=%d, "
            "added=%d, deleted=%d, backfilled=%d, errors=%d)",
            self.shop_domain,
            counts["total"],
            counts["processed"],
            counts["updated"],
            counts["added"],
            counts["deleted"],
            counts["backfilled"],
            errors,
        )
        return counts

    def prune_missing(self, seen_gids):
        """Delete local discounts that the completed walk did not return.

        Returns:
            int: number of Discount rows removed.
        """
        stale_discounts = Discount.objects.filter(shop=self.shop).exclude(gid__in=seen_gids)
        stale_live = LiveDiscount.objects.filter(shop=self.shop).exclude(gid__in=seen_gids)
        with transaction.atomic():
            pruned = stale_discounts.count()
            stale_discounts.delete()
            stale_live.delete()
        if pruned:
            logger.info(
                "Pruned %d discounts no longer present in Shopify (shop=%s)",
                pruned,
                self.shop_domain,
            )
        return pruned

    def initial_import(self):
        """First sync after install: repair, recompute every status, sweep."""
        reconcile(self.shop_domain)
        counts = self.reprocess_all(mode=ClassificationMode.FORCE_RECOMPUTE)
        sweep_expired(self.shop_domain)
        return counts

    # ------------------------------------------------------------------
    # Scoped walks
    # ------------------------------------------------------------------

    def _reprocess_gids(self, gids, label):
        processed = 0
        errors = 0
        for gid in gids:
            try:
                discount_data = self.fetcher.fetch_discount_node(gid)
                if discount_data is None:
                    logger.warning(
                        "Discount %s not found in Shopify during %s reprocess", gid, label
                    )
                    continue
                result = self._process(
                    gid, discount_data, ClassificationMode.ROUTINE, force_refresh=True
                )
            except Exception:
                errors += 1
                logger.exception(
                    "Error reprocessing discount %s for %s change", gid, label
                )
                continue
            if result:
                processed += 1
            else:
                errors += 1
        return {"processed": processed, "errors": errors}

    def reprocess_for_product(self, product_gid):
        """Re-sync only the discounts whose resolved products include *product_gid*."""
        gids = list(
            DiscountProduct.objects.filter(
                product_gid=product_gid, discount__shop=self.shop
            )
            .values_list("discount__gid", flat=True)
            .distinct()
        )
        if not gids:
            logger.debug("No discounts include product %s (shop=%s)", product_gid, self.shop_domain)
            return {"processed": 0, "errors": 0}
        counts = self._reprocess_gids(gids, "product")
        logger.info(
            "Product reprocess completed (shop=%s, product=%s, processed=%d, errors=%d)",
            self.shop_domain,
            product_gid,
            counts["processed"],
            counts["errors"],
        )
        return counts

    def reprocess_for_collection(self, collection_gid):
        """Re-sync only the discounts that target *collection_gid*."""
        gids = list(
            DiscountTarget.objects.filter(
                target_type=DiscountTarget.TargetType.COLLECTION,
                target_gid=collection_gid,
                discount__shop=self.shop,
            )
            .values_list("discount__gid", flat=True)
            .distinct()
        )
        if not gids:
            logger.debug(
                "No discounts target collection %s (shop=%s)", collection_gid, self.shop_domain
            )
            return {"processed": 0, "errors": 0}
        counts = self._reprocess_gids(gids, "collection")
        logger.info(
            "Collection reprocess completed (shop=%s, collection=%s, processed=%d, errors=%d)",
            self.shop_domain,
            collection_gid,
            counts["processed"],
            counts["errors"],
        )
        return counts

    # ------------------------------------------------------------------
    # Single discount (webhook path)
    # ------------------------------------------------------------------

    def sync_discount(self, gid):
        """Refetch one discount from Shopify and re-sync it.

        Shopify is always asked for the current node, so a stale update
        delivered after a delete cannot resurrect the discount: when Shopify
        no longer has it, both local rows are removed.
        """
        try:
            discount_data = self.fetcher.fetch_discount_node(gid)
        except ShopifyAPIError as exc:
            logger.warning("Could not fetch discount %s (shop=%s): %s", gid, self.shop_domain, exc)
            return Result.failure(ErrorKind.TRANSIENT, str(exc))

        if discount_data is None:
            logger.info(
                "Discount %s not found in Shopify; removing local rows (shop=%s)",
                gid,
                self.shop_domain,
            )
            return self.delete_discount(gid)

        try:
            result = self._process(
                gid,
                discount_data,
                ClassificationMode.ROUTINE,
                force_refresh=True,
                fallback_to_stored=True,
            )
        except ShopifyAPIError as exc:
            logger.warning("Shopify error syncing discount %s: %s", gid, exc)
            return Result.failure(ErrorKind.TRANSIENT, str(exc))
        sweep_expired(self.shop_domain)
        return result

    def delete_discount(self, gid):
        try:
            remove_discount_everywhere(gid, self.shop_domain)
        except Exception as exc:
            logger.exception("Error deleting discount %s (shop=%s)", gid, self.shop_domain)
            return Result.failure(ErrorKind.PERMANENT, str(exc))
        sweep_expired(self.shop_domain)
        return Result.success(None)

    # ------------------------------------------------------------------
    # Catalog cache
    # ------------------------------------------------------------------

    def store_product_data(self, product_gid):
        """Refresh the cached title, handle, variants and single-price flag."""
        try:
            return self.fetcher.fetch_product(product_gid, force_refresh=True)
        except ShopifyAPIError:
            logger.exception("Error storing product data for %s", product_gid)
            return None

    def store_collection_data(self, collection_gid):
        """Refresh the cached title and member products of a collection."""
        try:
            return self.fetcher.fetch_collection(collection_gid, force_refresh=True)
        except ShopifyAPIError:
            logger.exception("Error storing collection data for %s", collection_gid)
            return None
