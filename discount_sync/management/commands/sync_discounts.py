"""
Re-sync discounts from Shopify for one shop or every active shop.

Usage:
    python3 manage.py sync_discounts --shop example.myshopify.com

    # First import after install (recomputes every status)
    python3 manage.py sync_discounts --shop example.myshopify.com --initial

    # Only repair missing LiveDiscount rows (no Shopify calls)
    python3 manage.py sync_discounts --backfill-only

    # Also delete local discounts Shopify no longer returns
    python3 manage.py sync_discounts --shop example.myshopify.com --prune

    # Only delete expired discounts
    python3 manage.py sync_discounts --cleanup-only

    # Hand the work to the dramatiq worker instead of running inline
    python3 manage.py sync_discounts --shop example.myshopify.com --async
"""

import logging

from django.core.management.base import BaseCommand

from discount_sync.models import Shop
from discount_sync.services.backfill import reconcile
from discount_sync.services.cleanup import sweep_expired
from discount_sync.services.reprocess import Reprocessor
from discount_sync.tasks import reprocess_shop

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Re-sync Shopify discounts into Discount / LiveDiscount"

    def add_arguments(self, parser):
        parser.add_argument(
            "--shop",
            type=str,
            default="",
            help="Shop domain (e.g. example.myshopify.com). Defaults to every active shop.",
        )
        parser.add_argument(
            "--initial",
            action="store_true",
            help="Run the initial import: recompute every status instead of preserving it.",
        )
        parser.add_argument(
            "--backfill-only",
            action="store_true",
            help="Only rebuild missing LiveDiscount rows from stored discounts.",
        )
        parser.add_argument(
            "--cleanup-only",
            action="store_true",
            help="Only delete discounts whose end date has passed.",
        )
        parser.add_argument(
            "--prune",
            action="store_true",
            help="After a complete walk, delete local discounts missing from Shopify.",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Enqueue a reprocess_shop task per shop instead of running inline.",
        )

    def handle(self, *args, **options):
        shops = Shop.objects.filter(is_active=True).order_by("domain")
        if options["shop"]:
            shops = shops.filter(domain=options["shop"])
        shops = list(shops)

        if not shops:
            print(f"ERROR: No active shop found (shop={options['shop'] or 'all'})")
            return

        for shop in shops:
            if options["cleanup_only"]:
                counts = sweep_expired(shop.domain)
                print(f"{shop.domain}: cleaned {counts['cleaned']} rows ({counts['total']} discounts)")
            elif options["backfill_only"]:
                counts = reconcile(shop.domain)
                print(f"{shop.domain}: backfilled {counts['backfilled']} live discounts")
            elif options["run_async"]:
                reprocess_shop.send(shop.domain, initial=options["initial"])
                print(f"{shop.domain}: reprocess enqueued")
            else:
                self._reprocess(shop, options["initial"], options["prune"])

    def _reprocess(self, shop, initial, prune):
        reprocessor = Reprocessor(shop)
        if initial:
            counts = reprocessor.initial_import()
        else:
            counts = reprocessor.reprocess_all(prune=prune)
        print(
            f"{shop.domain}: total={counts['total']} processed={counts['processed']} "
            f"updated={counts['updated']} added={counts['added']} "
            f"deleted={counts['deleted']} backfilled={counts['backfilled']}"
            + (f" pruned={counts['pruned']}" if "pruned" in counts else "")
        )
