"""Persist full discount records and their junction rows.

Every discount from Shopify is stored here regardless of whether it can be
displayed; visibility is decided afterwards by the status classifier.
"""

import decimal
import logging

from django.db import transaction

from ..models import (
    Discount,
    DiscountCode,
    DiscountProduct,
    DiscountTarget,
    DiscountVariant,
)
from .results import ErrorKind, Result
from .shapes import (
    FixedAmountValue,
    PercentageValue,
    ScopeKind,
    applies_on_one_time_purchase,
    applies_on_subscription,
    compute_discount_type,
    compute_target_type,
    get_codes,
    get_discount_class,
    get_temporal_bounds,
    has_minimum_requirement,
    is_all_customers_selection,
    parse_scope,
    parse_value,
)
from .targets import ResolvedTargets

logger = logging.getLogger(__name__)

_CENTS = decimal.Decimal("0.01")


def build_target_rows(discount_data):
    """Return ``[(target_type, gid), ...]`` for the ``DiscountTarget`` table.

    Collection-scoped discounts record only their collections; otherwise the
    directly targeted products and variants are recorded.
    """
    target_type = compute_target_type(discount_data)
    rows = []
    for entry in parse_scope(discount_data):
        if target_type == Discount.TargetType.COLLECTION:
            if entry.kind is ScopeKind.COLLECTIONS:
                rows.extend(("COLLECTION", gid) for gid in entry.ids)
        elif entry.kind is ScopeKind.PRODUCTS:
            rows.extend(("PRODUCT", gid) for gid in entry.ids)
        elif entry.kind is ScopeKind.VARIANTS:
            rows.extend(("VARIANT", gid) for gid in entry.ids)
    return list(dict.fromkeys(rows))


def build_discount_fields(gid, discount_data):
    """Map a raw Shopify discount onto ``Discount`` model fields."""
    starts_at, ends_at = get_temporal_bounds(discount_data)

    value = parse_value(discount_data)
    value_type = Discount.ValueType.PERCENTAGE
    percentage = None
    amount = None
    currency_code = None
    if isinstance(value, PercentageValue):
        percentage = value.rate
    elif isinstance(value, FixedAmountValue):
        value_type = Discount.ValueType.AMOUNT
        amount = value.amount.quantize(_CENTS)
        currency_code = value.currency_code

    minimum_requirement = None
    if has_minimum_requirement(discount_data):
        minimum_requirement = discount_data.get("minimumRequirement")

    return {
        "title": discount_data.get("title") or "Untitled discount",
        "status": discount_data.get("status") or "UNKNOWN",
        "starts_at": starts_at,
        "ends_at": ends_at,
        "summary": discount_data.get("summary") or None,
        "discount_class": get_discount_class(discount_data) or "UNKNOWN",
        "discount_type": compute_discount_type(gid),
        "target_type": compute_target_type(discount_data),
        "value_type": value_type,
        "percentage": percentage,
        "amount": amount,
        "currency_code": currency_code,
        "applies_on_one_time_purchase": applies_on_one_time_purchase(discount_data),
        "applies_on_subscription": applies_on_subscription(discount_data),
        "customer_selection_all": is_all_customers_selection(discount_data),
        "minimum_requirement": minimum_requirement,
    }


class DiscountStore:
    """Idempotent writer for ``Discount`` and its four junction tables.

    Args:
        shop: :class:`~discount_sync.models.Shop` owning the discounts.
        fetcher: optional :class:`~discount_sync.services.fetchers.CatalogFetcher`
            used to page through discount codes beyond the first 100.
    """

    def __init__(self, shop, fetcher=None):
        self.shop = shop
        self.fetcher = fetcher

    def _collect_codes(self, gid, discount_data):
        if compute_discount_type(gid) != Discount.DiscountType.CODE:
            return []
        initial = discount_data.get("codes") or {}
        if self.fetcher is not None and (initial.get("pageInfo") or {}).get("hasNextPage"):
            return self.fetcher.fetch_all_codes(gid, initial)
        return get_codes(discount_data)

    def store(self, gid, discount_data, resolved=None):
        """Upsert the discount and rebuild its junction rows.

        The parent upsert and the delete + recreate of targets, resolved
        products, resolved variants and codes run in one transaction.

        Returns:
            :class:`~discount_sync.services.results.Result` wrapping the
            ``Discount`` row; falsy on failure.
        """
        if not gid or not discount_data:
            logger.error("Refusing to store discount without id or payload (shop=%s)", self.shop.domain)
            return Result.failure(ErrorKind.INVALID_INPUT, "missing gid or payload")

        resolved = resolved or ResolvedTargets()
        try:
            fields = build_discount_fields(gid, discount_data)
            targets = build_target_rows(discount_data)
            codes = self._collect_codes(gid, discount_data)

            with transaction.atomic():
                discount, _ = Discount.objects.update_or_create(
                    gid=gid, defaults={"shop": self.shop, **fields}
                )
                DiscountTarget.objects.filter(discount=discount).delete()
                DiscountProduct.objects.filter(discount=discount).delete()
                DiscountVariant.objects.filter(discount=discount).delete()
                DiscountCode.objects.filter(discount=discount).delete()

                DiscountTarget.objects.bulk_create(
                    [
                        DiscountTarget(discount=discount, target_type=kind, target_gid=target_gid)
                        for kind, target_gid in targets
                    ],
                    ignore_conflicts=True,
                )
                DiscountProduct.objects.bulk_create(
                    [
                        DiscountProduct(discount=discount, product_gid=product_gid)
                        for product_gid in sorted(resolved.product_ids)
                    ],
                    ignore_conflicts=True,
                )
                DiscountVariant.objects.bulk_create(
                    [
                        DiscountVariant(discount=discount, variant_gid=variant_gid)
                        for variant_gid in sorted(resolved.variant_ids)
                    ],
                    ignore_conflicts=True,
                )
                DiscountCode.objects.bulk_create(
                    [DiscountCode(discount=discount, code=code) for code in codes],
                    ignore_conflicts=True,
                )
        except Exception as exc:
            logger.exception(
                "Failed to store discount %s (shop=%s)", gid, self.shop.domain
            )
            return Result.failure(ErrorKind.PERMANENT, str(exc))

        logger.debug(
            "Stored discount %s: %d targets, %d products, %d variants, %d codes",
            gid,
            len(targets),
            len(resolved.product_ids),
            len(resolved.variant_ids),
            len(codes),
        )
        return Result.success(discount)
