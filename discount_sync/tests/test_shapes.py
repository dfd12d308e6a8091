"""Tests for payload shape helpers, GID utilities and configurable limits."""

import datetime
import decimal

from django.test import override_settings
from django.utils import timezone

from discount_sync.conf import SyncLimits, get_limits
from discount_sync.services.shapes import (
    FixedAmountValue,
    PercentageValue,
    ScopeEntry,
    ScopeKind,
    compute_discount_type,
    compute_target_type,
    get_codes,
    get_discount_class,
    get_temporal_bounds,
    has_minimum_requirement,
    has_variant_targets,
    is_all_customers_selection,
    is_bxgy_discount,
    is_past_end_date,
    is_product_discount,
    parse_scope,
    parse_value,
)
from discount_sync.utils import extract_id, parse_gid, safe_json_list, to_shopify_gid

from .factories import (
    COLLECTION_GID,
    PRODUCT_GID,
    VARIANT_GID,
    collections_item,
    discount_payload,
    products_item,
    variants_item,
)


class TestGidHelpers:
    def test_to_shopify_gid(self):
        assert to_shopify_gid("Product", 9154924904679) == "gid://shopify/Product/9154924904679"

    def test_parse_gid(self):
        assert parse_gid("gid://shopify/ProductVariant/444") == {
            "type": "ProductVariant",
            "id": "444",
            "gid": "gid://shopify/ProductVariant/444",
        }

    def test_parse_gid_rejects_malformed(self):
        assert parse_gid("gid://shopify/Product/") is None
        assert parse_gid("444") is None
        assert parse_gid(None) is None
        assert parse_gid(444) is None

    def test_extract_id(self):
        assert extract_id(VARIANT_GID) == "444"
        assert extract_id("not-a-gid") is None

    def test_safe_json_list(self):
        assert safe_json_list(["a"]) == ["a"]
        assert safe_json_list('["a", "b"]') == ["a", "b"]
        assert safe_json_list("{broken") == []
        assert safe_json_list('{"a": 1}') == []
        assert safe_json_list(None) == []


class TestValue:
    def test_percentage(self):
        value = parse_value(discount_payload(value={"percentage": 0.25}))
        assert value == PercentageValue(rate=0.25)

    def test_fixed_amount(self):
        value = parse_value(
            discount_payload(value={"amount": {"amount": "15.50", "currencyCode": "EUR"}})
        )
        assert isinstance(value, FixedAmountValue)
        assert value.amount == decimal.Decimal("15.50")
        assert value.currency_code == "EUR"

    def test_missing_value(self):
        data = discount_payload()
        data["customerGets"]["value"] = {}
        assert parse_value(data) is None

    def test_unparsable_amount(self):
        assert parse_value(discount_payload(value={"amount": {"amount": "abc"}})) is None


class TestScope:
    def test_products(self):
        data = discount_payload(items=products_item(PRODUCT_GID))
        assert parse_scope(data) == [ScopeEntry(ScopeKind.PRODUCTS, (PRODUCT_GID,))]
        assert compute_target_type(data) == "PRODUCT"
        assert not has_variant_targets(data)

    def test_products_and_variants(self):
        item = {**products_item(PRODUCT_GID), **variants_item(VARIANT_GID)}
        data = discount_payload(items=item)
        assert compute_target_type(data) == "PRODUCT"
        assert has_variant_targets(data)

    def test_collections_win(self):
        data = discount_payload(items=[collections_item(COLLECTION_GID), products_item(PRODUCT_GID)])
        assert compute_target_type(data) == "COLLECTION"

    def test_all_items(self):
        data = discount_payload(items={"allItems": True})
        assert parse_scope(data) == [ScopeEntry(ScopeKind.ALL)]
        assert compute_target_type(data) == "UNKNOWN"

    def test_edges_shape(self):
        data = discount_payload(
            items={"products": {"edges": [{"node": {"id": PRODUCT_GID}}]}}
        )
        assert parse_scope(data)[0].ids == (PRODUCT_GID,)

    def test_empty_variant_list_is_not_variant_targeting(self):
        data = discount_payload(items=variants_item())
        assert not has_variant_targets(data)


class TestClassification:
    def test_discount_class_single_or_list(self):
        assert get_discount_class({"discountClass": "PRODUCT"}) == "PRODUCT"
        assert get_discount_class({"discountClasses": ["ORDER", "PRODUCT"]}) == "ORDER"
        assert get_discount_class({"discountClasses": []}) is None
        assert get_discount_class(None) is None

    def test_is_product_discount_is_case_insensitive(self):
        assert is_product_discount({"discountClass": "product"})
        assert not is_product_discount({"discountClass": "ORDER"})
        assert not is_product_discount({})

    def test_bxgy(self):
        assert is_bxgy_discount({"__typename": "DiscountAutomaticBxgy"})
        assert not is_bxgy_discount({"__typename": "DiscountAutomaticBasic"})

    def test_customer_selection(self):
        assert is_all_customers_selection(discount_payload())
        assert is_all_customers_selection({"customerSelection": {"__typename": "DiscountCustomerAll"}})
        assert is_all_customers_selection({})
        assert not is_all_customers_selection(discount_payload(context="DiscountCustomerSegments"))

    def test_minimum_requirement(self):
        assert not has_minimum_requirement(discount_payload())
        assert not has_minimum_requirement({"minimumRequirement": {}})
        assert has_minimum_requirement(
            {"minimumRequirement": {"__typename": "DiscountMinimumSubtotal"}}
        )
        assert has_minimum_requirement(
            {"minimumRequirement": {"greaterThanOrEqualToQuantity": "2"}}
        )

    def test_discount_type_from_gid(self):
        assert compute_discount_type("gid://shopify/DiscountCodeNode/2") == "CODE"
        assert compute_discount_type("gid://shopify/DiscountAutomaticNode/1") == "AUTO"
        assert compute_discount_type(None) == "AUTO"

    def test_codes(self):
        assert get_codes(discount_payload(codes=["SAVE10", "SAVE20"])) == ["SAVE10", "SAVE20"]
        assert get_codes(discount_payload()) == []


class TestTemporalBounds:
    def test_parses_iso_strings(self):
        starts_at, ends_at = get_temporal_bounds(
            {"startsAt": "2024-01-01T00:00:00Z", "endsAt": "2024-02-01T00:00:00Z"}
        )
        assert starts_at == datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        assert ends_at == datetime.datetime(2024, 2, 1, tzinfo=datetime.timezone.utc)

    def test_missing_start_means_now(self):
        before = timezone.now()
        starts_at, ends_at = get_temporal_bounds({"startsAt": "garbage"})
        assert starts_at >= before
        assert ends_at is None

    def test_naive_datetime_is_treated_as_utc(self):
        starts_at, _ = get_temporal_bounds({"startsAt": "2024-01-01T12:00:00"})
        assert starts_at.tzinfo is not None
        assert starts_at.hour == 12

    def test_past_end_date(self):
        now = timezone.now()
        assert is_past_end_date(now - datetime.timedelta(seconds=1), now)
        assert not is_past_end_date(now + datetime.timedelta(days=1), now)
        assert not is_past_end_date(None, now)


class TestLimits:
    def test_defaults(self):
        limits = SyncLimits()
        assert limits.max_retries == 3
        assert limits.throttle_threshold == 100
        assert limits.max_items == 10000

    @override_settings(DISCOUNT_SYNC={"MAX_ITEMS": 50, "UNKNOWN_KEY": 1})
    def test_settings_override(self):
        limits = get_limits()
        assert limits.max_items == 50
        assert limits.base_delay == 0.5

    @override_settings(DISCOUNT_SYNC={"MAX_ITEMS": 50})
    def test_explicit_override_wins(self):
        assert get_limits(max_items=5).max_items == 5
