"""Tests for best-discount selection in integer cents."""

import math

import pytest

from discount_sync.services.pricing import (
    actual_savings,
    discounted_price,
    filter_for_purchase,
    find_best_discount,
    find_best_discounts,
    is_eligible_for_variant,
    normalize_discounts,
    resolve_best_discounts,
)


def _pct(value, automatic=True, **extra):
    return {"type": "percentage", "value": value, "isAutomatic": automatic, **extra}


def _fixed(value, automatic=True, **extra):
    return {"type": "fixed", "value": value, "isAutomatic": automatic, **extra}


class TestDiscountedPrice:
    @pytest.mark.parametrize(
        "discount, expected",
        [
            (_pct(20), 8000),
            (_pct(150), 0),
            (_pct(-10), 10000),
            (_pct(33), 6700),
            (_fixed(2500), 7500),
            (_fixed(50000), 0),
            (_fixed(-100), 10000),
            (_fixed(99.5), 9900),
        ],
    )
    def test_price(self, discount, expected):
        assert discounted_price(10000, discount) == expected

    def test_percentage_floors_the_discount(self):
        assert discounted_price(999, _pct(15)) == 850

    def test_missing_discount_returns_regular_price(self):
        assert discounted_price(10000, None) == 10000

    def test_non_finite_price_is_returned_unchanged(self):
        assert math.isnan(discounted_price(float("nan"), _pct(20)))

    def test_non_numeric_value_counts_as_zero(self):
        assert discounted_price(10000, _pct("abc")) == 10000

    def test_savings(self):
        assert actual_savings(10000, _pct(20)) == 2000
        assert actual_savings(10000, _fixed(50000)) == 10000
        assert actual_savings(10000, None) == 0
        assert actual_savings(None, _pct(20)) == 0


class TestVariantEligibility:
    def test_no_scope_or_all_applies(self):
        assert is_eligible_for_variant(_pct(10), "444")
        assert is_eligible_for_variant(_pct(10, variantScope={"type": "ALL"}), None)

    def test_partial_scope_compares_as_strings(self):
        discount = _pct(10, variantScope={"type": "PARTIAL", "ids": ["444"]})

        assert is_eligible_for_variant(discount, "444")
        assert is_eligible_for_variant(discount, 444)
        assert not is_eligible_for_variant(discount, "555")
        assert not is_eligible_for_variant(discount, None)

    def test_unknown_scope_type_excludes(self):
        assert not is_eligible_for_variant(_pct(10, variantScope={"type": "SOME"}), "444")


class TestFindBest:
    def test_greatest_savings_wins(self):
        best = find_best_discount([_pct(10), _fixed(3000), _pct(25)], 10000, None)

        assert best["discount"] == _fixed(3000)
        assert best["final_price"] == 7000
        assert best["savings"] == 3000

    def test_tie_goes_to_higher_nominal_value(self):
        # Both save the whole price; the larger nominal value is kept.
        best = find_best_discount([_fixed(20000), _fixed(50000)], 10000, None)

        assert best["discount"]["value"] == 50000

    def test_ineligible_variants_are_skipped(self):
        scoped = _pct(50, variantScope={"type": "PARTIAL", "ids": ["555"]})

        best = find_best_discount([scoped, _pct(10)], 10000, "444")

        assert best["discount"]["value"] == 10

    def test_nothing_eligible(self):
        assert find_best_discount([], 10000, None) is None

    def test_automatic_and_coupon_are_chosen_independently(self):
        best = find_best_discounts(
            [_pct(30), _pct(20, automatic=False), _pct(5, automatic=False)], 10000, None
        )

        assert best["automatic"]["final_price"] == 7000
        assert best["coupon"]["final_price"] == 8000


class TestResolveBestDiscounts:
    def test_single_automatic(self):
        resolution = resolve_best_discounts([_pct(20)], 10000)

        assert resolution["automaticDiscount"] == _pct(20)
        assert resolution["automaticEntry"] == {"finalPriceCents": 8000, "regularPriceCents": 10000}
        assert resolution["couponDiscount"] is None
        assert resolution["basePriceCents"] == 10000

    def test_better_automatic_suppresses_coupon(self):
        resolution = resolve_best_discounts([_pct(30), _pct(20, automatic=False)], 10000)

        assert resolution["automaticEntry"]["finalPriceCents"] == 7000
        assert resolution["couponDiscount"] is None
        assert resolution["couponEntry"] is None

    def test_equal_automatic_suppresses_coupon(self):
        resolution = resolve_best_discounts([_pct(20), _fixed(2000, automatic=False)], 10000)

        assert resolution["couponDiscount"] is None

    def test_better_coupon_is_kept(self):
        resolution = resolve_best_discounts([_pct(10), _pct(25, automatic=False)], 10000)

        assert resolution["automaticEntry"]["finalPriceCents"] == 9000
        assert resolution["couponEntry"]["finalPriceCents"] == 7500

    def test_variant_scope(self):
        scoped = _pct(20, variantScope={"type": "PARTIAL", "ids": ["444"]})

        assert resolve_best_discounts([scoped], 10000, 444)["automaticDiscount"] == scoped
        assert resolve_best_discounts([scoped], 10000, "555")["automaticDiscount"] is None

    def test_invalid_input(self):
        empty = resolve_best_discounts("not-a-list", 10000)

        assert empty["automaticDiscount"] is None
        assert empty["basePriceCents"] is None
        assert resolve_best_discounts([_pct(20)], float("inf"))["automaticEntry"] is None


class TestPurchaseFilter:
    def test_subscription_keeps_only_subscription_discounts(self):
        discounts = [_pct(10, appliesOnSubscription=True), _pct(20)]

        kept = filter_for_purchase(discounts, purchase_context="subscription")

        assert kept == [discounts[0]]
        assert filter_for_purchase(discounts, is_subscription=True) == [discounts[0]]

    def test_one_time_drops_explicit_exclusions(self):
        discounts = [_pct(10, appliesOnOneTimePurchase=False), _pct(20)]

        assert filter_for_purchase(discounts, purchase_context="one_time") == [discounts[1]]

    def test_no_context_keeps_everything(self):
        discounts = [_pct(10, appliesOnOneTimePurchase=False), "junk"]

        assert filter_for_purchase(discounts) == [discounts[0]]


class TestNormalize:
    def test_coerces_type_value_and_flag(self):
        normalized = normalize_discounts([{"type": "PERCENTAGE", "value": "20", "isAutomatic": 1}])

        assert normalized == [{"type": "percentage", "value": 20.0, "isAutomatic": True}]

    def test_drops_unusable_entries(self):
        discounts = [
            {"type": "bogo", "value": 10},
            {"type": "fixed", "value": "abc"},
            {"type": "fixed", "value": "inf"},
            {"type": None, "value": 5},
        ]

        assert normalize_discounts(discounts) == []
