"""Tests for stock evaluation and the per-brand state machine."""

from __future__ import annotations

import pytest

from brand_stock_monitor.stock import (BACK_IN_STOCK, OUT_OF_STOCK,
                                       BrandStatus, StockVerdict, decide,
                                       evaluate)
from tests.conftest import make_product


class TestEvaluate:
    def test_empty_catalog_is_not_all_oos(self):
        verdict = evaluate([])
        assert verdict.to_dict() == {
            "allOOS": False,
            "totalProducts": 0,
            "oosProducts": 0,
            "inStockProducts": 0,
        }

    def test_all_products_at_zero(self):
        """Scenario A verdict: three products, one variant each at 0."""
        products = [make_product(i, "Acme", 0) for i in range(3)]
        assert evaluate(products).to_dict() == {
            "allOOS": True,
            "totalProducts": 3,
            "oosProducts": 3,
            "inStockProducts": 0,
        }

    def test_negative_stock_counts_as_out_of_stock(self):
        products = [make_product(1, "Acme", -2), make_product(2, "Acme", 3, -3)]
        verdict = evaluate(products)
        assert verdict.all_oos is True
        assert verdict.oos_products == verdict.total_products == 2

    def test_variants_are_summed_per_product(self):
        products = [make_product(1, "Acme", -1, 2), make_product(2, "Acme", 0, 0)]
        verdict = evaluate(products)
        assert verdict.in_stock_products == 1
        assert verdict.oos_products == 1
        assert verdict.all_oos is False

    def test_product_without_variants_is_out_of_stock(self):
        verdict = evaluate([make_product(1, "Acme")])
        assert verdict.all_oos is True

    def test_one_in_stock_product(self):
        """Scenario B verdict."""
        products = [make_product(1, "Acme", 0), make_product(2, "Acme", 5), make_product(3, "Acme", 0)]
        verdict = evaluate(products)
        assert verdict.in_stock_products == 1
        assert verdict.all_oos is False


ALL_OOS = StockVerdict(total_products=3, oos_products=3, in_stock_products=0, all_oos=True)
SOME_STOCK = StockVerdict(total_products=3, oos_products=2, in_stock_products=1, all_oos=False)
EMPTY = StockVerdict()


class TestDecide:
    @pytest.mark.parametrize(
        "previous, verdict, event, new_status",
        [
            (None, ALL_OOS, OUT_OF_STOCK, BrandStatus.OOS),
            (None, SOME_STOCK, None, BrandStatus.IN_STOCK),
            (BrandStatus.IN_STOCK, ALL_OOS, OUT_OF_STOCK, BrandStatus.OOS),
            (BrandStatus.IN_STOCK, SOME_STOCK, None, BrandStatus.IN_STOCK),
            (BrandStatus.OOS, ALL_OOS, None, BrandStatus.OOS),
            (BrandStatus.OOS, SOME_STOCK, BACK_IN_STOCK, BrandStatus.IN_STOCK),
        ],
    )
    def test_transition_table(self, previous, verdict, event, new_status):
        transition = decide(previous, verdict)
        assert transition.event == event
        assert transition.new_status is new_status
        assert transition.notify is (event is not None)

    def test_first_check_is_flagged(self):
        assert decide(None, ALL_OOS).first_check is True
        assert decide(BrandStatus.IN_STOCK, ALL_OOS).first_check is False

    def test_silent_first_check_is_not_flagged(self):
        transition = decide(None, SOME_STOCK)
        assert transition.notify is False
        assert transition.first_check is False

    @pytest.mark.parametrize("previous", [None, BrandStatus.IN_STOCK, BrandStatus.OOS])
    def test_empty_catalog_never_changes_state(self, previous):
        transition = decide(previous, EMPTY)
        assert transition.event is None
        assert transition.new_status is None

    def test_repeated_oos_does_not_notify_again(self):
        first = decide(BrandStatus.IN_STOCK, ALL_OOS)
        second = decide(first.new_status, ALL_OOS)
        assert first.notify is True
        assert second.notify is False
