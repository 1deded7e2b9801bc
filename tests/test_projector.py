"""Tests for the derived-view projector."""

import copy
from datetime import date, datetime
from decimal import Decimal

import pytest

from stockpilot.models.product import StockStatus
from stockpilot.models.returns import SaleItem
from stockpilot.services.projector import (
    ViewFilters,
    clamp_page,
    classify_stock,
    collapse_range,
    derive_row,
    effective_threshold,
    format_price_range,
    paginate,
    project,
    restock_progress,
    summarize_sales,
)


@pytest.fixture
def catalog_products(make_product):
    """Twelve products across two categories."""
    products = []
    for i in range(12):
        category = "Shirts" if i % 2 == 0 else "Shoes"
        products.append(make_product(f"p-{i}", f"Item {i}", [(f"v-{i}", f"SKU-{i}", "9.99", 10, 3)],
                                     category=category))
    return products


class TestPagination:
    def test_total_pages_is_ceiling(self, catalog_products):
        view = project(catalog_products, page=1, page_size=5)

        assert view.total_pages == 3
        assert view.total_items == 12
        assert len(view.rows) == 5

    def test_last_page_is_partial(self, catalog_products):
        view = project(catalog_products, page=3, page_size=5)

        assert [row.product_id for row in view.rows] == ["p-10", "p-11"]

    def test_page_past_the_end_is_empty(self, catalog_products):
        view = project(catalog_products, page=4, page_size=5)

        assert view.rows == []
        assert view.total_pages == 3

    def test_page_zero_is_empty(self, catalog_products):
        assert project(catalog_products, page=0, page_size=5).rows == []

    def test_empty_input(self):
        view = project([], page=1, page_size=10)

        assert view.rows == []
        assert view.total_pages == 0

    def test_page_size_must_be_positive(self, catalog_products):
        with pytest.raises(ValueError):
            project(catalog_products, page=1, page_size=0)

    def test_clamp_page_after_filter_narrowed(self):
        assert clamp_page(5, 2) == 2
        assert clamp_page(0, 2) == 1
        assert clamp_page(3, 0) == 1

    def test_generic_paginate(self):
        view = paginate(list(range(7)), 2, 3)

        assert view.rows == [3, 4, 5]
        assert view.total_pages == 3


class TestFiltering:
    def test_search_matches_name_brand_or_first_sku(self, sample_products):
        assert [r.product_id for r in project(sample_products, ViewFilters("tee")).rows] == ["p-1"]
        assert [r.product_id for r in project(sample_products, ViewFilters("FOOTY")).rows] == ["p-2"]
        assert [r.product_id for r in project(sample_products, ViewFilters("sock-b")).rows] == ["p-2"]

    def test_category_filter(self, catalog_products):
        view = project(catalog_products, ViewFilters(category="Shoes"), page=1, page_size=50)

        assert view.total_items == 6
        assert all(row.category == "Shoes" for row in view.rows)

    def test_category_compared_exactly(self, catalog_products):
        assert project(catalog_products, ViewFilters(category="shoes"), page_size=50).total_items == 0

    def test_search_and_category_combine(self, catalog_products):
        view = project(catalog_products, ViewFilters(search_text="Item 1", category="Shoes"), page_size=50)

        assert sorted(row.product_id for row in view.rows) == ["p-1", "p-11"]

    def test_input_not_mutated(self, catalog_products):
        before = copy.deepcopy(catalog_products)

        project(catalog_products, ViewFilters("item"), page=2, page_size=5)
        project(catalog_products, ViewFilters("item"), page=2, page_size=5)

        assert catalog_products == before


class TestClassification:
    @pytest.mark.parametrize("stock,threshold,expected", [
        (0, 5, StockStatus.OUT_OF_STOCK),
        (4, 5, StockStatus.LOW_STOCK),
        (5, 5, StockStatus.IN_STOCK),
        (6, 5, StockStatus.IN_STOCK),
        (0, None, StockStatus.OUT_OF_STOCK),
        (1, None, StockStatus.IN_STOCK),
    ])
    def test_status_boundaries(self, stock, threshold, expected):
        assert classify_stock(stock, threshold) == expected

    def test_missing_thresholds_never_low(self, make_product):
        product = make_product("p", "Mug", [("v1", "M1", "3", 1, None), ("v2", "M2", "3", 1, None)])

        row = derive_row(product)

        assert row.stock_total == 2
        assert row.status == StockStatus.IN_STOCK

    def test_smallest_threshold_wins(self, make_product):
        product = make_product("p", "Cap", [("v1", "C1", "3", 2, 10), ("v2", "C2", "3", 2, 3)])

        assert effective_threshold(product.variants) == 3
        assert derive_row(product).status == StockStatus.IN_STOCK

    def test_missing_threshold_ignored_in_minimum(self, make_product):
        product = make_product("p", "Cap", [("v1", "C1", "3", 2, None), ("v2", "C2", "3", 2, 10)])

        assert effective_threshold(product.variants) == 10
        assert derive_row(product).status == StockStatus.LOW_STOCK

    def test_no_variants_is_out_of_stock(self, make_product):
        row = derive_row(make_product("p", "Ghost", []))

        assert row.status == StockStatus.OUT_OF_STOCK
        assert row.price_range is None
        assert row.sku == ""

    def test_restock_progress(self, sample_products):
        tee, socks = sample_products[0].variants[0], sample_products[1].variants[0]

        assert restock_progress(tee) == 100
        assert restock_progress(socks) == 60


class TestPriceRange:
    def test_equal_prices_collapse_to_scalar(self, make_product):
        product = make_product("p", "Tee", [("v1", "T1", "10.00", 1, 1), ("v2", "T2", "10", 1, 1)])

        row = derive_row(product)

        assert row.price_range == Decimal("10")
        assert not isinstance(row.price_range, tuple)

    def test_distinct_prices_form_range(self, make_product):
        product = make_product("p", "Tee", [("v1", "T1", "12.50", 1, 1), ("v2", "T2", "8", 1, 1)])

        assert derive_row(product).price_range == (Decimal("8"), Decimal("12.50"))

    def test_collapse_empty(self):
        assert collapse_range([]) is None

    def test_format(self):
        assert format_price_range(Decimal("10"), "$") == "$10.00"
        assert format_price_range((Decimal("5"), Decimal("10")), "$") == "$5.00 - $10.00"


class TestSalesSummary:
    @pytest.fixture
    def sale_lines(self):
        def line(item_id, name, total, day):
            return SaleItem(id=item_id, product_name=name, variant_name="", variant_id=None, quantity=1,
                            unit_price=Decimal(total), total_price=Decimal(total),
                            purchased_at=datetime(2024, 1, day, 12, 0))
        return [line("1", "Tee", "10.00", 15), line("2", "Socks", "5.00", 15), line("3", "Tee", "10.00", 16)]

    def test_filters_by_day_and_totals_revenue(self, sale_lines):
        summary = summarize_sales(sale_lines, day=date(2024, 1, 15))

        assert [item.id for item in summary.items] == ["1", "2"]
        assert summary.total_revenue == Decimal("15.00")

    def test_filters_by_product_name(self, sale_lines):
        summary = summarize_sales(sale_lines, search_text="tee")

        assert summary.total_revenue == Decimal("20.00")
