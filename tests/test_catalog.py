"""Tests for catalog filtering and in-memory pagination."""

import math

import pytest

from catalog import (
    build_query,
    catalog_page,
    columns_for_width,
    items_per_page,
    paginate,
    search_products,
)
from tests.conftest import make_product


@pytest.mark.parametrize(
    "width,columns",
    [(None, 1), (320, 1), (639, 1), (640, 2), (1023, 2), (1024, 3), (1920, 3)],
)
def test_columns_for_width(width, columns):
    assert columns_for_width(width) == columns


def test_items_per_page_is_six_rows():
    assert [items_per_page(c) for c in (1, 2, 3)] == [6, 12, 18]


@pytest.mark.parametrize("n", [0, 1, 5, 6, 7, 18, 40])
@pytest.mark.parametrize("columns", [1, 2, 3])
def test_pages_cover_items_exactly(n, columns):
    items = [{"n": i} for i in range(n)]
    per_page = items_per_page(columns)
    pages = max(1, math.ceil(n / per_page))
    for k in range(1, pages + 1):
        start, end = (k - 1) * per_page, min(k * per_page, n)
        assert paginate(items, k, per_page) == items[start:end]


def test_page_past_end_is_empty():
    assert paginate([{"n": 1}], 3, 6) == []


def test_page_below_one_is_first_page():
    items = [{"n": i} for i in range(10)]
    assert paginate(items, 0, 6) == items[:6]


def test_catalog_page_metadata():
    items = [{"n": i} for i in range(20)]
    page = catalog_page(items, 2, 2)
    assert page["per_page"] == 12
    assert page["pages"] == 2
    assert page["total"] == 20
    assert page["items"] == items[12:20]


class TestBuildQuery:
    def test_all_disables_filters(self):
        assert build_query("", "All", "All") == {}
        assert build_query(None, None, None) == {}

    def test_filters_are_independent(self):
        query = build_query(None, None, "Consoles")
        assert query == {"subcategory": "Consoles"}

    def test_search_is_literal_and_case_insensitive(self):
        query = build_query("ps5 (pro)", "Gaming", None)
        assert query["name"]["$options"] == "i"
        assert query["name"]["$regex"] == r"ps5\ \(pro\)"
        assert query["category"] == "Gaming"


class TestSearchProducts:
    @pytest.fixture(autouse=True)
    def seed(self, db):
        make_product(db, "PS5 Console", 1500, category="Gaming", subcategory="Consoles")
        make_product(db, "PS5 Controller", 250, category="Gaming", subcategory="Accessories")
        make_product(db, "Dune Blu-ray", 60, category="Films", subcategory="Sci-Fi")

    def test_substring_match(self, db):
        names = {p["name"] for p in search_products(db, q="ps5")}
        assert names == {"PS5 Console", "PS5 Controller"}

    def test_category_and_subcategory(self, db):
        results = search_products(db, category="Gaming", subcategory="Accessories")
        assert [p["name"] for p in results] == ["PS5 Controller"]

    def test_results_carry_string_ids(self, db):
        results = search_products(db)
        assert len(results) == 3
        assert all(isinstance(p["id"], str) and "_id" not in p for p in results)

    def test_no_match_is_empty(self, db):
        assert search_products(db, q="xbox") == []
