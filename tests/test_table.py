from __future__ import annotations

import math

import pandas as pd
import pytest

from analytics.aggregations import category_rows
from analytics.filters import NumericRange, SortState, TableFilters, normalize_filters, toggle_sort
from analytics.table import apply_search, clamp_page, iter_pages, paginate, run_filters, sort_rows


@pytest.fixture
def rows(category_records):
    return category_rows(category_records)


def test_empty_filters_are_no_ops(rows):
    unset = normalize_filters({"search": "", "category": None, "status": "", "ranges": {"total_requests": {"min": None, "max": ""}}})
    assert unset == TableFilters()

    by_default = run_filters(rows, TableFilters(), ["category"])
    by_unset = run_filters(rows, unset, ["category"])
    pd.testing.assert_frame_equal(by_default, rows)
    pd.testing.assert_frame_equal(by_unset, rows)


def test_search_is_case_insensitive_substring():
    df = category_rows(
        [
            {"category": "Beauty queen", "totalRequests": 1, "successCount": 1},
            {"category": "Home decor", "totalRequests": 1, "successCount": 1},
        ]
    )
    out = apply_search(df, "beauty", ["category"])
    assert out["category"].tolist() == ["Beauty queen"]


def test_search_matches_any_field_and_list_cells():
    df = pd.DataFrame({"id": ["u1", "u2", "u3"], "categories": [["Home"], ["Beauty"], []]})
    assert apply_search(df, "BEAU", ["id", "categories"])["id"].tolist() == ["u2"]
    assert apply_search(df, "u3", ["id", "categories"])["id"].tolist() == ["u3"]


def test_structured_filters_are_and_combined(rows):
    filters = TableFilters(category="a", status="success", ranges={"total_requests": NumericRange(min=50, max=100)})
    out = run_filters(rows, filters, ["category"])
    # beauty tips is below the min, Beauty queen exceeds the max
    assert out["category"].tolist() == ["Fashion"]


def test_status_bucket_threshold_is_ninety_percent():
    df = category_rows(
        [
            {"category": "exactly", "totalRequests": 10, "successCount": 9},
            {"category": "above", "totalRequests": 100, "successCount": 91},
        ]
    )
    assert run_filters(df, TableFilters(status="success"), [])["category"].tolist() == ["above"]
    assert run_filters(df, TableFilters(status="error"), [])["category"].tolist() == ["exactly"]


def test_sort_numeric_and_text(rows):
    by_requests = sort_rows(rows, SortState("total_requests", "desc"))
    assert by_requests["total_requests"].tolist() == [120, 80, 80, 45, 9]

    by_name = sort_rows(rows, SortState("category", "asc"))
    assert by_name["category"].tolist() == ["Beauty queen", "beauty tips", "Fashion", "Food", "Home decor"]


def test_reversing_direction_reverses_except_ties(rows):
    asc = sort_rows(rows, SortState("total_requests", "asc"))["category"].tolist()
    desc = sort_rows(rows, SortState("total_requests", "desc"))["category"].tolist()

    # Home decor and Fashion tie at 80 and keep input order both ways
    assert asc == ["Food", "beauty tips", "Home decor", "Fashion", "Beauty queen"]
    assert desc == ["Beauty queen", "Home decor", "Fashion", "beauty tips", "Food"]


def test_missing_values_sort_last():
    df = pd.DataFrame({"v": [2.0, math.nan, 1.0]})
    assert sort_rows(df, SortState("v", "asc"))["v"].tolist()[:2] == [1.0, 2.0]
    assert sort_rows(df, SortState("v", "desc"))["v"].tolist()[:2] == [2.0, 1.0]


def test_toggle_sort():
    first = toggle_sort(None, "category")
    assert first == SortState("category", "asc")
    assert first.toggle("category") == SortState("category", "desc")
    assert first.toggle("category").toggle("category") == SortState("category", "asc")
    assert SortState("category", "desc").toggle("total_requests") == SortState("total_requests", "asc")


@pytest.mark.parametrize("length,size", [(0, 5), (1, 5), (5, 5), (23, 5), (23, 7), (40, 20)])
def test_page_lengths_sum_to_total(length, size):
    df = pd.DataFrame({"n": range(length)})
    pages = list(iter_pages(df, size))

    assert len(pages) == math.ceil(length / size)
    assert sum(len(p.rows) for p in pages) == length
    assert all(len(p.rows) == size for p in pages[:-1])
    if pages:
        assert pages[0].total_pages == len(pages)


def test_out_of_range_page_is_clamped():
    df = pd.DataFrame({"n": range(12)})
    last = paginate(df, page=9, page_size=5)
    assert last.page == 3
    assert [r["n"] for r in last.rows] == [10, 11]
    assert paginate(df, page=0, page_size=5).page == 1
    assert clamp_page(4, 0, 20) == 1


def test_missing_timestamps_sort_last():
    df = pd.DataFrame(
        {
            "id": ["a", "b", "c"],
            "last_activity": pd.to_datetime([None, "2025-07-02T00:00:00Z", "2025-07-01T00:00:00Z"], utc=True),
        }
    )
    assert sort_rows(df, SortState("last_activity", "asc"))["id"].tolist() == ["c", "b", "a"]
    assert sort_rows(df, SortState("last_activity", "desc"))["id"].tolist() == ["b", "c", "a"]
