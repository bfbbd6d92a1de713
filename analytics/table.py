"""Filter -> sort -> paginate pipeline shared by every table screen."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from analytics.config import DEFAULT_PAGE_SIZE, SUCCESS_RATE_THRESHOLD
from analytics.filters import SortState, TableFilters
from analytics.formatting import records


@dataclass(frozen=True)
class Page:
    rows: List[Dict[str, Any]]
    page: int
    page_size: int
    total_items: int
    total_pages: int


def _missing(value: object) -> bool:
    """None, NaN, NaT and pd.NA; list cells are never missing."""
    if isinstance(value, (list, tuple, set, dict)):
        return False
    return value is None or bool(pd.isna(value))


def _contains(series: pd.Series, needle: str) -> pd.Series:
    def match(value: object) -> bool:
        if isinstance(value, (list, tuple, set)):
            return any(needle in str(v).lower() for v in value)
        if _missing(value):
            return False
        return needle in str(value).lower()

    return series.map(match).astype(bool)


def apply_search(df: pd.DataFrame, term: str, fields: Sequence[str]) -> pd.DataFrame:
    needle = (term or "").strip().lower()
    cols = [c for c in fields if c in df.columns]
    if not needle or df.empty or not cols:
        return df
    mask = pd.Series(False, index=df.index)
    for col in cols:
        mask |= _contains(df[col], needle)
    return df[mask]


def apply_filters(
    df: pd.DataFrame,
    filters: TableFilters,
    *,
    category_col: str = "category",
    rate_col: str = "success_rate",
    threshold: float = SUCCESS_RATE_THRESHOLD,
) -> pd.DataFrame:
    if df.empty:
        return df
    out = df
    if filters.category and category_col in out.columns:
        out = out[_contains(out[category_col], filters.category.lower())]

    if filters.status and rate_col in out.columns:
        rate = pd.to_numeric(out[rate_col], errors="coerce")
        if filters.status == "success":
            out = out[rate > threshold]
        elif filters.status == "error":
            out = out[rate <= threshold]

    for col, rng in filters.ranges.items():
        if not rng.is_set or col not in out.columns:
            continue
        values = pd.to_numeric(out[col], errors="coerce")
        mask = pd.Series(True, index=out.index)
        if rng.min is not None:
            mask &= values >= rng.min
        if rng.max is not None:
            mask &= values <= rng.max
        out = out[mask]
    return out


def run_filters(df: pd.DataFrame, filters: TableFilters, search_fields: Sequence[str], **kwargs: Any) -> pd.DataFrame:
    """Search first, then the structured filters."""
    return apply_filters(apply_search(df, filters.search, search_fields), filters, **kwargs)


def sort_rows(df: pd.DataFrame, sort: Optional[SortState]) -> pd.DataFrame:
    """Stable single-key sort; missing values always go last.

    Numeric columns compare numerically, anything else as lowercase text.
    Ties keep their input order in both directions.
    """
    if sort is None or df.empty or sort.key not in df.columns:
        return df
    column = df[sort.key]
    numeric = pd.api.types.is_numeric_dtype(column) and not pd.api.types.is_bool_dtype(column)

    present: List[tuple] = []
    missing: List[int] = []
    for pos, value in enumerate(column.tolist()):
        if _missing(value):
            missing.append(pos)
        else:
            present.append((float(value) if numeric else str(value).lower(), pos))

    present.sort(key=lambda item: item[0], reverse=sort.direction == "desc")
    order = [pos for _, pos in present] + missing
    return df.iloc[order]


def total_pages(total_items: int, page_size: int) -> int:
    return math.ceil(total_items / page_size) if page_size > 0 else 0


def clamp_page(page: int, total_items: int, page_size: int) -> int:
    last = max(1, total_pages(total_items, page_size))
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    return min(max(1, page), last)


def paginate(df: pd.DataFrame, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    page_size = max(1, int(page_size))
    count = int(len(df))
    page = clamp_page(page, count, page_size)
    start = (page - 1) * page_size
    window = df.iloc[start : start + page_size]
    return Page(
        rows=records(window),
        page=page,
        page_size=page_size,
        total_items=count,
        total_pages=total_pages(count, page_size),
    )


def iter_pages(df: pd.DataFrame, page_size: int) -> Iterable[Page]:
    pages = total_pages(len(df), page_size)
    for number in range(1, pages + 1):
        yield paginate(df, number, page_size)
