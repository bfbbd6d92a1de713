from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from analytics.aggregations import category_rows
from analytics.charts import chart_data, dataset, with_spec
from analytics.config import DEFAULT_PAGE_SIZE
from analytics.filters import SortState, TableFilters
from analytics.formatting import format_int, format_percent, records, success_rate
from analytics.table import paginate, run_filters, sort_rows

SEARCH_FIELDS = ["category"]
CHART_TOP_N = 10

COLUMNS = [
    {"key": "category", "label": "Category", "sortable": True},
    {"key": "total_requests", "label": "Total Requests", "sortable": True},
    {"key": "success_count", "label": "Success", "sortable": True},
    {"key": "error_count", "label": "Errors", "sortable": True},
    {"key": "success_rate", "label": "Success Rate (%)", "sortable": True},
    {"key": "avg_processing_time", "label": "Avg Time (s)", "sortable": True},
    {"key": "unique_users", "label": "Unique Users", "sortable": True},
]


def filtered_view(filters: TableFilters, ctx: Dict[str, Any], sort: Optional[SortState] = None) -> pd.DataFrame:
    """Category table after search, structured filters and sort (not paginated)."""
    analytics = ctx.get("completeAnalytics")
    df = category_rows(analytics if isinstance(analytics, list) else None)
    return sort_rows(run_filters(df, filters, SEARCH_FIELDS), sort)


def _kpis(view: pd.DataFrame) -> Dict[str, Any]:
    total = int(view["total_requests"].sum()) if not view.empty else 0
    success = int(view["success_count"].sum()) if not view.empty else 0
    errors = int(view["error_count"].sum()) if not view.empty else 0
    return {
        "categories": int(len(view)),
        "total_requests": format_int(total),
        "success_rate": format_percent(success_rate(success, total), 1),
        "errors": format_int(errors),
    }


def compute_comprehensive(
    filters: TableFilters,
    ctx: Dict[str, Any],
    *,
    sort: Optional[SortState] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    view = filtered_view(filters, ctx, sort)
    result = paginate(view, page, page_size)

    chart_df = view.head(CHART_TOP_N)
    charts: Dict[str, Any] = {}
    if not chart_df.empty:
        charts["requests_by_category"] = with_spec(
            chart_data(
                "bar",
                chart_df["category"].tolist(),
                [
                    dataset("Total Requests", chart_df["total_requests"].tolist(), "#3B82F6"),
                    dataset("Errors", chart_df["error_count"].tolist(), "#EF4444"),
                ],
                label_limit=15,
                title="Requests by Category",
            )
        )

    analytics = ctx.get("completeAnalytics")
    all_rows = category_rows(analytics if isinstance(analytics, list) else None)
    return {
        "filters": asdict(filters),
        "sort": asdict(sort) if sort else None,
        "columns": COLUMNS,
        "kpis": _kpis(view),
        "table": result.rows,
        "pagination": {
            "page": result.page,
            "page_size": result.page_size,
            "total_items": result.total_items,
            "total_pages": result.total_pages,
        },
        "charts": charts,
        "category_options": list(dict.fromkeys(all_rows["category"].tolist())),
    }


def export_view(filters: TableFilters, ctx: Dict[str, Any], sort: Optional[SortState] = None) -> List[Dict[str, Any]]:
    return records(filtered_view(filters, ctx, sort))
