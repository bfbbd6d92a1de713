"""Exportable views per screen, shared by the API and the Streamlit shell."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from analytics.filters import SortState, TableFilters
from analytics.formatting import records
from analytics.metrics_comprehensive import export_view
from analytics.metrics_links import compute_qr_smart_links
from analytics.metrics_users import user_view

# page -> cache keys the export reads
EXPORT_KEYS: Dict[str, tuple] = {
    "comprehensive": ("completeAnalytics",),
    "users": ("userAnalytics",),
    "links": ("qrAnalytics", "smartLinks"),
}


def export_rows_for(
    page: str,
    ctx: Dict[str, Any],
    filters: Optional[TableFilters] = None,
    sort: Optional[SortState] = None,
) -> List[Dict[str, Any]]:
    """Filtered and sorted (never paginated) rows of ``page``."""
    filters = filters or TableFilters()
    if page == "comprehensive":
        return export_view(filters, ctx, sort)
    if page == "users":
        return records(user_view(ctx, filters.search, sort))
    if page == "links":
        return compute_qr_smart_links(ctx)["links"]
    raise ValueError(f"No export view for page {page!r}")
