from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from analytics.aggregations import (
    active_users,
    aggregate_users,
    average_engagement,
    category_flow,
    segment_users,
)
from analytics.charts import chart_data, dataset, with_spec
from analytics.filters import SortState
from analytics.formatting import records, round_half_up
from analytics.table import apply_search, sort_rows

SEARCH_FIELDS = ["id", "categories"]
FLOW_TOP_N = 10


def _requests(ctx: Dict[str, Any]) -> List[Dict[str, Any]]:
    user_analytics = ctx.get("userAnalytics")
    if not isinstance(user_analytics, dict):
        return []
    return list(user_analytics.get("userRequests") or [])


def user_view(ctx: Dict[str, Any], q: str = "", sort: Optional[SortState] = None) -> pd.DataFrame:
    users = aggregate_users(_requests(ctx))
    return sort_rows(apply_search(users, q, SEARCH_FIELDS), sort)


def compute_user_analytics(
    ctx: Dict[str, Any],
    *,
    q: str = "",
    sort: Optional[SortState] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    requests = _requests(ctx)
    all_users = aggregate_users(requests)
    users = sort_rows(apply_search(all_users, q, SEARCH_FIELDS), sort)

    segments = segment_users(all_users)
    flow = category_flow(requests, FLOW_TOP_N)

    charts: Dict[str, Any] = {}
    if not all_users.empty:
        charts["segmentation"] = with_spec(
            chart_data(
                "doughnut",
                list(segments),
                [dataset("Users", list(segments.values()))],
                title="User Segmentation",
            )
        )
    if flow:
        charts["category_flow"] = with_spec(
            chart_data(
                "bar",
                [f["category"] for f in flow],
                [dataset("Requests", [f["requests"] for f in flow], "#8B5CF6")],
                label_limit=15,
                title="Category Flow",
            )
        )

    return {
        "q": (q or "").strip(),
        "summary": {
            "total_users": int(len(users)),
            "avg_engagement": round_half_up(average_engagement(users), 1),
            "active_users": active_users(users, now=now),
        },
        "users": records(users),
        "segments": segments,
        "flow": flow,
        "charts": charts,
    }
