from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from analytics.aggregations import category_rows
from analytics.charts import PALETTE, chart_data, dataset, with_spec
from analytics.formatting import (
    TREND_OFFSETS,
    format_int,
    format_percent,
    synthetic_previous,
    trend,
    truncate_label,
)

TREND_TOP_N = 10
DISTRIBUTION_TOP_N = 5
PERFORMANCE_TOP_N = 10
RECENT_ACTIVITY_N = 10


def _kpi(title: str, value: str, raw: Any, trend_key: str, color: str) -> Dict[str, Any]:
    previous = synthetic_previous(raw, TREND_OFFSETS[trend_key])
    return {"title": title, "value": value, "raw": raw, "trend": trend(raw, previous), "color": color}


def compute_kpis(summary: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not isinstance(summary, dict):
        return []
    return [
        _kpi("Total Requests", format_int(summary.get("totalRequests")), summary.get("totalRequests"), "total_requests", "blue"),
        _kpi("Success Rate", format_percent(summary.get("successRate"), 1), summary.get("successRate"), "success_rate", "green"),
        _kpi("Unique Users", format_int(summary.get("uniqueUserCount")), summary.get("uniqueUserCount"), "unique_users", "purple"),
        _kpi("Error Rate", format_percent(summary.get("errorRate"), 2), summary.get("errorRate"), "error_rate", "red"),
    ]


def compute_charts(analytics: Any) -> Dict[str, Any]:
    df = category_rows(analytics if isinstance(analytics, list) else None)
    if df.empty:
        return {}

    trend_df = df.head(TREND_TOP_N)
    perf_df = df.head(PERFORMANCE_TOP_N)
    dist_df = df.head(DISTRIBUTION_TOP_N)
    return {
        "request_trends": with_spec(
            chart_data(
                "line",
                trend_df["category"].tolist(),
                [dataset("Total Requests", trend_df["total_requests"].tolist(), PALETTE[0])],
                label_limit=20,
                title="Request Trends",
            )
        ),
        "category_distribution": with_spec(
            chart_data(
                "doughnut",
                dist_df["category"].tolist(),
                [dataset("Requests", dist_df["total_requests"].tolist())],
                title="Category Distribution",
            )
        ),
        "performance": with_spec(
            chart_data(
                "bar",
                perf_df["category"].tolist(),
                [
                    dataset("Success Count", perf_df["success_count"].tolist(), "#10B981"),
                    dataset("Error Count", perf_df["error_count"].tolist(), "#EF4444"),
                ],
                label_limit=15,
                title="Performance Overview",
            )
        ),
    }


def recent_activity(user_analytics: Any, limit: int = RECENT_ACTIVITY_N) -> List[Dict[str, Any]]:
    requests = user_analytics.get("userRequests") if isinstance(user_analytics, dict) else None
    if not requests:
        return []
    out = []
    for request in requests[:limit]:
        ts = pd.to_datetime(request.get("timeStamp"), errors="coerce", utc=True)
        out.append(
            {
                "id": request.get("_id"),
                "action": request.get("category"),
                "user": request.get("userId"),
                "time": ts.strftime("%Y-%m-%d %H:%M:%S") if pd.notna(ts) else None,
                "status": "success" if request.get("resStatus") == 200 else "error",
                "details": truncate_label(request.get("userAgent"), 50),
            }
        )
    return out


def compute_executive(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "kpis": compute_kpis(ctx.get("summary")),
        "charts": compute_charts(ctx.get("completeAnalytics")),
        "recent_activity": recent_activity(ctx.get("userAnalytics")),
    }
