from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from analytics.charts import chart_data, dataset, with_spec
from analytics.formatting import as_float, format_int

DAILY_SCAN_DAYS = 7
LINKS_TOP_N = 10
RECENT_LINKS_N = 10
DEVICES = [("mobile", "Mobile"), ("tablet", "Tablet"), ("desktop", "Desktop")]


def qr_summary(qr: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(qr, dict):
        return None
    analytics = qr.get("analytics") or {}
    time_stats = analytics.get("timeStats") or {}
    return {
        "total_scans": qr.get("qr_scan_count") or analytics.get("averageDailyScans") or 0,
        "device_breakdown": analytics.get("deviceBreakdown") or {},
        "daily_scans": time_stats.get("dailyScans") or {},
    }


def normalize_links(raw: Any) -> List[Dict[str, Any]]:
    """Accept a list, a ``{"data": [...]}`` wrapper, or a single link object."""
    if raw is None:
        return []
    if isinstance(raw, list):
        items = raw
    elif isinstance(raw, dict):
        items = raw["data"] if isinstance(raw.get("data"), list) else [raw]
    else:
        return []

    links = []
    for position, link in enumerate(items):
        if not isinstance(link, dict):
            continue
        links.append(
            {
                "id": str(link.get("_id") or link.get("id") or f"link-{position + 1}"),
                "name": link.get("name") or "Unnamed Link",
                "click_rate": as_float(link.get("clickRate")),
                "total_clicks": int(as_float(link.get("totalClicks"))),
                "is_active": bool(link["isActive"]) if link.get("isActive") is not None else True,
                "created_at": link.get("createdAt"),
                "last_clicked_at": link.get("lastClickedAt"),
                "redirect_link": link.get("redirect_link") or link.get("redirectLink") or "#",
            }
        )
    return links


def device_chart(summary: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not summary:
        return None
    breakdown = summary["device_breakdown"]
    values = [as_float(breakdown.get(key)) for key, _ in DEVICES]
    if sum(values) <= 0:
        return None
    return with_spec(chart_data("doughnut", [label for _, label in DEVICES], [dataset("Scans", values)], title="Device Breakdown"))


def daily_scans_chart(summary: Optional[Dict[str, Any]], days: int = DAILY_SCAN_DAYS) -> Optional[Dict[str, Any]]:
    if not summary or not summary["daily_scans"]:
        return None
    scans = summary["daily_scans"]
    dates = sorted(scans)[-days:]
    labels = [
        ts.strftime("%Y-%m-%d") if pd.notna(ts) else str(raw)
        for raw, ts in zip(dates, pd.to_datetime(pd.Series(dates), errors="coerce"))
    ]
    return with_spec(
        chart_data("line", labels, [dataset("Daily Scans", [as_float(scans[d]) for d in dates], "#3B82F6")], title="Daily Scan Trends")
    )


def links_chart(links: List[Dict[str, Any]], top_n: int = LINKS_TOP_N) -> Optional[Dict[str, Any]]:
    top = links[:top_n]
    if not top:
        return None
    return with_spec(
        chart_data(
            "bar",
            [link["name"] for link in top],
            [dataset("Total Clicks", [link["total_clicks"] for link in top], "#10B981")],
            label_limit=15,
            title="Top Performing Links",
        )
    )


def compute_qr_smart_links(ctx: Dict[str, Any]) -> Dict[str, Any]:
    qr = qr_summary(ctx.get("qrAnalytics"))
    links = normalize_links(ctx.get("smartLinks"))

    total_scans = as_float(qr["total_scans"]) if qr else 0.0
    total_clicks = sum(link["total_clicks"] for link in links)
    active = sum(1 for link in links if link["is_active"])

    charts: Dict[str, Any] = {}
    for name, chart in [
        ("daily_scans", daily_scans_chart(qr)),
        ("device_breakdown", device_chart(qr)),
        ("top_links", links_chart(links)),
    ]:
        if chart is not None:
            charts[name] = chart
    if total_scans or total_clicks:
        charts["comparison"] = with_spec(
            chart_data(
                "doughnut",
                ["QR Code Scans", "Smart Link Clicks"],
                [dataset("Total", [total_scans, total_clicks])],
                title="QR vs Smart Links Comparison",
            )
        )

    return {
        "kpis": {
            "total_qr_scans": format_int(total_scans),
            "smart_links": format_int(len(links)),
            "total_clicks": format_int(total_clicks),
            "active_links": format_int(active),
        },
        "qr": qr,
        "links": links,
        "recent_links": links[:RECENT_LINKS_N],
        "charts": charts,
    }
