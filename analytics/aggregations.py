from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from analytics.config import ACTIVE_USER_DAYS
from analytics.formatting import round_half_up

# API field -> table column
CATEGORY_COLUMNS = {
    "category": "category",
    "totalRequests": "total_requests",
    "successCount": "success_count",
    "errorCount": "error_count",
    "avgProcessingTime": "avg_processing_time",
    "uniqueUserCount": "unique_users",
}

REQUEST_COLUMNS = {
    "_id": "id",
    "userId": "user_id",
    "category": "category",
    "timeStamp": "timestamp",
    "resStatus": "res_status",
    "userAgent": "user_agent",
    "ipAddress": "ip_address",
}

USER_COLUMNS = [
    "id",
    "total_requests",
    "successful_requests",
    "categories",
    "first_activity",
    "last_activity",
    "user_agent",
    "ip_address",
    "success_rate",
    "engagement_score",
    "engagement_level",
]

ENGAGEMENT_HIGH = 80
ENGAGEMENT_MEDIUM = 40


def engagement_score(total_requests: int, distinct_categories: int) -> int:
    return min(100, int(total_requests) * 10 + int(distinct_categories) * 5)


def engagement_level(score: float) -> str:
    if score >= ENGAGEMENT_HIGH:
        return "High"
    if score >= ENGAGEMENT_MEDIUM:
        return "Medium"
    return "Low"


def _records_frame(rows: Optional[Iterable[Dict[str, Any]]], mapping: Dict[str, str]) -> pd.DataFrame:
    items = [r for r in (rows or []) if isinstance(r, dict)]
    df = pd.DataFrame(items)
    for col in mapping:
        if col not in df.columns:
            df[col] = None
    return df[list(mapping)].rename(columns=mapping)


def category_rows(analytics: Optional[Iterable[Dict[str, Any]]]) -> pd.DataFrame:
    """Per-category API records -> table rows with a derived success rate (percent)."""
    df = _records_frame(analytics, CATEGORY_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=list(CATEGORY_COLUMNS.values()) + ["success_rate"])

    df["category"] = df["category"].fillna("").astype(str)
    for col in ["total_requests", "success_count", "error_count", "unique_users"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    df["avg_processing_time"] = pd.to_numeric(df["avg_processing_time"], errors="coerce").fillna(0.0).round(2)

    totals = df["total_requests"].where(df["total_requests"] > 0)
    rate = (df["success_count"] / totals * 100).fillna(0.0)
    df["success_rate"] = rate.map(lambda v: round_half_up(v, 2))
    return df[
        [
            "category",
            "total_requests",
            "success_count",
            "error_count",
            "success_rate",
            "avg_processing_time",
            "unique_users",
        ]
    ].reset_index(drop=True)


def request_rows(requests: Optional[Iterable[Dict[str, Any]]]) -> pd.DataFrame:
    df = _records_frame(requests, REQUEST_COLUMNS)
    if df.empty:
        return df
    df["user_id"] = df["user_id"].astype("string")
    df["ts"] = pd.to_datetime(df["timestamp"], errors="coerce", utc=True)
    df["ok"] = pd.to_numeric(df["res_status"], errors="coerce").eq(200)
    return df


def aggregate_users(requests: Optional[Iterable[Dict[str, Any]]]) -> pd.DataFrame:
    """Fold raw request records into one row per user, in first-appearance order."""
    df = request_rows(requests)
    if df.empty:
        return pd.DataFrame(columns=USER_COLUMNS)
    df = df.dropna(subset=["user_id"])
    if df.empty:
        return pd.DataFrame(columns=USER_COLUMNS)

    grouped = df.groupby("user_id", sort=False)
    users = grouped.agg(
        total_requests=("ok", "size"),
        successful_requests=("ok", "sum"),
        first_activity=("ts", "min"),
        last_activity=("ts", "max"),
    )
    distinct = {uid: list(dict.fromkeys(s.dropna().astype(str))) for uid, s in grouped["category"]}
    users["categories"] = pd.Series([distinct[uid] for uid in users.index], index=users.index, dtype=object)
    # User agent and IP come together from each user's most recent request.
    latest = (
        df.sort_values("ts", kind="stable", na_position="first")
        .drop_duplicates("user_id", keep="last")
        .set_index("user_id")[["user_agent", "ip_address"]]
    )
    users = users.join(latest)
    users.index.name = "id"
    users = users.reset_index()

    users["total_requests"] = users["total_requests"].astype(int)
    users["successful_requests"] = users["successful_requests"].astype(int)
    users["success_rate"] = [
        round_half_up(ok / total * 100, 1) if total else 0.0
        for ok, total in zip(users["successful_requests"], users["total_requests"])
    ]
    users["engagement_score"] = [
        engagement_score(total, len(cats)) for total, cats in zip(users["total_requests"], users["categories"])
    ]
    users["engagement_level"] = users["engagement_score"].map(engagement_level)
    users["id"] = users["id"].astype(str)
    return users[USER_COLUMNS]


def segment_users(users: pd.DataFrame) -> Dict[str, int]:
    scores = users["engagement_score"] if "engagement_score" in users.columns else pd.Series(dtype=float)
    return {
        "High Engagement": int((scores >= ENGAGEMENT_HIGH).sum()),
        "Medium Engagement": int(((scores >= ENGAGEMENT_MEDIUM) & (scores < ENGAGEMENT_HIGH)).sum()),
        "Low Engagement": int((scores < ENGAGEMENT_MEDIUM).sum()),
    }


def category_flow(requests: Optional[Iterable[Dict[str, Any]]], top_n: int = 10) -> List[Dict[str, Any]]:
    """Request counts per category, highest first; ties keep first-appearance order."""
    df = request_rows(requests)
    if df.empty:
        return []
    counts = (
        df.dropna(subset=["category"])
        .groupby("category", sort=False)
        .size()
        .sort_values(ascending=False, kind="stable")
        .head(top_n)
    )
    return [{"category": str(cat), "requests": int(n)} for cat, n in counts.items()]


def active_users(users: pd.DataFrame, now: Optional[datetime] = None, days: int = ACTIVE_USER_DAYS) -> int:
    if users.empty or "last_activity" not in users.columns:
        return 0
    now = now or datetime.now(timezone.utc)
    cutoff = pd.Timestamp(now - timedelta(days=days))
    if cutoff.tzinfo is None:
        cutoff = cutoff.tz_localize("UTC")
    last = pd.to_datetime(users["last_activity"], errors="coerce", utc=True)
    return int((last >= cutoff).sum())


def average_engagement(users: pd.DataFrame) -> float:
    if users.empty:
        return 0.0
    return float(users["engagement_score"].mean())
