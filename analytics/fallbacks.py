"""Static example datasets substituted when a live fetch fails.

The substitution is a product decision for demo deployments; pass
``FallbackProvider.disabled()`` to the store to surface errors instead.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional


SUMMARY_FALLBACK: Dict[str, Any] = {
    "totalRequests": 1248,
    "successCount": 1163,
    "systemErrorCount": 12,
    "successfulRequests": 1163,
    "clientErrorRequests": 73,
    "serverErrorRequests": 12,
    "minProcessingTime": 0.42,
    "maxProcessingTime": 18.6,
    "avgProcessingTime": 3.27,
    "uniqueUserCount": 214,
    "uniqueCategoryCount": 6,
    "successRate": 93.19,
    "errorRate": 6.81,
}

COMPLETE_ANALYTICS_FALLBACK = [
    {"category": "Beauty queen", "totalRequests": 412, "successCount": 398, "errorCount": 14, "avgProcessingTime": 2.91, "uniqueUserCount": 88},
    {"category": "Home decor", "totalRequests": 301, "successCount": 262, "errorCount": 39, "avgProcessingTime": 4.02, "uniqueUserCount": 61},
    {"category": "Fashion & apparel", "totalRequests": 214, "successCount": 205, "errorCount": 9, "avgProcessingTime": 3.15, "uniqueUserCount": 47},
    {"category": "Food photography", "totalRequests": 166, "successCount": 149, "errorCount": 17, "avgProcessingTime": 3.66, "uniqueUserCount": 35},
    {"category": "Festive greetings", "totalRequests": 97, "successCount": 95, "errorCount": 2, "avgProcessingTime": 2.48, "uniqueUserCount": 29},
    {"category": "Product catalogue", "totalRequests": 58, "successCount": 54, "errorCount": 4, "avgProcessingTime": 5.12, "uniqueUserCount": 14},
]

CATEGORIES_ANALYTICS_FALLBACK = [
    {"category": row["category"], "count": row["totalRequests"]} for row in COMPLETE_ANALYTICS_FALLBACK
]

USER_ANALYTICS_FALLBACK: Dict[str, Any] = {
    "userRequests": [
        {"_id": "r-1001", "userId": "919015190754", "category": "Beauty queen", "timeStamp": "2025-07-28T09:14:05Z", "resStatus": 200, "userAgent": "WhatsApp/2.24.14 A", "ipAddress": "10.0.4.17"},
        {"_id": "r-1002", "userId": "919015190754", "category": "Home decor", "timeStamp": "2025-07-28T09:21:40Z", "resStatus": 200, "userAgent": "WhatsApp/2.24.14 A", "ipAddress": "10.0.4.17"},
        {"_id": "r-1003", "userId": "918800112233", "category": "Beauty queen", "timeStamp": "2025-07-27T17:02:11Z", "resStatus": 500, "userAgent": "WhatsApp/2.24.12 i", "ipAddress": "10.0.9.3"},
        {"_id": "r-1004", "userId": "918800112233", "category": "Food photography", "timeStamp": "2025-07-29T08:45:59Z", "resStatus": 200, "userAgent": "WhatsApp/2.24.13 i", "ipAddress": "10.0.9.8"},
        {"_id": "r-1005", "userId": "917700445566", "category": "Festive greetings", "timeStamp": "2025-07-25T12:30:00Z", "resStatus": 200, "userAgent": "WhatsApp/2.24.10 A", "ipAddress": "10.0.2.41"},
        {"_id": "r-1006", "userId": "919015190754", "category": "Fashion & apparel", "timeStamp": "2025-07-29T10:05:12Z", "resStatus": 200, "userAgent": "WhatsApp/2.24.15 A", "ipAddress": "10.0.4.19"},
    ],
    "summary": {"totalRequests": 6, "uniqueUsers": 3},
    "pagination": {"page": 1, "limit": 50, "total": 6},
}

SMART_LINKS_FALLBACK = [
    {"_id": "sl-01", "name": "Diwali catalogue", "clickRate": 4.2, "totalClicks": 1320, "isActive": True, "createdAt": "2025-06-02T10:00:00Z", "lastClickedAt": "2025-07-29T07:11:00Z", "redirect_link": "https://example.com/diwali"},
    {"_id": "sl-02", "name": "Summer sale landing page", "clickRate": 3.1, "totalClicks": 874, "isActive": True, "createdAt": "2025-05-14T10:00:00Z", "lastClickedAt": "2025-07-28T19:40:00Z", "redirect_link": "https://example.com/summer"},
    {"_id": "sl-03", "name": "Store locator", "clickRate": 1.7, "totalClicks": 233, "isActive": False, "createdAt": "2025-03-09T10:00:00Z", "lastClickedAt": "2025-06-30T12:00:00Z", "redirect_link": "https://example.com/stores"},
]

QR_ANALYTICS_FALLBACK: Dict[str, Any] = {
    "qr_scan_count": 2875,
    "analytics": {
        "averageDailyScans": 96,
        "deviceBreakdown": {"mobile": 2410, "tablet": 118, "desktop": 347},
        "timeStats": {
            "dailyScans": {
                "2025-07-21": 88,
                "2025-07-22": 102,
                "2025-07-23": 97,
                "2025-07-24": 110,
                "2025-07-25": 91,
                "2025-07-26": 75,
                "2025-07-27": 84,
                "2025-07-28": 119,
            }
        },
    },
}

DEFAULT_DATASETS: Dict[str, Any] = {
    "summary": SUMMARY_FALLBACK,
    "completeAnalytics": COMPLETE_ANALYTICS_FALLBACK,
    "categoriesAnalytics": CATEGORIES_ANALYTICS_FALLBACK,
    "userAnalytics": USER_ANALYTICS_FALLBACK,
    "smartLinks": SMART_LINKS_FALLBACK,
    "qrAnalytics": QR_ANALYTICS_FALLBACK,
}


class FallbackProvider:
    """Key -> static substitute payload. Lookups return deep copies."""

    def __init__(self, datasets: Optional[Mapping[str, Any]] = None):
        self._datasets: Dict[str, Any] = dict(datasets or {})

    @classmethod
    def disabled(cls) -> "FallbackProvider":
        return cls({})

    def has(self, key: str) -> bool:
        return key in self._datasets

    def get(self, key: str) -> Optional[Any]:
        if key not in self._datasets:
            return None
        return copy.deepcopy(self._datasets[key])


DEFAULT_FALLBACKS = FallbackProvider(DEFAULT_DATASETS)
