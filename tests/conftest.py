from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from analytics.fallbacks import FallbackProvider
from analytics.store import DataStore


CATEGORY_RECORDS = [
    {"category": "Beauty queen", "totalRequests": 120, "successCount": 118, "errorCount": 2, "avgProcessingTime": 2.456, "uniqueUserCount": 40},
    {"category": "Home decor", "totalRequests": 80, "successCount": 60, "errorCount": 20, "avgProcessingTime": 3.1, "uniqueUserCount": 25},
    {"category": "Fashion", "totalRequests": 80, "successCount": 79, "errorCount": 1, "avgProcessingTime": 1.9, "uniqueUserCount": 30},
    {"category": "Food", "totalRequests": 9, "successCount": 7, "errorCount": 2, "avgProcessingTime": 4.0, "uniqueUserCount": 3},
    {"category": "beauty tips", "totalRequests": 45, "successCount": 44, "errorCount": 1, "avgProcessingTime": 2.2, "uniqueUserCount": 12},
]

USER_REQUESTS = [
    {"_id": "a1", "userId": "u1", "category": "Beauty queen", "timeStamp": "2025-07-01T10:00:00Z", "resStatus": 200, "userAgent": "agent-old", "ipAddress": "1.1.1.1"},
    {"_id": "a2", "userId": "u2", "category": "Home decor", "timeStamp": "2025-07-02T10:00:00Z", "resStatus": 500, "userAgent": "agent-u2", "ipAddress": "2.2.2.2"},
    {"_id": "a3", "userId": "u1", "category": "Fashion", "timeStamp": "2025-07-05T10:00:00Z", "resStatus": 200, "userAgent": "agent-new", "ipAddress": "1.1.1.9"},
    {"_id": "a4", "userId": "u1", "category": "Beauty queen", "timeStamp": "2025-06-28T10:00:00Z", "resStatus": 404, "userAgent": "agent-older", "ipAddress": "1.1.1.0"},
    {"_id": "a5", "userId": "u3", "category": "Home decor", "timeStamp": "2025-07-04T10:00:00Z", "resStatus": 200, "userAgent": "agent-u3", "ipAddress": "3.3.3.3"},
]


@pytest.fixture
def category_records():
    return [dict(r) for r in CATEGORY_RECORDS]


@pytest.fixture
def user_requests():
    return [dict(r) for r in USER_REQUESTS]


@pytest.fixture
def make_store() -> Callable[..., DataStore]:
    """Build a store whose HTTP client answers through ``handler``."""

    def _make(handler: Callable[[httpx.Request], Any], fallbacks: FallbackProvider | None = None, **kwargs: Any) -> DataStore:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        if fallbacks is None:
            return DataStore(client, **kwargs)
        return DataStore(client, fallbacks=fallbacks, **kwargs)

    return _make