from __future__ import annotations

import json
from typing import Any, Dict

from analytics.store import DataStore

PREVIEW_CHARS = 2000


def _record_count(data: Any) -> int:
    if data is None:
        return 0
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict) and isinstance(data.get("userRequests"), list):
        return len(data["userRequests"])
    return 1


def compute_debug(store: DataStore) -> Dict[str, Any]:
    keys: Dict[str, Any] = {}
    for key in store.keys:
        state = store.state(key)
        endpoint = store.endpoint(key)
        preview = json.dumps(state.data, default=str, indent=2) if state.data is not None else None
        if preview and len(preview) > PREVIEW_CHARS:
            preview = preview[:PREVIEW_CHARS] + "\n..."
        keys[key] = {
            "endpoint": {"url": endpoint.url, "method": endpoint.method},
            "status": state.status.value,
            "loading": state.loading,
            "error": state.error,
            "has_data": state.data is not None,
            "record_count": _record_count(state.data),
            "updated_at": state.updated_at.isoformat() if state.updated_at else None,
            "preview": preview,
        }
    return {
        "keys": keys,
        "loading": [k for k, v in keys.items() if v["loading"]],
        "errors": {k: v["error"] for k, v in keys.items() if v["error"]},
    }
