from __future__ import annotations

from typing import Any, Dict, Tuple

# Candidate paths into ``{"success": ..., "data": {...}}``, tried in order.
EXTRACTION_PATHS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    "summary": (("data", "summary"),),
    "completeAnalytics": (("data", "analytics"),),
    "categoriesAnalytics": (("data", "categories"),),
    "userAnalytics": (("data",),),
    "smartLinks": (("data",),),
    "qrAnalytics": (("data", "qrData"), ("data",)),
}
DEFAULT_PATHS: Tuple[Tuple[str, ...], ...] = (("data",),)

_MISSING = object()


def _walk(body: Any, path: Tuple[str, ...]) -> Any:
    node = body
    for part in path:
        if not isinstance(node, dict) or node.get(part) is None:
            return _MISSING
        node = node[part]
    return node


def is_envelope(body: Any) -> bool:
    return isinstance(body, dict) and bool(body.get("success") or body.get("status"))


def unwrap(key: str, body: Any) -> Any:
    """Extract the key-specific payload; anything unrecognised is returned as-is."""
    if not is_envelope(body):
        return body
    for path in EXTRACTION_PATHS.get(key, DEFAULT_PATHS):
        found = _walk(body, path)
        if found is not _MISSING:
            return found
    return body
