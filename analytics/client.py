"""Async HTTP helpers for the remote analytics API (httpx)."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from analytics.config import REQUEST_TIMEOUT_SECONDS

# InvalidURL, CookieConflict and StreamError are not HTTPError subclasses.
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.CookieConflict, httpx.StreamError)


def build_client(timeout: float = REQUEST_TIMEOUT_SECONDS, **kwargs: Any) -> httpx.AsyncClient:
    """Return an AsyncClient with JSON headers and the fixed client-side timeout."""
    return httpx.AsyncClient(
        headers={"Content-Type": "application/json"},
        timeout=httpx.Timeout(timeout),
        **kwargs,
    )


async def request_json(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: Optional[Dict[str, Any]] = None,
) -> Any:
    """Perform a request and return the decoded body.

    Non-2xx responses raise ``httpx.HTTPStatusError``. A body that is not
    valid JSON is returned as text.
    """
    method = method.upper()
    response = await client.request(method, url, json=body if method == "POST" else None)
    response.raise_for_status()
    try:
        return response.json()
    except ValueError:
        return response.text


def error_message(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            payload = exc.response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
    return str(exc) or type(exc).__name__
