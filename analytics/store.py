"""Keyed cache of fetched datasets shared by every screen.

Each cache key carries its own payload, loading flag and error slot. Fetches
are tagged with a per-key sequence number; a completion that is no longer
the latest for its key is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import httpx

from analytics.client import REQUEST_ERRORS, build_client, error_message, request_json
from analytics.config import AUTO_REFRESH_SECONDS, ENDPOINTS, REQUEST_TIMEOUT_SECONDS, Endpoint
from analytics.envelope import unwrap
from analytics.fallbacks import DEFAULT_FALLBACKS, FallbackProvider

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass(frozen=True)
class KeyState:
    data: Any = None
    loading: bool = False
    error: Optional[str] = None
    status: FetchStatus = FetchStatus.IDLE
    updated_at: Optional[datetime] = None


class UnknownCacheKey(KeyError):
    pass


Subscriber = Callable[[str, KeyState], None]


class DataStore:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        endpoints: Optional[Mapping[str, Endpoint]] = None,
        fallbacks: Optional[FallbackProvider] = DEFAULT_FALLBACKS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self._endpoints: Dict[str, Endpoint] = dict(endpoints if endpoints is not None else ENDPOINTS)
        self._fallbacks = fallbacks if fallbacks is not None else FallbackProvider.disabled()
        self._owns_client = client is None
        self._client = client if client is not None else build_client(timeout)
        self._states: Dict[str, KeyState] = {key: KeyState() for key in self._endpoints}
        self._seq: Dict[str, int] = {key: 0 for key in self._endpoints}
        self._subscribers: List[Tuple[Subscriber, Optional[frozenset]]] = []

    # ----- read side -----
    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(self._endpoints)

    @property
    def data(self) -> Dict[str, Any]:
        return {k: s.data for k, s in self._states.items()}

    @property
    def loading(self) -> Dict[str, bool]:
        return {k: s.loading for k, s in self._states.items()}

    @property
    def error(self) -> Dict[str, Optional[str]]:
        return {k: s.error for k, s in self._states.items()}

    def state(self, key: str) -> KeyState:
        self._check_key(key)
        return self._states[key]

    def snapshot(self) -> Dict[str, Any]:
        """Current payload per key, the context every screen computes from."""
        return self.data

    def endpoint(self, key: str) -> Endpoint:
        self._check_key(key)
        return self._endpoints[key]

    # ----- subscriptions -----
    def subscribe(self, callback: Subscriber, keys: Optional[Iterable[str]] = None) -> Callable[[], None]:
        watched = frozenset(keys) if keys is not None else None
        if watched is not None:
            for key in watched:
                self._check_key(key)
        entry = (callback, watched)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def _publish(self, key: str, state: KeyState) -> None:
        self._states[key] = state
        for callback, watched in list(self._subscribers):
            if watched is not None and key not in watched:
                continue
            try:
                callback(key, state)
            except Exception:
                logger.exception("subscriber failed for %s", key)

    # ----- write side -----
    async def fetch(
        self,
        key: str,
        url: Optional[str] = None,
        method: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._check_key(key)
        configured = self._endpoints[key]
        url = url or configured.url
        method = (method or configured.method).upper()
        if body is None:
            body = configured.body

        self._seq[key] += 1
        seq = self._seq[key]
        self._publish(key, replace(self._states[key], loading=True, error=None, status=FetchStatus.LOADING))

        try:
            result = await request_json(self._client, url, method, body)
        except REQUEST_ERRORS as exc:
            if self._is_stale(key, seq):
                return
            self._apply_failure(key, exc)
            return
        except Exception as exc:
            if not self._is_stale(key, seq):
                self._publish(key, replace(self._states[key], loading=False, error=error_message(exc), status=FetchStatus.ERROR))
            raise

        if self._is_stale(key, seq):
            return
        payload = unwrap(key, result)
        logger.info("fetched %s (%s %s)", key, method, url)
        self._publish(key, KeyState(data=payload, status=FetchStatus.SUCCESS, updated_at=_now()))

    async def ensure(self, key: str) -> None:
        """Fetch ``key`` only when nothing is cached and nothing is in flight."""
        state = self.state(key)
        if state.data is None and not state.loading:
            await self.fetch(key)

    async def refresh_all(self) -> None:
        results = await asyncio.gather(*(self.fetch(key) for key in self._endpoints), return_exceptions=True)
        for key, result in zip(self._endpoints, results):
            if isinstance(result, BaseException):
                logger.error("refresh of %s failed: %r", key, result)
        logger.info("refresh of %d keys completed", len(results))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ----- internals -----
    def _check_key(self, key: str) -> None:
        if key not in self._endpoints:
            raise UnknownCacheKey(key)

    def _is_stale(self, key: str, seq: int) -> bool:
        if seq != self._seq[key]:
            logger.debug("discarding stale completion for %s (seq %d < %d)", key, seq, self._seq[key])
            return True
        return False

    def _apply_failure(self, key: str, exc: Exception) -> None:
        message = error_message(exc)
        fallback = self._fallbacks.get(key)
        if fallback is not None:
            logger.warning("fetch of %s failed (%s); using fallback dataset", key, message)
            self._publish(key, KeyState(data=fallback, status=FetchStatus.FALLBACK, updated_at=_now()))
            return
        logger.error("fetch of %s failed with no fallback: %s", key, message)
        previous = self._states[key]
        self._publish(key, replace(previous, loading=False, error=message, status=FetchStatus.ERROR))


async def run_periodic_refresh(
    store: DataStore,
    interval: float = AUTO_REFRESH_SECONDS,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """Call ``refresh_all`` every ``interval`` seconds until ``stop`` is set.

    Returns the number of completed refresh cycles.
    """
    stop = stop or asyncio.Event()
    cycles = 0
    while not stop.is_set():
        await store.refresh_all()
        cycles += 1
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue
    return cycles


def _now() -> datetime:
    return datetime.now(timezone.utc)
