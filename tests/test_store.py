from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from analytics.config import Endpoint
from analytics.fallbacks import SUMMARY_FALLBACK, FallbackProvider
from analytics.store import FetchStatus, UnknownCacheKey, run_periodic_refresh


def _envelope(data):
    return {"success": True, "data": data}


def test_summary_timeout_substitutes_fallback(make_store):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    store = make_store(handler)
    asyncio.run(store.fetch("summary"))

    assert store.loading["summary"] is False
    assert store.data["summary"] == SUMMARY_FALLBACK
    assert store.error["summary"] is None
    assert store.state("summary").status is FetchStatus.FALLBACK


def test_fallback_is_a_copy(make_store):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    store = make_store(handler)
    asyncio.run(store.fetch("summary"))
    store.data["summary"]["totalRequests"] = -1

    asyncio.run(store.fetch("summary"))
    assert store.data["summary"]["totalRequests"] == SUMMARY_FALLBACK["totalRequests"]


def test_complete_analytics_envelope_is_unwrapped(make_store):
    records = [{"category": f"cat-{i}", "totalRequests": i} for i in range(5)]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_envelope({"analytics": records}))

    store = make_store(handler)
    asyncio.run(store.fetch("completeAnalytics"))

    assert store.data["completeAnalytics"] == records
    assert store.state("completeAnalytics").status is FetchStatus.SUCCESS
    assert store.error["completeAnalytics"] is None


def test_loading_is_set_before_the_request(make_store):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["loading"] = store.loading["summary"]
        seen["error"] = store.error["summary"]
        return httpx.Response(200, json=_envelope({"summary": {"totalRequests": 1}}))

    store = make_store(handler)
    asyncio.run(store.fetch("summary"))

    assert seen == {"loading": True, "error": None}
    assert store.loading["summary"] is False


def test_missing_fallback_surfaces_error_message(make_store):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "maintenance window"})

    store = make_store(handler, fallbacks=FallbackProvider.disabled())
    asyncio.run(store.fetch("summary"))

    assert store.loading["summary"] is False
    assert store.data["summary"] is None
    assert store.error["summary"] == "maintenance window"
    assert store.state("summary").status is FetchStatus.ERROR


def test_failed_refresh_keeps_previous_data(make_store):
    responses = [
        httpx.Response(200, json=_envelope({"summary": {"totalRequests": 42}})),
        httpx.Response(500, text="boom"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    store = make_store(handler, fallbacks=FallbackProvider.disabled())
    asyncio.run(store.fetch("summary"))
    asyncio.run(store.fetch("summary"))

    assert store.data["summary"] == {"totalRequests": 42}
    assert store.error["summary"]
    assert store.loading["summary"] is False


def test_stale_completion_is_discarded(make_store):
    calls = []

    async def scenario():
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                await release.wait()
                return httpx.Response(200, json=_envelope({"analytics": [{"category": "old"}]}))
            return httpx.Response(200, json=_envelope({"analytics": [{"category": "new"}]}))

        store = make_store(handler)
        first = asyncio.create_task(store.fetch("completeAnalytics"))
        while not calls:
            await asyncio.sleep(0)
        await store.fetch("completeAnalytics")
        release.set()
        await first
        return store

    store = asyncio.run(scenario())
    assert len(calls) == 2
    assert store.data["completeAnalytics"] == [{"category": "new"}]
    assert store.loading["completeAnalytics"] is False


def test_refresh_all_isolates_failures(make_store):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/summary"):
            raise httpx.ConnectError("refused", request=request)
        if request.url.path.endswith("/categories"):
            return httpx.Response(200, json=_envelope({"categories": [{"category": "a", "count": 1}]}))
        return httpx.Response(200, json=_envelope({"analytics": [], "qrData": {"qr_scan_count": 5}}))

    store = make_store(handler, fallbacks=FallbackProvider.disabled())
    asyncio.run(store.refresh_all())

    assert store.error["summary"] == "refused"
    assert store.data["categoriesAnalytics"] == [{"category": "a", "count": 1}]
    assert store.data["completeAnalytics"] == []
    assert store.data["qrAnalytics"] == {"qr_scan_count": 5}
    assert not any(store.loading.values())


def test_post_endpoint_sends_json_body(make_store):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.content))
        return httpx.Response(200, json={"status": True, "data": [{"name": "link"}]})

    store = make_store(handler)
    asyncio.run(store.fetch("smartLinks", body={"page": 1}))
    asyncio.run(store.fetch("summary", body={"ignored": True}))

    assert seen[0][0] == "POST"
    assert json.loads(seen[0][1]) == {"page": 1}
    assert seen[1] == ("GET", b"")
    assert store.data["smartLinks"] == [{"name": "link"}]


def test_non_json_body_is_kept_as_text(make_store):
    store = make_store(lambda request: httpx.Response(200, text="plain body"))
    asyncio.run(store.fetch("qrAnalytics"))
    assert store.data["qrAnalytics"] == "plain body"


def test_ensure_only_fetches_missing_keys(make_store):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json=_envelope({"summary": {"totalRequests": 3}}))

    store = make_store(handler)
    asyncio.run(store.ensure("summary"))
    asyncio.run(store.ensure("summary"))

    assert len(calls) == 1


def test_unknown_key_is_rejected(make_store):
    store = make_store(lambda request: httpx.Response(200, json={}))
    with pytest.raises(UnknownCacheKey):
        asyncio.run(store.fetch("bogus"))
    with pytest.raises(KeyError):
        store.state("bogus")


def test_subscribers_see_key_updates(make_store):
    store = make_store(lambda request: httpx.Response(200, json=_envelope({"summary": {"totalRequests": 1}})))
    events = []
    summary_only = []

    def broken(key, state):
        raise RuntimeError("subscriber bug")

    store.subscribe(broken)
    unsubscribe = store.subscribe(lambda key, state: events.append((key, state.loading)))
    store.subscribe(lambda key, state: summary_only.append(key), keys=["summary"])

    asyncio.run(store.fetch("summary"))
    asyncio.run(store.fetch("completeAnalytics"))
    unsubscribe()
    asyncio.run(store.fetch("summary"))

    assert events == [("summary", True), ("summary", False), ("completeAnalytics", True), ("completeAnalytics", False)]
    assert summary_only == ["summary"] * 4


def test_periodic_refresh_runs_until_stopped(make_store):
    async def scenario():
        stop = asyncio.Event()
        completions = []

        def on_change(key, state):
            if not state.loading:
                completions.append(key)
                if len(completions) >= 2:
                    stop.set()

        store = make_store(
            lambda request: httpx.Response(200, json=_envelope({"summary": {"totalRequests": 1}})),
            endpoints={"summary": Endpoint("https://api.test/summary")},
        )
        store.subscribe(on_change)
        return await asyncio.wait_for(run_periodic_refresh(store, interval=0.01, stop=stop), timeout=5)

    assert asyncio.run(scenario()) == 2


def test_invalid_url_is_contained_and_key_can_be_refetched(make_store):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json=_envelope({"summary": {"totalRequests": 7}}))

    store = make_store(handler, fallbacks=FallbackProvider.disabled())
    asyncio.run(store.fetch("summary", url="http://[::1/x"))

    assert store.loading["summary"] is False
    assert store.state("summary").status is FetchStatus.ERROR
    assert store.error["summary"]

    asyncio.run(store.ensure("summary"))
    assert store.data["summary"] == {"totalRequests": 7}
    assert len(calls) == 1


def test_invalid_url_uses_fallback_when_available(make_store):
    store = make_store(lambda request: httpx.Response(200, json={}))
    asyncio.run(store.fetch("summary", url="http://[::1/x"))

    assert store.loading["summary"] is False
    assert store.state("summary").status is FetchStatus.FALLBACK
    assert store.data["summary"] == SUMMARY_FALLBACK


def test_unexpected_error_propagates_but_clears_loading(make_store):
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("handler bug")

    store = make_store(handler)
    with pytest.raises(RuntimeError):
        asyncio.run(store.fetch("summary"))

    assert store.loading["summary"] is False
    assert store.error["summary"] == "handler bug"
    assert store.state("summary").status is FetchStatus.ERROR
