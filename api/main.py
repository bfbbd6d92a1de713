from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from analytics.config import AUTO_REFRESH_SECONDS, configure_logging
from analytics.export import export_rows
from analytics.filters import normalize_filters, normalize_page_size, normalize_sort
from analytics.metrics_comprehensive import compute_comprehensive
from analytics.metrics_debug import compute_debug
from analytics.metrics_executive import compute_executive
from analytics.metrics_links import compute_qr_smart_links
from analytics.metrics_users import compute_user_analytics
from analytics.screens import EXPORT_KEYS, export_rows_for
from analytics.store import DataStore, UnknownCacheKey, run_periodic_refresh
from api.schemas import ExportRequestModel, FetchRequestModel, TableFiltersModel, TableQueryModel


logger = logging.getLogger(__name__)

EXECUTIVE_KEYS = ("summary", "completeAnalytics", "userAnalytics")
LINK_KEYS = ("qrAnalytics", "smartLinks")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    owned = getattr(app.state, "store", None) is None
    if owned:
        app.state.store = DataStore()

    # Background refresh of every key; an interval of 0 or None disables it.
    interval = getattr(app.state, "refresh_interval", AUTO_REFRESH_SECONDS)
    stop = asyncio.Event()
    refresher = asyncio.create_task(run_periodic_refresh(app.state.store, interval, stop)) if interval else None
    try:
        yield
    finally:
        stop.set()
        if refresher is not None:
            cycles = await refresher
            logger.info("auto-refresh stopped after %d cycles", cycles)
        if owned:
            await app.state.store.aclose()


app = FastAPI(title="Analytics Dashboard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _store(request: Request) -> DataStore:
    return request.app.state.store


async def _ensure(store: DataStore, keys) -> None:
    await asyncio.gather(*(store.ensure(k) for k in keys))


def _filters_from_model(model: TableFiltersModel):
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _failure(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/store/status")
def store_status(request: Request):
    return _json(compute_debug(_store(request)))


@app.post("/store/refresh")
async def store_refresh(request: Request):
    store = _store(request)
    await store.refresh_all()
    return _json(compute_debug(store))


@app.post("/store/fetch/{key}")
async def store_fetch(key: str, request: Request, body: Optional[FetchRequestModel] = None):
    store = _store(request)
    body = body or FetchRequestModel()
    try:
        await store.fetch(key, body.url, body.method, body.body)
    except UnknownCacheKey:
        return JSONResponse(status_code=404, content={"error": f"unknown cache key {key!r}", "type": "UnknownCacheKey"})
    state = store.state(key)
    return _json({"key": key, "status": state.status.value, "error": state.error, "data": state.data})


@app.get("/executive")
async def executive(request: Request):
    store = _store(request)
    try:
        await _ensure(store, EXECUTIVE_KEYS)
        return _json(compute_executive(store.snapshot()))
    except Exception as exc:
        return _failure("executive", exc)


@app.post("/comprehensive")
async def comprehensive(query: TableQueryModel, request: Request):
    store = _store(request)
    try:
        await store.ensure("completeAnalytics")
        state = store.state("completeAnalytics")
        if state.data is None and state.error:
            return JSONResponse(status_code=502, content={"error": state.error, "type": "FetchError"})
        return _json(
            compute_comprehensive(
                _filters_from_model(query.filters),
                store.snapshot(),
                sort=normalize_sort(query.sort_key, query.direction),
                page=query.page,
                page_size=normalize_page_size(query.page_size),
            )
        )
    except Exception as exc:
        return _failure("comprehensive", exc)


@app.get("/users")
async def users(
    request: Request,
    q: str = Query(default=""),
    sort_key: Optional[str] = Query(default=None),
    direction: Literal["asc", "desc"] = Query(default="asc"),
):
    store = _store(request)
    try:
        await store.ensure("userAnalytics")
        return _json(compute_user_analytics(store.snapshot(), q=q, sort=normalize_sort(sort_key, direction)))
    except Exception as exc:
        return _failure("users", exc)


@app.get("/links")
async def links(request: Request):
    store = _store(request)
    try:
        await _ensure(store, LINK_KEYS)
        return _json(compute_qr_smart_links(store.snapshot()))
    except Exception as exc:
        return _failure("links", exc)


@app.post("/export/{page}")
async def export_page(
    page: str,
    body: ExportRequestModel,
    request: Request,
    format: Literal["csv", "tsv", "json"] = Query(default="csv"),
):
    if page not in EXPORT_KEYS:
        return JSONResponse(status_code=404, content={"error": f"no export for page {page!r}", "type": "ValueError"})
    store = _store(request)
    await _ensure(store, EXPORT_KEYS[page])
    rows = export_rows_for(page, store.snapshot(), _filters_from_model(body.filters), normalize_sort(body.sort_key, body.direction))

    blob = export_rows(rows, format, body.columns or None, basename=page)
    return Response(
        content=blob.encode(),
        media_type=blob.media_type,
        headers={"Content-Disposition": f"attachment; filename={blob.filename}"},
    )
