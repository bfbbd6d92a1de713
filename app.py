import asyncio
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from analytics.config import AUTO_REFRESH_SECONDS, DEFAULT_PAGE_SIZE, configure_logging
from analytics.export import export_rows
from analytics.filters import NumericRange, TableFilters, normalize_sort, toggle_sort
from analytics.metrics_comprehensive import COLUMNS, compute_comprehensive
from analytics.metrics_debug import compute_debug
from analytics.metrics_executive import compute_executive
from analytics.metrics_links import compute_qr_smart_links
from analytics.metrics_users import compute_user_analytics
from analytics.screens import export_rows_for
from analytics.store import DataStore, run_periodic_refresh


# ---------- store runtime ----------
@st.cache_resource
def get_runtime():
    """One store per server process, driven by a dedicated event loop thread."""
    configure_logging()
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop, DataStore(), {"stop": None}


def run(coro):
    loop, _, _ = get_runtime()
    return asyncio.run_coroutine_threadsafe(coro, loop).result()


def ensure(store: DataStore, *keys: str) -> None:
    async def _all():
        await asyncio.gather(*(store.ensure(k) for k in keys))

    run(_all())


def set_auto_refresh(enabled: bool) -> None:
    """Start or stop the periodic refresh of every key on the store loop."""
    loop, store, refresher = get_runtime()
    stop = refresher["stop"]
    if enabled and stop is None:
        refresher["stop"] = stop = asyncio.Event()
        asyncio.run_coroutine_threadsafe(run_periodic_refresh(store, AUTO_REFRESH_SECONDS, stop), loop)
    elif not enabled and stop is not None:
        loop.call_soon_threadsafe(stop.set)
        refresher["stop"] = None


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_page_header(title: str, subtitle: str, export_rows_: Optional[List[Dict[str, Any]]] = None, export_name: str = "export"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{subtitle}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        btn_cols[0].button("Refresh", key=f"refresh_{export_name}", on_click=lambda: run(store.refresh_all()))
        if export_rows_:
            fmt = btn_cols[1].selectbox("Format", ["csv", "tsv", "json"], key=f"fmt_{export_name}", label_visibility="collapsed")
            blob = export_rows(export_rows_, fmt, basename=export_name)
            btn_cols[1].download_button("Export", data=blob.encode(), file_name=blob.filename, mime=blob.media_type)


def render_chart(chart: Optional[Dict[str, Any]], empty_text: str = "No data available"):
    if not chart or not chart.get("vega"):
        st.info(empty_text)
        return
    st.vega_lite_chart(chart["vega"], use_container_width=True)


def render_key_status(*keys: str) -> bool:
    """Loading placeholder / error with retry. Returns True when data can be rendered."""
    renderable = True
    for key in keys:
        state = store.state(key)
        if state.loading and state.data is None:
            st.info(f"Loading {key}…")
            renderable = False
        elif state.error and state.data is None:
            st.error(f"Could not load {key}: {state.error}")
            st.button("Retry", key=f"retry_{key}", on_click=lambda k=key: run(store.fetch(k)))
            renderable = False
    return renderable


@contextmanager
def isolated(section: str):
    """Render errors stay inside the screen section that raised them."""
    try:
        yield
    except Exception as exc:
        st.error(f"{section} failed to render: {exc}")
        st.button("Reload", key=f"reload_{section}")


# ---------- screens ----------
def render_executive_page():
    ensure(store, "summary", "completeAnalytics", "userAnalytics")
    render_page_header("Executive Dashboard", "Overview of key performance metrics and trends", export_name="executive")
    if not render_key_status("summary"):
        return
    payload = compute_executive(store.snapshot())

    with card("KPI Tiles"):
        cols = st.columns(max(1, len(payload["kpis"])))
        for col, kpi in zip(cols, payload["kpis"]):
            col.metric(kpi["title"], kpi["value"], delta=kpi["trend"])

    charts = payload["charts"]
    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Request Trends"):
            render_chart(charts.get("request_trends"))
    with chart_cols[1]:
        with card("Category Distribution"):
            render_chart(charts.get("category_distribution"))
    with card("Performance Overview"):
        render_chart(charts.get("performance"))
    with card("Recent Activity"):
        if payload["recent_activity"]:
            st.dataframe(pd.DataFrame(payload["recent_activity"]), hide_index=True, use_container_width=True)
        else:
            st.info("No recent activity.")


def _set_page(page: int):
    st.session_state["comprehensive_page"] = page


def render_comprehensive_page():
    ensure(store, "completeAnalytics")
    ctx = store.snapshot()

    with st.sidebar:
        st.markdown("### Filters")
        search = st.text_input("Search categories", "")
        category = st.text_input("Category contains", "")
        status = st.selectbox("Status", ["", "success", "error"], format_func=lambda s: s or "All")
        min_requests = st.number_input("Min total requests", min_value=0, value=0, step=10)
        page_size = st.select_slider("Rows per page", options=[10, 20, 50, 100], value=DEFAULT_PAGE_SIZE)

    sort_key = st.selectbox("Sort by", [""] + [c["key"] for c in COLUMNS], format_func=lambda k: k or "None")
    if sort_key:
        current = st.session_state.get("comprehensive_sort")
        if st.button("Toggle direction") or current is None or current.key != sort_key:
            st.session_state["comprehensive_sort"] = toggle_sort(current, sort_key)
    sort = st.session_state.get("comprehensive_sort") if sort_key else normalize_sort(None)

    filters = TableFilters(
        search=search,
        category=category,
        status=status,
        ranges={"total_requests": NumericRange(min=float(min_requests))} if min_requests else {},
    )
    render_page_header(
        "Comprehensive Analytics",
        "Detailed analysis of all analytics data with advanced filtering",
        export_rows_=export_rows_for("comprehensive", ctx, filters, sort),
        export_name="comprehensive",
    )
    if not render_key_status("completeAnalytics"):
        return

    page = st.session_state.get("comprehensive_page", 1)
    payload = compute_comprehensive(filters, ctx, sort=sort, page=page, page_size=page_size)
    pagination = payload["pagination"]
    st.session_state["comprehensive_page"] = pagination["page"]

    view_mode = st.radio("View", ["Table", "Chart"], horizontal=True)
    with card("Categories"):
        if view_mode == "Table":
            st.dataframe(pd.DataFrame(payload["table"]), hide_index=True, use_container_width=True)
            nav = st.columns(3)
            nav[0].button("Previous", disabled=pagination["page"] <= 1, on_click=_set_page, args=(pagination["page"] - 1,))
            nav[1].caption(
                f"Page {pagination['page']} of {max(1, pagination['total_pages'])} · {pagination['total_items']} items"
            )
            nav[2].button("Next", disabled=pagination["page"] >= pagination["total_pages"], on_click=_set_page, args=(pagination["page"] + 1,))
        else:
            render_chart(payload["charts"].get("requests_by_category"))


def render_users_page():
    ensure(store, "userAnalytics")
    q = st.text_input("Search users or categories", "")
    ctx = store.snapshot()
    render_page_header(
        "User Analytics Deep Dive",
        "Detailed user behavior analysis and segmentation",
        export_rows_=export_rows_for("users", ctx, TableFilters(search=q)),
        export_name="users",
    )
    if not render_key_status("userAnalytics"):
        return
    payload = compute_user_analytics(ctx, q=q)

    summary = payload["summary"]
    cols = st.columns(3)
    cols[0].metric("Total Users", f"{summary['total_users']:,}")
    cols[1].metric("Avg Engagement", f"{summary['avg_engagement'] or 0:.1f}")
    cols[2].metric("Active (7 days)", f"{summary['active_users']:,}")

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("User Segmentation"):
            render_chart(payload["charts"].get("segmentation"))
    with chart_cols[1]:
        with card("Category Flow"):
            render_chart(payload["charts"].get("category_flow"))

    with card(f"User Details ({len(payload['users'])})"):
        for user in payload["users"]:
            label = f"{user['id']} · {user['total_requests']} requests · {user['engagement_level']} engagement"
            with st.expander(label):
                st.write(
                    {
                        "Success rate": f"{user['success_rate']}%",
                        "Engagement score": user["engagement_score"],
                        "Categories": ", ".join(user["categories"]),
                        "First activity": user["first_activity"],
                        "Last activity": user["last_activity"],
                        "User agent": user["user_agent"],
                        "IP address": user["ip_address"],
                    }
                )


def render_links_page():
    ensure(store, "qrAnalytics", "smartLinks")
    ctx = store.snapshot()
    payload = compute_qr_smart_links(ctx)
    render_page_header(
        "QR & Smart Links Performance",
        "Comprehensive performance analysis of QR codes and smart links",
        export_rows_=export_rows_for("links", ctx),
        export_name="links",
    )
    kpis = payload["kpis"]
    cols = st.columns(4)
    cols[0].metric("Total QR Scans", kpis["total_qr_scans"])
    cols[1].metric("Smart Links", kpis["smart_links"])
    cols[2].metric("Total Clicks", kpis["total_clicks"])
    cols[3].metric("Active Links", kpis["active_links"])

    charts = payload["charts"]
    left, right = st.columns(2)
    with left:
        with card("Daily Scan Trends"):
            render_chart(charts.get("daily_scans"), "No scan trend data available")
        with card("Device Breakdown"):
            render_chart(charts.get("device_breakdown"), "No device breakdown data available")
    with right:
        with card("Top Performing Links"):
            render_chart(charts.get("top_links"), "No smart links data available")
        with card("Recent Smart Links"):
            if payload["recent_links"]:
                st.dataframe(
                    pd.DataFrame(payload["recent_links"])[["name", "redirect_link", "total_clicks", "is_active"]],
                    hide_index=True,
                    use_container_width=True,
                )
            else:
                st.info("No smart links found")
    if charts.get("comparison"):
        with card("QR vs Smart Links Comparison"):
            render_chart(charts["comparison"])


def render_debug_page():
    render_page_header("Debug", "Store state per cache key", export_name="debug")
    payload = compute_debug(store)
    key = st.selectbox("Data key", list(payload["keys"]))
    info = payload["keys"][key]
    cols = st.columns(3)
    cols[0].metric("Status", info["status"])
    cols[1].metric("Records", info["record_count"])
    cols[2].metric("Loading", "yes" if info["loading"] else "no")
    if info["error"]:
        st.error(info["error"])
    st.code(info["preview"] or "null", language="json")


# ---------- UI setup ----------
st.set_page_config(page_title="Analytics Dashboard", layout="wide")
inject_base_styles()
_, store, _ = get_runtime()

PAGES = {
    "Executive Summary": render_executive_page,
    "Comprehensive Analytics": render_comprehensive_page,
    "User Analytics": render_users_page,
    "QR & Smart Links": render_links_page,
    "Debug": render_debug_page,
}

with st.sidebar:
    st.markdown("### Navigate")
    current_page = st.radio("Navigate", list(PAGES), index=0, label_visibility="collapsed")
    st.markdown("---")
    st.toggle(
        f"Auto-refresh every {AUTO_REFRESH_SECONDS:.0f} s",
        value=get_runtime()[2]["stop"] is not None,
        key="auto_refresh",
        on_change=lambda: set_auto_refresh(st.session_state["auto_refresh"]),
    )

with isolated(current_page):
    PAGES[current_page]()
