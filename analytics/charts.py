from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Sequence

import altair as alt
import pandas as pd

from analytics.formatting import truncate_label

alt.data_transformers.disable_max_rows()

ChartType = Literal["line", "bar", "doughnut"]

PALETTE = ["#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#06B6D4", "#EC4899", "#84CC16", "#F97316", "#6366F1"]


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def dataset(label: str, data: Sequence[Any], color: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"label": label, "data": [float(v) if v is not None else 0.0 for v in data]}
    if color:
        out["color"] = color
    return out


def top_n(items: Sequence[Any], n: int) -> List[Any]:
    return list(items[: max(0, n)])


def chart_data(
    kind: ChartType,
    labels: Sequence[Any],
    datasets: Sequence[Dict[str, Any]],
    *,
    label_limit: Optional[int] = None,
    title: str = "",
) -> Dict[str, Any]:
    """Label array + numeric series, ready for any charting front end."""
    shown = [truncate_label(lbl, label_limit) if label_limit else str(lbl) for lbl in labels]
    return {"type": kind, "title": title, "labels": shown, "datasets": list(datasets)}


def _long_frame(data: Dict[str, Any]) -> pd.DataFrame:
    rows = []
    for ds in data.get("datasets", []):
        for position, (label, value) in enumerate(zip(data.get("labels", []), ds.get("data", []))):
            rows.append({"position": position, "label": label, "series": ds.get("label", ""), "value": value})
    return pd.DataFrame(rows, columns=["position", "label", "series", "value"])


def vega_from_chart(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Build a Vega-Lite spec for the shaped chart data, or None when it is empty."""
    long_df = _long_frame(data)
    if long_df.empty:
        return None
    order = list(dict.fromkeys(long_df["label"].tolist()))
    kind = data.get("type")
    tooltip = [alt.Tooltip("label:N", title="Label"), alt.Tooltip("series:N", title="Series"), alt.Tooltip("value:Q", title="Value", format=",")]

    if kind == "doughnut":
        chart = (
            alt.Chart(long_df)
            .mark_arc(innerRadius=50)
            .encode(
                theta=alt.Theta("value:Q"),
                color=alt.Color("label:N", sort=order, scale=alt.Scale(range=PALETTE), title=None),
                tooltip=tooltip,
            )
        )
    elif kind == "line":
        chart = (
            alt.Chart(long_df)
            .mark_line(point={"filled": True}, interpolate="monotone")
            .encode(
                x=alt.X("label:N", sort=order, title=None),
                y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[4, 4])),
                color=alt.Color("series:N", title=None),
                tooltip=tooltip,
            )
        )
    else:
        chart = (
            alt.Chart(long_df)
            .mark_bar()
            .encode(
                x=alt.X("label:N", sort=order, title=None),
                y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[4, 4])),
                color=alt.Color("series:N", title=None),
                xOffset="series:N",
                tooltip=tooltip,
            )
        )
    if data.get("title"):
        chart = chart.properties(title=data["title"])
    return to_vega_spec(chart)


def with_spec(data: Dict[str, Any]) -> Dict[str, Any]:
    return {**data, "vega": vega_from_chart(data)}
