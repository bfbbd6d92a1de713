from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd


# Display-only offsets used to fabricate a "previous" value for KPI trends.
TREND_OFFSETS = {
    "total_requests": 0.125,
    "success_rate": 0.021,
    "unique_users": 0.083,
    "error_rate": -0.012,
}


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if _is_missing(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def as_float(value: object, default: float = 0.0) -> float:
    if _is_missing(value):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def format_int(value: object) -> str:
    if _is_missing(value):
        return "0"
    return f"{round_half_up(value, 0):,.0f}"


def format_percent(value: object, decimals: int = 1) -> str:
    """Format a value already expressed in percent, e.g. 93.19 -> '93.2%'."""
    if _is_missing(value):
        return "0%"
    return f"{round_half_up(value, decimals):.{decimals}f}%"


def success_rate(success: object, total: object) -> float:
    total_f = as_float(total)
    if not total_f:
        return 0.0
    return as_float(success) / total_f * 100


def format_success_rate(success: object, total: object, decimals: int = 1) -> str:
    return format_percent(success_rate(success, total), decimals)


def synthetic_previous(current: object, offset: float) -> Optional[float]:
    """Back out a "previous" value so that ``trend(current, prev)`` equals ``offset``."""
    if _is_missing(current) or offset <= -1:
        return None
    return as_float(current) / (1 + offset)


def trend(current: object, previous: object, decimals: int = 1) -> Optional[str]:
    if _is_missing(current) or _is_missing(previous) or as_float(previous) == 0:
        return None
    change = (as_float(current) - as_float(previous)) / abs(as_float(previous)) * 100
    rounded = round_half_up(change, decimals)
    sign = "+" if rounded >= 0 else "-"
    return f"{sign}{abs(rounded):.{decimals}f}%"


def truncate_label(label: object, limit: int, ellipsis: str = "...") -> str:
    text = "" if _is_missing(label) else str(label)
    if len(text) <= limit:
        return text
    return text[:limit] + ellipsis


def _native(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict, set)):
        return value
    if _is_missing(value):
        return None
    return value


def records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> list of dicts holding plain Python values (NaN -> None)."""
    if df.empty:
        return []
    return [{k: _native(v) for k, v in row.items()} for row in df.to_dict(orient="records")]
