from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional

from analytics.config import DEFAULT_PAGE_SIZE

Direction = Literal["asc", "desc"]
STATUS_BUCKETS = ("success", "error")


@dataclass(frozen=True)
class NumericRange:
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.min is not None or self.max is not None


@dataclass(frozen=True)
class TableFilters:
    search: str = ""
    category: str = ""
    status: str = ""
    ranges: Dict[str, NumericRange] = field(default_factory=dict)


@dataclass(frozen=True)
class SortState:
    key: str
    direction: Direction = "asc"

    def toggle(self, key: str) -> "SortState":
        """Clicking the sorted column flips direction; a new column starts ascending."""
        if key == self.key:
            return SortState(key, "desc" if self.direction == "asc" else "asc")
        return SortState(key, "asc")


def toggle_sort(current: Optional[SortState], key: str) -> SortState:
    if current is None:
        return SortState(key, "asc")
    return current.toggle(key)


def _as_float(value: object) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def normalize_filters(raw: Optional[dict]) -> TableFilters:
    raw = raw or {}
    status = str(raw.get("status") or "").strip().lower()
    if status not in STATUS_BUCKETS:
        status = ""

    ranges: Dict[str, NumericRange] = {}
    for column, bounds in (raw.get("ranges") or {}).items():
        if isinstance(bounds, NumericRange):
            rng = bounds
        elif isinstance(bounds, dict):
            rng = NumericRange(_as_float(bounds.get("min")), _as_float(bounds.get("max")))
        else:
            continue
        if rng.is_set:
            ranges[str(column)] = rng

    return TableFilters(
        search=str(raw.get("search") or "").strip(),
        category=str(raw.get("category") or "").strip(),
        status=status,
        ranges=ranges,
    )


def normalize_sort(key: Optional[str], direction: Optional[str] = None) -> Optional[SortState]:
    if not key:
        return None
    return SortState(key, "desc" if (direction or "").lower() == "desc" else "asc")


def normalize_page_size(value: object, default: int = DEFAULT_PAGE_SIZE) -> int:
    try:
        size = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        size = default
    return max(1, min(500, size))
