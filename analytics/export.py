from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

import pandas as pd

ExportFormat = Literal["csv", "tsv", "json"]

FORMATS: Dict[str, Dict[str, str]] = {
    "csv": {"media_type": "text/csv", "extension": "csv", "sep": ","},
    "tsv": {"media_type": "text/tab-separated-values", "extension": "tsv", "sep": "\t"},
    "json": {"media_type": "application/json", "extension": "json"},
}


@dataclass(frozen=True)
class ExportBlob:
    filename: str
    media_type: str
    content: str

    def encode(self) -> bytes:
        return self.content.encode("utf-8")


def _columns(rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]]) -> List[str]:
    available = list(rows[0].keys()) if rows else []
    if not columns:
        return available
    if not rows:
        return list(columns)
    return [c for c in columns if c in available]


def _flatten(value: Any) -> Any:
    if isinstance(value, (list, tuple, set)):
        return "; ".join(str(v) for v in value)
    return value


def export_rows(
    rows: Sequence[Dict[str, Any]],
    fmt: str = "csv",
    columns: Optional[Sequence[str]] = None,
    *,
    basename: str = "export",
) -> ExportBlob:
    """Serialize an already filtered and sorted view.

    The header is the keys of the first row, or ``columns`` (in the given
    order) when a restriction is requested.
    """
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported export format: {fmt!r}")
    spec = FORMATS[fmt]
    cols = _columns(rows, columns)
    filename = f"{basename}.{spec['extension']}"

    if fmt == "json":
        payload = [{c: row.get(c) for c in cols} for row in rows]
        return ExportBlob(filename, spec["media_type"], json.dumps(payload, indent=2, default=str, ensure_ascii=False))

    if not cols:
        return ExportBlob(filename, spec["media_type"], "")
    df = pd.DataFrame([{c: _flatten(row.get(c)) for c in cols} for row in rows], columns=cols)
    content = df.to_csv(index=False, sep=spec["sep"], lineterminator="\n")
    return ExportBlob(filename, spec["media_type"], content)
