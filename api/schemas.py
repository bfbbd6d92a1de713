from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class NumericRangeModel(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class TableFiltersModel(BaseModel):
    search: str = ""
    category: str = ""
    status: Literal["", "success", "error"] = ""
    ranges: Dict[str, NumericRangeModel] = Field(default_factory=dict)


class TableQueryModel(BaseModel):
    filters: TableFiltersModel = Field(default_factory=TableFiltersModel)
    sort_key: Optional[str] = None
    direction: Literal["asc", "desc"] = "asc"
    page: int = 1
    page_size: int = 20


class ExportRequestModel(BaseModel):
    filters: TableFiltersModel = Field(default_factory=TableFiltersModel)
    sort_key: Optional[str] = None
    direction: Literal["asc", "desc"] = "asc"
    columns: List[str] = Field(default_factory=list)


class FetchRequestModel(BaseModel):
    url: Optional[str] = None
    method: Optional[Literal["GET", "POST"]] = None
    body: Optional[Dict[str, object]] = None
