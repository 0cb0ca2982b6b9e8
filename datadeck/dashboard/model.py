"""
Persisted entities: datasets and dashboard pages.

Attributes are snake_case in Python; the JSON form (store documents and backup
files) keeps the camelCase names used by the browser dashboard, so an exported
backup from either side imports into the other. Both spellings are accepted on
input.
"""
from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..utils.fp import unique_stable

Row = Dict[str, Any]
Scalar = Union[bool, int, float, str]

ColumnType = Literal["number", "string", "date", "boolean", "unknown"]
WidgetType = Literal["bar", "area", "line", "pie", "table"]


class _Entity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ColumnAnalysis(_Entity):
    key: str
    type: ColumnType
    unique_values: int
    min: Optional[float] = None
    max: Optional[float] = None


class DataSource(_Entity):
    name: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    last_updated: Optional[str] = None


class Dataset(_Entity):
    id: str
    file_name: str
    data: List[Row] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    analysis: List[ColumnAnalysis] = Field(default_factory=list)
    created_at: int
    folder: Optional[str] = None
    data_source: Optional[DataSource] = None


class ColumnConfig(_Entity):
    x_axis_key: str
    data_keys: List[str] = Field(default_factory=list)


class SortConfig(_Entity):
    sort_key: str
    sort_order: Literal["asc", "desc"] = "asc"


class Widget(_Entity):
    id: str
    dataset_id: str
    type: WidgetType
    title: str
    width: Literal["half", "full"] = "half"
    column_config: Optional[ColumnConfig] = None
    sort_config: Optional[SortConfig] = None


class Filter(_Entity):
    id: str
    column: str
    value: Scalar


class DashboardPage(_Entity):
    id: str
    name: str
    widgets: List[Widget] = Field(default_factory=list)
    filters: List[Filter] = Field(default_factory=list)
    created_at: int

    def widget_index(self, widget_id: str) -> int:
        for i, w in enumerate(self.widgets):
            if w.id == widget_id:
                return i
        return -1

    def dataset_ids(self) -> List[str]:
        return unique_stable(w.dataset_id for w in self.widgets)
