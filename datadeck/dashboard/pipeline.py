"""
Per-widget data derivation.

Given a widget, the dataset it points at and the page's filters, produce the
exact rows and axis mapping a chart or table needs:

    rows -> page filters -> mapping (override | suggestion)
         -> bar/area/line: first N rows, then optional stable sort
         -> pie: share cutoff over all filtered rows, first K slices
         -> table: first M filtered rows

Nothing here raises for well-typed input; unresolved datasets and
undecidable mappings come back as a non-"ok" status.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Sequence, Tuple

import pandas as pd

from ..analysis.filters import apply_filters
from ..analysis.numeric import to_number, to_number_or_zero
from ..analysis.suggest import ChartMapping, mapping_from_override, suggest_chart_mapping
from .model import Dataset, Filter, Row, SortConfig, Widget

ViewStatus = Literal["ok", "missing_dataset", "no_mapping"]

_DEFAULT_TITLES = {
    "line": "Trend Analysis",
    "pie": "Distribution",
    "table": "Raw Data Preview",
}


@dataclass(frozen=True)
class PipelineLimits:
    chart_row_cap: int = 1000
    table_row_cap: int = 100
    pie_min_share_pct: float = 0.5
    pie_max_slices: int = 10

    @classmethod
    def from_config(cls, cfg) -> "PipelineLimits":
        pc = cfg.pipeline
        return cls(
            chart_row_cap=int(pc.chart_row_cap),
            table_row_cap=int(pc.table_row_cap),
            pie_min_share_pct=float(pc.pie_min_share_pct),
            pie_max_slices=int(pc.pie_max_slices),
        )


@dataclass(frozen=True)
class WidgetView:
    widget_id: str
    type: str
    title: str
    status: ViewStatus
    mapping: Optional[ChartMapping] = None
    rows: List[Row] = field(default_factory=list)
    columns: Tuple[str, ...] = ()
    # rows left after page filters, before any cap
    total_rows: int = 0
    pie_total: Optional[float] = None

    @property
    def is_truncated(self) -> bool:
        """Drives the "top N shown" / "showing N of M" indicators."""
        return len(self.rows) < self.total_rows


def resolve_mapping(
    widget: Widget,
    dataset: Dataset,
    suggest: Optional[Callable[[Dataset], Optional[ChartMapping]]] = None,
) -> Optional[ChartMapping]:
    if widget.column_config is not None:
        return mapping_from_override(widget.column_config)
    if suggest is not None:
        return suggest(dataset)
    return suggest_chart_mapping(dataset.analysis)


def cap_rows(rows: List[Row], limit: int) -> List[Row]:
    return rows[:limit] if len(rows) > limit else rows


def sort_rows(rows: List[Row], sort: SortConfig) -> List[Row]:
    """Stable numeric sort; cells that aren't numbers sort as 0."""
    if len(rows) < 2:
        return list(rows)
    keys = pd.Series([to_number_or_zero(r.get(sort.sort_key)) for r in rows], dtype="float64")
    order = keys.sort_values(ascending=sort.sort_order == "asc", kind="mergesort").index
    return [rows[i] for i in order]


def pie_slices(
    rows: Sequence[Row],
    metric: str,
    *,
    min_share_pct: float = 0.5,
    max_slices: int = 10,
) -> Tuple[List[Row], float]:
    """
    Keep rows whose metric is positive and at least `min_share_pct` percent of
    the metric's total over `rows`, in their original order, then truncate to
    `max_slices`. A non-positive total yields no slices.
    """
    values = pd.Series([to_number(r.get(metric)) for r in rows], dtype="float64")
    # negative values count toward the total; only the kept slices must be positive
    total = float(values.fillna(0.0).sum())
    if total <= 0:
        return [], total

    share = values / total * 100.0
    keep = values.gt(0) & share.ge(min_share_pct)
    kept = [rows[i] for i in keep[keep].index]
    return kept[:max_slices], total


def _default_title(widget: Widget, mapping: Optional[ChartMapping]) -> str:
    if widget.type == "bar" and mapping is not None:
        return mapping.bar_chart_title
    if widget.type == "area" and mapping is not None:
        return mapping.area_chart_title
    return _DEFAULT_TITLES.get(widget.type, "")


def build_widget_view(
    widget: Widget,
    dataset: Optional[Dataset],
    filters: Sequence[Filter] = (),
    *,
    limits: PipelineLimits = PipelineLimits(),
    suggest: Optional[Callable[[Dataset], Optional[ChartMapping]]] = None,
) -> WidgetView:
    if dataset is None:
        return WidgetView(
            widget_id=widget.id,
            type=widget.type,
            title=widget.title or _default_title(widget, None),
            status="missing_dataset",
        )

    filtered = apply_filters(dataset.data, filters, dataset.columns)
    mapping = resolve_mapping(widget, dataset, suggest)
    title = widget.title or _default_title(widget, mapping)
    base = dict(
        widget_id=widget.id,
        type=widget.type,
        title=title,
        mapping=mapping,
        columns=tuple(dataset.columns),
        total_rows=len(filtered),
    )

    # tables don't need an axis mapping and ignore chart caps
    if widget.type == "table":
        return WidgetView(status="ok", rows=list(cap_rows(filtered, limits.table_row_cap)), **base)

    if mapping is None:
        return WidgetView(status="no_mapping", **base)

    if widget.type == "pie":
        slices, total = pie_slices(
            filtered,
            mapping.data_keys[0],
            min_share_pct=limits.pie_min_share_pct,
            max_slices=limits.pie_max_slices,
        )
        return WidgetView(status="ok", rows=slices, pie_total=total, **base)

    # cap first, then sort: the cap is positional on the filtered order
    rows = cap_rows(filtered, limits.chart_row_cap)
    if widget.sort_config is not None:
        rows = sort_rows(rows, widget.sort_config)
    return WidgetView(status="ok", rows=list(rows), **base)


def build_page_views(
    widgets: Sequence[Widget],
    datasets_by_id,
    filters: Sequence[Filter],
    *,
    limits: PipelineLimits = PipelineLimits(),
    suggest: Optional[Callable[[Dataset], Optional[ChartMapping]]] = None,
) -> List[WidgetView]:
    """One view per widget in page order; each widget resolves its own dataset."""
    return [
        build_widget_view(w, datasets_by_id.get(w.dataset_id), filters, limits=limits, suggest=suggest)
        for w in widgets
    ]
