from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..dashboard.model import ColumnAnalysis, ColumnConfig, Dataset
from ..utils.ids import stable_hash

CATEGORY_MAX_UNIQUE = 50
MAX_METRICS = 3


@dataclass(frozen=True)
class ChartMapping:
    x_axis_key: str
    data_keys: Tuple[str, ...]
    bar_chart_title: str
    area_chart_title: str


def capitalize(s: str) -> str:
    # only the first character; the rest is left alone
    return s[:1].upper() + s[1:]


def suggest_chart_mapping(
    analysis: Sequence[ColumnAnalysis],
    *,
    category_max_unique: int = CATEGORY_MAX_UNIQUE,
    max_metrics: int = MAX_METRICS,
) -> Optional[ChartMapping]:
    """
    First column that is a string, or a number with few distinct values,
    becomes the X axis. The first `max_metrics` remaining numeric columns
    become the series. Returns None when either side is empty.
    """
    category = next(
        (
            c for c in analysis
            if c.type == "string" or (c.type == "number" and c.unique_values < category_max_unique)
        ),
        None,
    )
    if category is None:
        return None

    metrics = [c.key for c in analysis if c.type == "number" and c.key != category.key]
    if not metrics:
        return None

    primary, dimension = metrics[0], category.key
    return ChartMapping(
        x_axis_key=dimension,
        data_keys=tuple(metrics[:max_metrics]),
        bar_chart_title=f"{capitalize(primary)} by {capitalize(dimension)}",
        area_chart_title=f"{capitalize(primary)} Trends & Overview",
    )


def mapping_from_override(cc: ColumnConfig) -> Optional[ChartMapping]:
    """A widget's explicit axis choice, used verbatim. Titles are not capitalized."""
    if not cc.data_keys:
        return None
    first = cc.data_keys[0]
    return ChartMapping(
        x_axis_key=cc.x_axis_key,
        data_keys=tuple(cc.data_keys),
        bar_chart_title=f"{first} by {cc.x_axis_key}",
        area_chart_title=f"{first} Trends & Overview",
    )


def analysis_fingerprint(analysis: Sequence[ColumnAnalysis]) -> str:
    return stable_hash(list(analysis))


class SuggestionCache:
    """
    Memoizes suggest_chart_mapping per dataset. Entries are keyed by dataset id
    plus a fingerprint of its analysis, so replacing a dataset's rows (which
    recomputes the analysis) invalidates the entry.
    """

    def __init__(self, *, category_max_unique: int = CATEGORY_MAX_UNIQUE, max_metrics: int = MAX_METRICS) -> None:
        self.category_max_unique = category_max_unique
        self.max_metrics = max_metrics
        self._entries: Dict[str, Tuple[str, Optional[ChartMapping]]] = {}
        self.misses = 0

    def get(self, dataset: Dataset) -> Optional[ChartMapping]:
        fp = analysis_fingerprint(dataset.analysis)
        hit = self._entries.get(dataset.id)
        if hit is not None and hit[0] == fp:
            return hit[1]
        self.misses += 1
        mapping = suggest_chart_mapping(
            dataset.analysis,
            category_max_unique=self.category_max_unique,
            max_metrics=self.max_metrics,
        )
        self._entries[dataset.id] = (fp, mapping)
        return mapping

    def invalidate(self, dataset_id: str) -> None:
        self._entries.pop(dataset_id, None)

    def __len__(self) -> int:
        return len(self._entries)


def suggestion_cache_from_config(cfg) -> SuggestionCache:
    ac = cfg.analysis
    return SuggestionCache(category_max_unique=int(ac.category_max_unique), max_metrics=int(ac.max_metrics))


__all__: List[str] = [
    "ChartMapping",
    "capitalize",
    "suggest_chart_mapping",
    "mapping_from_override",
    "analysis_fingerprint",
    "SuggestionCache",
    "suggestion_cache_from_config",
]
