from __future__ import annotations
from typing import Any, Hashable, List, Sequence, Tuple
import math

import numpy as np

from ..dashboard.model import ColumnAnalysis, Row
from .numeric import is_missing, to_number

_MISSING = ("missing",)


def _bucket(value: Any) -> Tuple[str, Hashable]:
    """
    Distinct-value key. Every missing representation shares one bucket;
    types stay apart so 5 and "5" (or True and 1) count separately.
    """
    if is_missing(value):
        return _MISSING  # type: ignore[return-value]
    if isinstance(value, (bool, np.bool_)):
        return ("bool", bool(value))
    if isinstance(value, (int, float, np.integer, np.floating)):
        return ("num", to_number(value))
    if isinstance(value, str):
        return ("str", value)
    try:
        hash(value)
        return ("obj", value)
    except TypeError:
        return ("obj", repr(value))


def analyze_column(rows: Sequence[Row], column: str) -> ColumnAnalysis:
    values = [row.get(column) for row in rows]
    present = [v for v in values if not is_missing(v)]

    # vacuous truth: a column with no present values classifies as number
    numbers = [to_number(v) for v in present]
    is_number = all(not math.isnan(x) for x in numbers)

    stats = {}
    if is_number and numbers:
        stats = {"min": min(numbers), "max": max(numbers)}

    return ColumnAnalysis(
        key=column,
        type="number" if is_number else "string",
        unique_values=len({_bucket(v) for v in values}),
        **stats,
    )


def analyze_columns(rows: Sequence[Row], columns: Sequence[str]) -> List[ColumnAnalysis]:
    """One entry per column name, in the given order. Pure."""
    return [analyze_column(rows, c) for c in columns]
