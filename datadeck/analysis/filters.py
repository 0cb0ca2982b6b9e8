from __future__ import annotations
from typing import Any, Collection, List, Optional, Sequence
import math

import numpy as np

from ..dashboard.model import Filter, Row
from .numeric import to_number


def _kind(v: Any) -> str:
    if v is None:
        return "null"
    if isinstance(v, (bool, np.bool_)):
        return "bool"
    if isinstance(v, (int, float, np.integer, np.floating)):
        return "number"
    if isinstance(v, str):
        return "string"
    return "other"


def loose_equals(a: Any, b: Any) -> bool:
    """
    Abstract (coercing) equality over cell scalars, as a spreadsheet UI sees it:
      - missing equals only missing
      - booleans compare as 1/0
      - number vs string compares the string as a number ("42" == 42, "" == 0)
      - string vs string and number vs number are strict (NaN equals nothing)
    """
    ka, kb = _kind(a), _kind(b)
    if ka == "null" or kb == "null":
        return ka == kb
    if ka == "bool":
        return loose_equals(1 if a else 0, b)
    if kb == "bool":
        return loose_equals(a, 1 if b else 0)
    if ka == "number" or kb == "number":
        if ka not in ("number", "string") or kb not in ("number", "string"):
            return False
        x, y = to_number(a), to_number(b)
        return not math.isnan(x) and x == y
    # strings compare exactly, case included
    return a == b


def row_matches(row: Row, filters: Sequence[Filter], columns: Optional[Collection[str]] = None) -> bool:
    for f in filters:
        present = f.column in columns if columns is not None else f.column in row
        # a filter on a column this dataset doesn't have never excludes a row
        if not present:
            continue
        if not loose_equals(row.get(f.column), f.value):
            return False
    return True


def apply_filters(
    rows: List[Row],
    filters: Sequence[Filter],
    columns: Optional[Collection[str]] = None,
) -> List[Row]:
    """
    AND-combine equality filters. `columns` is the dataset schema; without it
    each row's own keys decide whether a filter applies. No filters -> `rows`
    itself is returned.
    """
    if not filters:
        return rows
    schema = set(columns) if columns is not None else None
    return [r for r in rows if row_matches(r, filters, schema)]
