from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Sequence
import math

from ..analysis.numeric import to_number
from ..dashboard.model import Row
from ..utils.fp import pipe, unique_stable


@dataclass(frozen=True)
class CleanOptions:
    trim_strings: bool = True
    convert_numbers: bool = True
    remove_empty_rows: bool = True
    drop_duplicates: bool = True


def _convert_value(v: Any) -> Any:
    if v is None or (isinstance(v, (int, float)) and not isinstance(v, bool)):
        return v
    # everything else is read as its display text, so True -> "true"
    s = ("true" if v else "false") if isinstance(v, bool) else str(v).strip()
    if s == "":
        return ""
    x = to_number(s)
    if math.isnan(x):
        return s
    return int(x) if x.is_integer() and abs(x) < 2**53 else x


def trim_strings(rows: Sequence[Row]) -> List[Row]:
    return [{k: (v.strip() if isinstance(v, str) else v) for k, v in r.items()} for r in rows]


def convert_numbers(rows: Sequence[Row]) -> List[Row]:
    """Numeric-looking values become numbers; other non-null values come back as trimmed text."""
    return [{k: _convert_value(v) for k, v in r.items()} for r in rows]


def _is_empty_row(row: Row) -> bool:
    return all(v is None or str(v).strip() == "" for v in row.values())


def remove_empty_rows(rows: Sequence[Row]) -> List[Row]:
    return [r for r in rows if not _is_empty_row(r)]


def drop_duplicates(rows: Sequence[Row], columns: Sequence[str]) -> List[Row]:
    # first occurrence wins; identity is the stringified values of `columns`
    return unique_stable(rows, key=lambda r: tuple(str(r.get(c)) for c in columns))


def clean_rows(rows: Sequence[Row], columns: Sequence[str], options: CleanOptions = CleanOptions()) -> List[Row]:
    """
    Apply the enabled steps in a fixed order: trim, convert, drop empty rows,
    drop duplicates. Pure: input rows are not mutated.
    """
    steps = []
    if options.trim_strings:
        steps.append(trim_strings)
    if options.convert_numbers:
        steps.append(convert_numbers)
    if options.remove_empty_rows:
        steps.append(remove_empty_rows)
    if options.drop_duplicates:
        steps.append(lambda rs: drop_duplicates(rs, columns))
    return pipe([dict(r) for r in rows], *steps)
