from __future__ import annotations
from typing import Any
import math
import re

import numpy as np

# Spreadsheet cells are coerced the way the browser's Number() does it:
# a plain decimal literal, Infinity, or a 0x/0o/0b integer literal. Anything
# else (thousands separators, currency, underscores, non-ASCII digits) is NaN.
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$", re.ASCII)
_INFINITY_RE = re.compile(r"^([+-]?)Infinity$", re.ASCII)
_RADIX_RE = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$", re.ASCII)
_RADIX = {"x": 16, "o": 8, "b": 2}

_GROUPING = str.maketrans({",": ".", ".": ","})


def is_missing(value: Any) -> bool:
    """None, NaN and the empty string all count as a missing cell."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def _parse_str(s: str) -> float:
    s = s.strip()
    if s == "":
        return 0.0
    if _DECIMAL_RE.match(s):
        return float(s)
    m = _INFINITY_RE.match(s)
    if m:
        return -math.inf if m.group(1) == "-" else math.inf
    m = _RADIX_RE.match(s)
    if m:
        try:
            return float(int(m.group(2), _RADIX[m.group(1).lower()]))
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf
    return math.nan


def to_number(value: Any) -> float:
    """
    Coerce a cell to a float with Number() semantics:
      - None -> 0.0, True/False -> 1.0/0.0
      - ints/floats pass through (NaN stays NaN)
      - strings are trimmed; "" -> 0.0; unparseable -> NaN
      - any other object -> NaN
    """
    if value is None:
        return 0.0
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, np.integer, np.floating)):
        try:
            return float(value)
        except OverflowError:
            # ints beyond the double range, e.g. from a parsed backup
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        return _parse_str(value)
    return math.nan


def to_number_or_zero(value: Any) -> float:
    """Sort-key coercion: NaN (non-numeric) collapses to 0."""
    x = to_number(value)
    return 0.0 if math.isnan(x) else x


def format_number(value: Any) -> str:
    """
    German-style grouping: integers "1.234.567", floats "1.234,57".
    Missing -> "", non-numeric -> str(value).
    """
    if value is None or value == "":
        return ""
    num = to_number(value)
    if math.isnan(num):
        return str(value)
    if math.isinf(num):
        return "-Infinity" if num < 0 else "Infinity"
    if num.is_integer():
        return f"{int(num):,}".replace(",", ".")
    return f"{num:,.2f}".translate(_GROUPING)


def format_number_short(value: Any) -> str:
    """Axis labels: 1,5 Mrd. / 2,0 Mio. / 3,4 Tsd., smaller values via format_number."""
    if value is None or value == "":
        return ""
    num = to_number(value)
    if math.isnan(num):
        return str(value)
    if math.isinf(num):
        return format_number(num)
    a = abs(num)
    if a >= 1_000_000_000:
        return f"{num / 1_000_000_000:.1f}".replace(".", ",") + " Mrd."
    if a >= 1_000_000:
        return f"{num / 1_000_000:.1f}".replace(".", ",") + " Mio."
    if a >= 1_000:
        return f"{num / 1_000:.1f}".replace(".", ",") + " Tsd."
    return format_number(num)
