from __future__ import annotations
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, List
from datetime import date, datetime
import math

import numpy as np
import pandas as pd
import pyarrow.parquet as pq  # fast path for parquet

from ..dashboard.model import Row
from ..errors import DecodeError

_EXTS = (".csv", ".txt", ".xlsx", ".xls", ".json", ".ndjson", ".parquet", ".pq")


@dataclass(frozen=True)
class DecodedTable:
    rows: List[Row] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)


def _infer_ext(file_name: str) -> str:
    p = file_name.lower()
    for e in _EXTS:
        if p.endswith(e):
            return e
    raise DecodeError(
        f"Unsupported file type for {file_name!r}. "
        "Please upload a valid Excel (.xlsx, .xls), CSV, JSON or Parquet file."
    )


def _to_scalar(v: Any) -> Any:
    """numpy/pandas scalar -> plain Python; NaN/NaT -> None; integral floats -> int."""
    if v is None or v is pd.NaT:
        return None
    if isinstance(v, (np.bool_, bool)):
        return bool(v)
    if isinstance(v, np.integer):
        return int(v)
    if isinstance(v, (np.floating, float)):
        f = float(v)
        if math.isnan(f):
            return None
        return int(f) if f.is_integer() and abs(f) < 2**53 else f
    if isinstance(v, (pd.Timestamp, datetime, date)):
        return v.isoformat()
    if isinstance(v, (str, int)):
        return v
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    return str(v)


def frame_to_table(df: pd.DataFrame) -> DecodedTable:
    """Header order becomes column order; zero rows -> no columns either."""
    if df.empty:
        return DecodedTable()
    columns = [str(c) for c in df.columns]
    rows: List[Row] = []
    for rec in df.itertuples(index=False, name=None):
        rows.append({c: _to_scalar(v) for c, v in zip(columns, rec)})
    return DecodedTable(rows=rows, columns=columns)


def read_frame(data: bytes, file_name: str) -> pd.DataFrame:
    ext = _infer_ext(file_name)
    buf = BytesIO(data)
    if ext in {".parquet", ".pq"}:
        return pq.read_table(buf).to_pandas()
    if ext in {".xlsx", ".xls"}:
        # first sheet, first row is the header
        return pd.read_excel(buf, sheet_name=0)
    if ext == ".ndjson":
        return pd.read_json(buf, lines=True)
    if ext == ".json":
        return pd.read_json(buf)
    return pd.read_csv(buf)


def decode_table(data: bytes, file_name: str) -> DecodedTable:
    """
    Decode raw upload bytes into rows + ordered column names.
    Any reader failure surfaces as a single DecodeError.
    """
    try:
        df = read_frame(data, file_name)
    except DecodeError:
        raise
    except pd.errors.EmptyDataError:
        return DecodedTable()
    except Exception as e:  # readers raise a wide variety of parser errors
        raise DecodeError(f"Failed to parse {file_name!r}. Please check the format.") from e
    return frame_to_table(df)
