from __future__ import annotations
from datetime import datetime
import time

import pytz

def now_ms() -> int:
    """Epoch milliseconds, the timestamp unit used on every persisted entity."""
    return int(time.time() * 1000)

def from_ms(ts_ms: int, tz: str = "UTC") -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=pytz.timezone(tz))

def iso_date(ts_ms: int, tz: str = "UTC") -> str:
    return from_ms(ts_ms, tz).strftime("%Y-%m-%d")
