from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import json

from ..dashboard.model import DashboardPage, Dataset
from ..errors import BackupError
from ..utils.time import iso_date, now_ms

BACKUP_VERSION = 1
FILENAME_PREFIX = "datadeck-backup-"


@dataclass(frozen=True)
class BackupPayload:
    version: Optional[int] = None
    timestamp: Optional[int] = None
    datasets: List[Dict[str, Any]] = field(default_factory=list)
    pages: List[Dict[str, Any]] = field(default_factory=list)


def backup_filename(ts_ms: int, tz: str = "UTC") -> str:
    return f"{FILENAME_PREFIX}{iso_date(ts_ms, tz)}.json"


def build_backup(
    datasets: Sequence[Dataset],
    pages: Sequence[DashboardPage],
    *,
    timestamp: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        "version": BACKUP_VERSION,
        "timestamp": now_ms() if timestamp is None else int(timestamp),
        "datasets": [d.to_wire() for d in datasets],
        "pages": [p.to_wire() for p in pages],
    }


def dumps_backup(doc: Dict[str, Any]) -> bytes:
    return json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8")


def parse_backup(data: bytes | str) -> BackupPayload:
    """
    Parse a backup document. Invalid JSON or a non-object document raises
    BackupError; a missing or non-list `datasets`/`pages` field is treated as
    empty rather than failing the whole import.
    """
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise BackupError("Failed to restore backup. Invalid file format.") from e
    if not isinstance(raw, dict):
        raise BackupError("Failed to restore backup. Invalid file format.")

    def _list(key: str) -> List[Dict[str, Any]]:
        val = raw.get(key)
        if not isinstance(val, list):
            return []
        return [x for x in val if isinstance(x, dict)]

    version = raw.get("version")
    timestamp = raw.get("timestamp")
    return BackupPayload(
        version=version if isinstance(version, int) else None,
        timestamp=timestamp if isinstance(timestamp, int) else None,
        datasets=_list("datasets"),
        pages=_list("pages"),
    )
