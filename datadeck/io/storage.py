from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol
import copy
import json
import os
import re

from ..errors import PersistenceError

DATASETS = "datasets"
PAGES = "pages"
COLLECTIONS = (DATASETS, PAGES)

Document = Dict[str, Any]

# -------- Public interface (easy to mock in tests) --------

class KeyValueStore(Protocol):
    def get_all(self, collection: str) -> List[Document]: ...
    def put(self, collection: str, entity: Document) -> None: ...
    def put_many(self, collection: str, entities: Iterable[Document]) -> None: ...
    def delete(self, collection: str, entity_id: str) -> None: ...

# -------- Helpers --------

def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"unknown collection {collection!r}; expected one of {COLLECTIONS}")

def _entity_id(entity: Document) -> str:
    eid = entity.get("id")
    if not isinstance(eid, str) or not eid:
        raise PersistenceError("entity has no string 'id'")
    return eid

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9._-]")

def _file_key(entity_id: str) -> str:
    # ids are uuids in practice; anything else is made filesystem-safe
    return _SAFE_ID_RE.sub("_", entity_id)

# -------- In-memory backend --------

class MemoryStore(KeyValueStore):
    """Snapshots are deep-copied in and out, like a real store would serialize them."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Document]] = {c: {} for c in COLLECTIONS}

    def get_all(self, collection: str) -> List[Document]:
        _check_collection(collection)
        return [copy.deepcopy(d) for d in self._data[collection].values()]

    def put(self, collection: str, entity: Document) -> None:
        _check_collection(collection)
        self._data[collection][_entity_id(entity)] = copy.deepcopy(entity)

    def put_many(self, collection: str, entities: Iterable[Document]) -> None:
        _check_collection(collection)
        staged = {_entity_id(e): copy.deepcopy(e) for e in entities}
        self._data[collection].update(staged)

    def delete(self, collection: str, entity_id: str) -> None:
        _check_collection(collection)
        self._data[collection].pop(entity_id, None)

# -------- Local JSON-file backend --------

class LocalJsonStore(KeyValueStore):
    """
    One JSON document per entity: <root>/<collection>/<id>.json.
    Writes go to a temp file first and are swapped in with os.replace.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def _dir(self, collection: str) -> Path:
        _check_collection(collection)
        return self.root / collection

    def _path(self, collection: str, entity_id: str) -> Path:
        return self._dir(collection) / f"{_file_key(entity_id)}.json"

    def get_all(self, collection: str) -> List[Document]:
        base = self._dir(collection)
        if not base.exists():
            return []
        out: List[Document] = []
        for p in sorted(base.glob("*.json")):
            try:
                out.append(json.loads(p.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                raise PersistenceError(f"failed to read {p}: {e}") from e
        return out

    def _stage(self, collection: str, entity: Document) -> tuple[Path, Path]:
        target = self._path(collection, _entity_id(entity))
        tmp = target.with_suffix(".json.tmp")
        tmp.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(entity, ensure_ascii=False, separators=(",", ":")), encoding="utf-8")
        return tmp, target

    def put(self, collection: str, entity: Document) -> None:
        self.put_many(collection, [entity])

    def put_many(self, collection: str, entities: Iterable[Document]) -> None:
        # unknown collections are a caller bug, not a write failure
        self._dir(collection)
        staged: List[tuple[Path, Path]] = []
        try:
            for e in entities:
                staged.append(self._stage(collection, e))
        except (OSError, TypeError, ValueError, PersistenceError) as e:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise PersistenceError(f"failed to write {collection}: {e}") from e
        try:
            for tmp, target in staged:
                os.replace(tmp, target)
        except OSError as e:
            raise PersistenceError(f"failed to commit {collection}: {e}") from e

    def delete(self, collection: str, entity_id: str) -> None:
        try:
            self._path(collection, entity_id).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"failed to delete {collection}/{entity_id}: {e}") from e

# -------- Factory from RootCfg --------

def build_store_from_config(root_cfg) -> KeyValueStore:
    # root_cfg is datadeck.config_model.model.RootCfg
    sc = root_cfg.storage
    if sc.backend == "memory":
        return MemoryStore()
    return LocalJsonStore(sc.root)
