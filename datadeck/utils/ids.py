from __future__ import annotations
import hashlib, json, uuid
from typing import Any

def new_id() -> str:
    return str(uuid.uuid4())

def _json_dumps_stable(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)

def stable_hash(obj: Any, algo: str = "sha256") -> str:
    h = hashlib.new(algo)
    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(mode="json")
    elif isinstance(obj, (list, tuple)):
        obj = [o.model_dump(mode="json") if hasattr(o, "model_dump") else o for o in obj]
    h.update(_json_dumps_stable(obj).encode("utf-8"))
    return h.hexdigest()

def short_id(obj: Any, n: int = 10) -> str:
    return stable_hash(obj)[:n]
