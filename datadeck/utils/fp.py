from __future__ import annotations
from typing import Any, Callable, Iterable, List, TypeVar

from toolz import pipe as _pipe
from more_itertools import unique_everseen as _unique_everseen

A = TypeVar("A")

def pipe(x: A, *fns: Callable[[Any], Any]) -> Any:
    return _pipe(x, *fns) if fns else x

def unique_stable(seq: Iterable[A], key: Callable[[A], Any] | None = None) -> List[A]:
    # preserves first-seen order
    return list(_unique_everseen(seq, key=key))
