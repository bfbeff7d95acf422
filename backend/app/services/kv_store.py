"""
Key/value store for shared mutable server state.

The PoW challenge cache, the rate limiter buckets and the failed delete
attempt counters go through this interface instead of module globals. Every
mutation of a single key happens under that key's lock, so callers get atomic
compare-and-update semantics.
A distributed cache can replace ``InMemoryStore`` without touching callers.
"""

from __future__ import annotations

import threading
import zlib
from collections.abc import Callable
from typing import Any, Protocol

LOCK_STRIPES = 64


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any) -> None: ...

    def pop(self, key: str) -> Any | None: ...

    def update(self, key: str, fn: Callable[[Any | None], tuple[Any, Any]]) -> Any: ...

    def delete_where(self, predicate: Callable[[str, Any], bool]) -> int: ...

    def __len__(self) -> int: ...


class InMemoryStore:
    """Thread-safe dict; keys are serialized through a fixed set of striped locks."""

    def __init__(self, stripes: int = LOCK_STRIPES) -> None:
        self._data: dict[str, Any] = {}
        self._stripes = [threading.Lock() for _ in range(stripes)]
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        return self._stripes[zlib.crc32(key.encode("utf-8")) % len(self._stripes)]

    def get(self, key: str) -> Any | None:
        with self._guard:
            return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        with self._lock_for(key), self._guard:
            self._data[key] = value

    def pop(self, key: str) -> Any | None:
        """Remove and return the value; of concurrent callers only one gets it."""
        with self._lock_for(key), self._guard:
            return self._data.pop(key, None)

    def update(self, key: str, fn: Callable[[Any | None], tuple[Any, Any]]) -> Any:
        """
        Atomically replace the value for ``key``.

        ``fn`` receives the current value (None if absent) and returns
        ``(new_value, result)``; ``result`` is returned to the caller.
        """
        with self._lock_for(key):
            with self._guard:
                current = self._data.get(key)
            new_value, result = fn(current)
            with self._guard:
                self._data[key] = new_value
            return result

    def delete_where(self, predicate: Callable[[str, Any], bool]) -> int:
        with self._guard:
            doomed = [k for k, v in self._data.items() if predicate(k, v)]
            for key in doomed:
                del self._data[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._guard:
            return len(self._data)
