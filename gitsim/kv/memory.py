"""In-memory KV store."""

import threading
from typing import Iterable, Mapping

from .base import KVStore


class Memory(KVStore):
    """A dict-backed KV store.

    Every call holds a single lock, so a backend shared between several
    ``Repository`` handles never observes a half-written batch (a commit
    record without its blobs). Keys iterate in insertion order, which is
    what gives ``ObjectStore.ids()`` its creation order.
    """

    def __init__(self, items: Mapping[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()
        if items:
            self.set_many(**items)

    def __repr__(self) -> str:
        return f"Memory(keys={len(self)})"

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def get_many(self, *keys: str) -> Mapping[str, bytes]:
        with self._lock:
            data = self._data
            return {key: data[key] for key in keys if key in data}

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._data)

    def scan(self, prefix: str) -> list[str]:
        # whole listing under one lock
        with self._lock:
            return [k[len(prefix) :] for k in self._data if k.startswith(prefix)]

    def set(self, key: str, value: bytes) -> None:
        self.set_many(**{key: value})

    def set_many(self, **items: bytes) -> None:
        bad = next((k for k, v in items.items() if not isinstance(v, bytes)), None)
        if bad is not None:
            raise TypeError(f"Expected bytes for {bad}, got {type(items[bad]).__name__}")
        with self._lock:
            self._data.update(items)

    def cas(self, key: str, value: bytes, expected: bytes | None) -> bool:
        if not isinstance(value, bytes):
            raise TypeError(f"Expected bytes for {key}, got {type(value).__name__}")
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = value
            return True

    def remove(self, key: str) -> None:
        self.remove_many(key)

    def remove_many(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
