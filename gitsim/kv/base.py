"""Backend interface the object and reference stores are written against."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping


class KVStore(ABC):
    """Flat ``str -> bytes`` storage.

    ``ObjectStore`` and ``RefStore`` encode commit records, blobs, branch
    tips and HEAD themselves and share one backend through distinct key
    prefixes. A backend only has to move bytes around.
    """

    # -- Reads --

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Value stored under ``key``, or None."""

    def get_many(self, *keys: str) -> Mapping[str, bytes]:
        """Values for the keys that exist; missing keys are left out."""
        found = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                found[key] = value
        return found

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """Every stored key, in insertion order where the backend keeps one."""

    @abstractmethod
    def __contains__(self, key: str) -> bool: ...

    def scan(self, prefix: str) -> list[str]:
        """Keys under ``prefix``, with the prefix stripped."""
        return [key[len(prefix) :] for key in self.keys() if key.startswith(prefix)]

    # -- Writes --

    @abstractmethod
    def set(self, key: str, value: bytes) -> None: ...

    @abstractmethod
    def set_many(self, **items: bytes) -> None:
        """Write a batch; a commit record and its blobs land together."""

    @abstractmethod
    def cas(self, key: str, value: bytes, expected: bytes | None) -> bool:
        """Write ``value`` only if ``key`` currently holds ``expected``.

        ``expected=None`` means the key must be absent, which is how a
        branch is created without clobbering an existing one. Returns
        whether the write happened.
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""

    def remove_many(self, *keys: str) -> None:
        for key in keys:
            self.remove(key)

    @abstractmethod
    def clear(self) -> None:
        """Drop everything (used when a repository is re-initialised)."""
