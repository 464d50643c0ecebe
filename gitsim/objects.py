"""Object store: immutable, content-addressed commits over a KV store."""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import IntegrityError
from .kv.base import KVStore

logger = logging.getLogger(__name__)

COMMIT_KEY = "__commit__%s"
BLOB_KEY = "__blob__%s"

ID_LENGTH = 40


def _to_bytes(obj) -> bytes:
    """Encode a JSON-safe Python object to bytes."""
    return json.dumps(obj, separators=(",", ":")).encode()


def _from_bytes(raw: bytes):
    """Decode bytes to a Python object."""
    return json.loads(raw)


def _blob_id(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()[:ID_LENGTH]


def _content_hash(
    parents: tuple[str, ...],
    tree: dict[str, str],
    message: str,
    salt: int = 0,
) -> str:
    """Compute a content-addressable commit id.

    Hashes the parent pointers, the path -> blob tree and the message.
    ``salt`` is only non-zero when an earlier candidate id was already
    taken by a commit with different content.
    """
    h = hashlib.sha256()
    h.update(json.dumps(list(parents), separators=(",", ":")).encode())
    h.update(json.dumps(sorted(tree.items()), separators=(",", ":")).encode())
    h.update(message.encode())
    if salt:
        h.update(b"\0%d" % salt)
    return h.hexdigest()[:ID_LENGTH]


@dataclass(frozen=True)
class Commit:
    """A commit as seen by callers.

    ``branch_label`` records the branch the commit was authored on. It is
    only a rendering hint and plays no part in ancestry or merging.
    """

    id: str
    parent_ids: tuple[str, ...]
    message: str
    branch_label: str
    timestamp: float
    generation: int
    snapshot: Mapping[str, str]

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Commit({self.short_id}, {self.message!r}, parents={len(self.parent_ids)})"

    @property
    def short_id(self) -> str:
        return self.id[:7]

    @property
    def is_root(self) -> bool:
        return not self.parent_ids

    @property
    def is_merge(self) -> bool:
        return len(self.parent_ids) > 1


class ObjectStore:
    """Append-only commit storage.

    Each commit record holds its parents, message, label, timestamp,
    generation number and a tree mapping path -> blob id. File bodies
    are stored once per distinct content under ``__blob__<sha>``.
    Records are only removed by ``remove_many`` (garbage collection).
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    def __contains__(self, commit_id: object) -> bool:
        return isinstance(commit_id, str) and (COMMIT_KEY % commit_id) in self.store

    def __len__(self) -> int:
        return len(self.ids())

    # -- Writing --

    def create_commit(
        self,
        parent_ids: Iterable[str],
        message: str,
        snapshot: Mapping[str, str],
        branch_label: str,
        *,
        timestamp: float | None = None,
    ) -> str:
        """Store a new commit and return its id.

        A commit with the same parents, snapshot and message as an
        existing one is not stored twice: the existing id is returned.

        Raises:
            IntegrityError: If a parent id is not in the store.
        """
        parents = tuple(parent_ids)
        if len(parents) > 2:
            raise ValueError(f"A commit has at most two parents, got {len(parents)}")
        records = self.store.get_many(*(COMMIT_KEY % p for p in parents))
        missing = [p for p in parents if COMMIT_KEY % p not in records]
        if missing:
            raise IntegrityError(f"Parent commit(s) missing from store: {', '.join(missing)}")

        generation = (
            1 + max(_from_bytes(raw)["generation"] for raw in records.values())
            if parents
            else 0
        )
        tree = {path: _blob_id(content) for path, content in snapshot.items()}

        salt = 0
        while True:
            commit_id = _content_hash(parents, tree, message, salt)
            existing = self.store.get(COMMIT_KEY % commit_id)
            if existing is None:
                break
            record = _from_bytes(existing)
            if (
                tuple(record["parents"]) == parents
                and record["tree"] == tree
                and record["message"] == message
            ):
                logger.debug("Commit %s already stored, reusing it", commit_id[:7])
                return commit_id
            salt += 1

        diffs: dict[str, bytes] = {
            BLOB_KEY % tree[path]: content.encode() for path, content in snapshot.items()
        }
        diffs[COMMIT_KEY % commit_id] = _to_bytes(
            {
                "parents": list(parents),
                "message": message,
                "branch": branch_label,
                "timestamp": time.time() if timestamp is None else timestamp,
                "generation": generation,
                "tree": tree,
            }
        )
        self.store.set_many(**diffs)
        return commit_id

    def remove_many(self, commit_ids: Iterable[str]) -> None:
        """Drop commit records. Their blobs are left for ``remove_blobs``."""
        self.store.remove_many(*(COMMIT_KEY % c for c in commit_ids))

    def remove_blobs(self, blob_ids: Iterable[str]) -> None:
        self.store.remove_many(*(BLOB_KEY % b for b in blob_ids))

    # -- Reading --

    def get(self, commit_id: str) -> Commit | None:
        """Load a commit with its full snapshot, or None if not stored."""
        record = self._record(commit_id)
        if record is None:
            return None
        tree: dict[str, str] = record["tree"]
        blobs = self.store.get_many(*(BLOB_KEY % b for b in set(tree.values())))
        snapshot = {}
        for path in sorted(tree):
            raw = blobs.get(BLOB_KEY % tree[path])
            if raw is None:
                raise IntegrityError(f"Blob for '{path}' in commit {commit_id[:7]} is missing")
            snapshot[path] = raw.decode()
        return Commit(
            id=commit_id,
            parent_ids=tuple(record["parents"]),
            message=record["message"],
            branch_label=record["branch"],
            timestamp=record["timestamp"],
            generation=record["generation"],
            snapshot=MappingProxyType(snapshot),
        )

    def ids(self) -> list[str]:
        """All stored commit ids, in creation order."""
        return self.store.scan(COMMIT_KEY % "")

    def commits(self) -> list[Commit]:
        """All stored commits, in creation order."""
        return [c for c in (self.get(i) for i in self.ids()) if c is not None]

    def parent_ids(self, commit_id: str) -> tuple[str, ...]:
        """Parents of a commit without loading its snapshot."""
        record = self._record(commit_id)
        if record is None:
            return ()
        return tuple(record["parents"])

    def generation(self, commit_id: str) -> int:
        record = self._record(commit_id)
        if record is None:
            raise IntegrityError(f"Commit {commit_id[:7]} is missing")
        return record["generation"]

    def tree(self, commit_id: str) -> dict[str, str]:
        """The path -> blob id mapping of a commit."""
        record = self._record(commit_id)
        return {} if record is None else record["tree"]

    def blob_ids(self) -> list[str]:
        return self.store.scan(BLOB_KEY % "")

    def resolve_prefix(self, prefix: str) -> str | None:
        """First commit id (in creation order) that starts with ``prefix``.

        Ambiguous prefixes are not rejected.
        """
        if not prefix:
            return None
        return next((c for c in self.ids() if c.startswith(prefix)), None)

    def _record(self, commit_id: str) -> dict | None:
        raw = self.store.get(COMMIT_KEY % commit_id)
        if raw is None:
            return None
        return _from_bytes(raw)
