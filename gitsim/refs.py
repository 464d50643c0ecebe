"""Reference store: branch pointers and the HEAD cursor."""

from dataclasses import dataclass

from .errors import BranchAlreadyExists, IntegrityError
from .kv.base import KVStore
from .objects import COMMIT_KEY, _from_bytes, _to_bytes

BRANCH_HEAD = "__branch_head__%s"
HEAD_KEY = "__head__"


@dataclass(frozen=True)
class Attached:
    """HEAD follows a branch; commits move the branch pointer."""

    branch: str


@dataclass(frozen=True)
class Detached:
    """HEAD sits on a commit; no branch moves until one is created."""

    commit: str


Head = Attached | Detached


def _head_to_bytes(head: Head) -> bytes:
    if isinstance(head, Attached):
        return _to_bytes({"branch": head.branch})
    return _to_bytes({"commit": head.commit})


def _head_from_bytes(raw: bytes) -> Head:
    data = _from_bytes(raw)
    if "branch" in data:
        return Attached(data["branch"])
    return Detached(data["commit"])


class RefStore:
    """Branch name -> commit id, plus HEAD, kept in a KV store.

    Every pointer written here must name a commit that exists in the
    object store sharing the same backend.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    # -- Branches --

    def get(self, name: str) -> str | None:
        raw = self.store.get(BRANCH_HEAD % name)
        if raw is None:
            return None
        return _from_bytes(raw)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and (BRANCH_HEAD % name) in self.store

    def names(self) -> list[str]:
        """All branch names, sorted."""
        return sorted(n for n in self.store.scan(BRANCH_HEAD % "") if n)

    def tips(self) -> dict[str, str]:
        """Branch name -> tip commit id for every branch."""
        keys = [BRANCH_HEAD % n for n in self.names()]
        raw = self.store.get_many(*keys)
        prefix = BRANCH_HEAD % ""
        return {k[len(prefix) :]: _from_bytes(v) for k, v in raw.items()}

    def create(self, name: str, at: str) -> None:
        """Create a branch pointing at ``at``.

        Raises:
            BranchAlreadyExists: If the name is taken.
        """
        self._require_commit(at)
        if not self.store.cas(BRANCH_HEAD % name, _to_bytes(at), expected=None):
            raise BranchAlreadyExists(name)

    def move(self, name: str, commit_id: str) -> None:
        """Point ``name`` at ``commit_id``, creating the branch if needed."""
        self._require_commit(commit_id)
        self.store.set(BRANCH_HEAD % name, _to_bytes(commit_id))

    def delete(self, name: str) -> None:
        self.store.remove(BRANCH_HEAD % name)

    # -- HEAD --

    @property
    def head(self) -> Head | None:
        """The HEAD cursor, or None for an uninitialised backend."""
        raw = self.store.get(HEAD_KEY)
        if raw is None:
            return None
        return _head_from_bytes(raw)

    def set_head(self, head: Head) -> None:
        if isinstance(head, Detached):
            self._require_commit(head.commit)
        self.store.set(HEAD_KEY, _head_to_bytes(head))

    def head_commit(self) -> str | None:
        """Resolve HEAD to a commit id."""
        head = self.head
        if head is None:
            return None
        if isinstance(head, Detached):
            return head.commit
        commit_id = self.get(head.branch)
        if commit_id is None:
            raise IntegrityError(f"HEAD is attached to missing branch '{head.branch}'")
        return commit_id

    def advance(self, commit_id: str) -> None:
        """Move whatever HEAD points at (branch or detached cursor)."""
        head = self.head
        if isinstance(head, Attached):
            self.move(head.branch, commit_id)
        else:
            self.set_head(Detached(commit_id))

    def _require_commit(self, commit_id: str) -> None:
        if (COMMIT_KEY % commit_id) not in self.store:
            raise IntegrityError(f"Ref target {commit_id[:7]} is not a stored commit")
