"""Working tree, staging index and in-progress operation records."""

from dataclasses import dataclass, field
from typing import Mapping

from .errors import PathNotFound
from .merge import Conflict, DiffResult, diff_snapshots


@dataclass(frozen=True)
class PendingMerge:
    """Second parent for the commit that concludes a conflicted merge."""

    other_commit_id: str
    other_branch_name: str


@dataclass(frozen=True)
class PendingRebase:
    """A rebase stopped on a conflicting replay step."""

    branch: str
    onto: str
    original_head: str
    step: str
    remaining: tuple[str, ...]


@dataclass(frozen=True)
class UnmergedRest:
    """What a stopped merge still has to scan once its conflict is resolved.

    The scan resumes after the conflicting path with the working tree as
    "ours".
    """

    theirs: Mapping[str, str]
    ancestor: Mapping[str, str]


@dataclass
class WorkingState:
    """Mutable working tree owned by a ``Repository``.

    ``files`` is reset to a commit snapshot by checkout and hard reset,
    then diverges through edits. ``staging`` holds the paths the next
    commit takes from ``files``.
    """

    files: dict[str, str] = field(default_factory=dict)
    staging: set[str] = field(default_factory=set)
    conflict: Conflict | None = None
    pending_merge: PendingMerge | None = None
    pending_rebase: PendingRebase | None = None
    unmerged: UnmergedRest | None = None

    def load(self, snapshot: Mapping[str, str]) -> None:
        """Replace the working tree with ``snapshot`` and clear everything else."""
        self.files = dict(snapshot)
        self.staging.clear()
        self.clear_pending()

    def clear_pending(self) -> None:
        self.conflict = None
        self.unmerged = None
        self.pending_merge = None
        self.pending_rebase = None

    @property
    def in_progress(self) -> str | None:
        """Name of the unfinished operation, if any."""
        if self.pending_rebase is not None:
            return "rebase"
        if self.pending_merge is not None:
            return "merge"
        return None

    # -- Edits --

    def edit(self, path: str, content: str) -> None:
        self.files[path] = content

    def remove(self, path: str) -> None:
        if path not in self.files:
            raise PathNotFound(path)
        del self.files[path]

    def stage(self, path: str, head_snapshot: Mapping[str, str]) -> None:
        """Mark ``path`` (or every changed path for ``"."``) for the next commit.

        A path deleted from the working tree can be staged as long as HEAD
        still tracks it; the commit then drops it.
        """
        if path == ".":
            self.staging.update(self.files)
            self.staging.update(p for p in head_snapshot if p not in self.files)
            return
        if path not in self.files and path not in head_snapshot:
            raise PathNotFound(path)
        self.staging.add(path)

    def unstage(self, path: str) -> None:
        if path == ".":
            self.staging.clear()
            return
        if path not in self.staging:
            raise PathNotFound(path)
        self.staging.discard(path)

    def build_snapshot(self, head_snapshot: Mapping[str, str]) -> dict[str, str]:
        """HEAD's snapshot with every staged path taken from the working tree."""
        snapshot = dict(head_snapshot)
        for path in self.staging:
            if path in self.files:
                snapshot[path] = self.files[path]
            else:
                snapshot.pop(path, None)
        return snapshot

    def changes_against(self, head_snapshot: Mapping[str, str]) -> DiffResult:
        return diff_snapshots(head_snapshot, self.files)
