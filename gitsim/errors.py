"""gitsim error types.

User-facing failures derive from ``GitError``. ``Repository`` catches
them at its public boundary and reports them inside a failed ``Result``;
the repository is left unchanged. ``IntegrityError`` is different: it
signals a broken object graph and always propagates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .merge import Conflict


class IntegrityError(RuntimeError):
    """Raised when the object graph would reference a missing commit."""


class GitError(Exception):
    """Base class for rejected repository operations."""

    @property
    def kind(self) -> str:
        """The error kind, e.g. ``"BranchNotFound"``."""
        return type(self).__name__


class BranchNotFound(GitError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Branch '{name}' not found")


class BranchAlreadyExists(GitError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A branch named '{name}' already exists")


class InvalidBranchName(GitError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"'{name}' is not a valid branch name")


class TargetNotFound(GitError):
    """Raised when a branch name, commit id or id prefix resolves to nothing."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"'{target}' did not match any branch or commit")


class DetachedHeadForbidden(GitError):
    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation} in detached HEAD state")


class SelfMergeNoop(GitError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Branch '{name}' already points at HEAD")


class NothingToCommit(GitError):
    def __init__(self) -> None:
        super().__init__("Nothing to commit (use 'add' to stage changes)")


class ConflictUnresolved(GitError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Unresolved conflict in '{path}'")


class MergeConflict(GitError):
    """Raised when merge, rebase or cherry-pick stops on a conflicting path.

    Attributes:
        conflict: The conflict record now stored in the working state.
    """

    def __init__(self, conflict: Conflict) -> None:
        self.conflict = conflict
        super().__init__(f"Merge conflict in '{conflict.path}'")


class OperationInProgress(GitError):
    """Raised when a merge or rebase is pending but not yet committed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"A {operation} is in progress; commit or abort it first")


class NoConflict(GitError):
    def __init__(self) -> None:
        super().__init__("There is no conflict to resolve")


class NoRebaseInProgress(GitError):
    def __init__(self) -> None:
        super().__init__("No rebase in progress")


class RootCommitCherryPick(GitError):
    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        super().__init__(f"Cannot cherry-pick root commit {commit_id[:7]}")


class PathNotFound(GitError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"pathspec '{path}' did not match any files")
