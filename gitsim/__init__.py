"""gitsim: an in-memory version-control repository simulator."""

from .commands import CommandOutput, ParseResult, parse_command, run_command
from .errors import (
    BranchAlreadyExists,
    BranchNotFound,
    ConflictUnresolved,
    DetachedHeadForbidden,
    GitError,
    IntegrityError,
    InvalidBranchName,
    MergeConflict,
    NoConflict,
    NoRebaseInProgress,
    NothingToCommit,
    OperationInProgress,
    PathNotFound,
    RootCommitCherryPick,
    SelfMergeNoop,
    TargetNotFound,
)
from .factory import repository
from .gc import GCResult, collect_garbage
from .history import History
from .kv.base import KVStore
from .merge import Conflict, DiffResult, MergeOutcome, diff_snapshots, three_way_merge
from .objects import Commit, ObjectStore
from .refs import Attached, Detached, Head, RefStore
from .repository import RepoState, Repository, Result, Status
from .working import PendingMerge, PendingRebase, UnmergedRest, WorkingState

__all__ = [
    "Attached",
    "BranchAlreadyExists",
    "BranchNotFound",
    "CommandOutput",
    "Commit",
    "Conflict",
    "ConflictUnresolved",
    "Detached",
    "DetachedHeadForbidden",
    "DiffResult",
    "GCResult",
    "GitError",
    "Head",
    "History",
    "IntegrityError",
    "InvalidBranchName",
    "KVStore",
    "MergeConflict",
    "MergeOutcome",
    "NoConflict",
    "NoRebaseInProgress",
    "NothingToCommit",
    "ObjectStore",
    "OperationInProgress",
    "ParseResult",
    "PathNotFound",
    "PendingMerge",
    "PendingRebase",
    "RefStore",
    "RepoState",
    "Repository",
    "Result",
    "RootCommitCherryPick",
    "SelfMergeNoop",
    "Status",
    "TargetNotFound",
    "UnmergedRest",
    "WorkingState",
    "collect_garbage",
    "diff_snapshots",
    "parse_command",
    "repository",
    "run_command",
    "three_way_merge",
]
