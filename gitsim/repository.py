"""Repository: the mutation engine over objects, refs and the working tree.

Every public operation is one atomic transition. It returns a ``Result``
that is truthy on success and carries the new ``RepoState``; a rejected
operation carries its ``GitError`` and leaves the repository as it was.
The one deliberate exception is a conflicting merge, rebase step or
cherry-pick, which applies its partial result to the working tree before
reporting ``MergeConflict``.
"""

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Literal, Mapping

from .errors import (
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
    RootCommitCherryPick,
    SelfMergeNoop,
    TargetNotFound,
)
from .gc import GCResult, collect_garbage
from .history import History
from .kv.base import KVStore
from .kv.memory import Memory
from .merge import Conflict, MergeOutcome, diff_snapshots, three_way_merge
from .objects import Commit, ObjectStore
from .refs import Attached, Detached, Head, RefStore
from .replay import pick_sides, replay
from .working import PendingMerge, PendingRebase, UnmergedRest, WorkingState

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
INITIAL_MESSAGE = "Initial commit"
INITIAL_FILES: Mapping[str, str] = MappingProxyType({"README.md": "# Project\n"})

ResetMode = Literal["soft", "hard"]


@dataclass(frozen=True)
class RepoState:
    """Immutable view of the whole repository, for rendering."""

    commits: tuple[Commit, ...]
    branches: Mapping[str, str]
    head: Head
    head_commit: str
    working_tree: Mapping[str, str]
    staging: frozenset[str]
    conflict: Conflict | None
    pending_merge: PendingMerge | None
    pending_rebase: PendingRebase | None

    @property
    def current_branch(self) -> str | None:
        """The attached branch, or None when HEAD is detached."""
        return self.head.branch if isinstance(self.head, Attached) else None

    @property
    def detached(self) -> bool:
        return isinstance(self.head, Detached)

    def commit(self, commit_id: str) -> Commit | None:
        return next((c for c in self.commits if c.id == commit_id), None)


@dataclass(frozen=True)
class Result:
    """Outcome of a repository operation."""

    ok: bool
    state: RepoState
    strategy: str = "no_op"
    commit: str | None = None
    error: GitError | None = None
    gc: GCResult | None = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def conflict(self) -> Conflict | None:
        return self.state.conflict

    def raise_for_error(self) -> "Result":
        """Re-raise the carried error, or return self on success."""
        if self.error is not None:
            raise self.error
        return self


@dataclass(frozen=True)
class Status:
    """Working tree compared with the HEAD snapshot."""

    staged: tuple[str, ...]
    modified: tuple[str, ...]
    untracked: tuple[str, ...]
    deleted: tuple[str, ...]

    @property
    def clean(self) -> bool:
        return not (self.staged or self.modified or self.untracked or self.deleted)


@dataclass(frozen=True)
class _Applied:
    strategy: str
    commit: str | None = None
    gc: GCResult | None = None


def _normalize_mode(mode: str) -> ResetMode:
    normalized = mode.lstrip("-")
    if normalized not in ("soft", "hard"):
        raise ValueError(f"reset mode must be 'soft' or 'hard', got {mode!r}")
    return normalized  # type: ignore[return-value]


def _valid_branch_name(name: str) -> bool:
    return bool(name) and name != "HEAD" and not name.startswith("-") and not any(
        c.isspace() for c in name
    )


class Repository:
    """An in-memory repository: commits, branches, HEAD and a working tree.

    Commits and refs live in a ``KVStore`` (``Memory`` by default); the
    working tree, staging index and conflict records live on the
    instance. A backend that already holds a HEAD is reopened, otherwise
    the repository is initialised with a root commit.

    All operations are serialised by an instance lock.
    """

    def __init__(
        self,
        store: KVStore | None = None,
        *,
        default_branch: str = DEFAULT_BRANCH,
        initial_files: Mapping[str, str] | None = None,
        initial_message: str = INITIAL_MESSAGE,
    ) -> None:
        if store is None:
            store = Memory()
        if not _valid_branch_name(default_branch):
            raise ValueError(f"Invalid default branch name: {default_branch!r}")
        self.store = store
        self.objects = ObjectStore(store)
        self.refs = RefStore(store)
        self.history = History(self.objects)
        self.default_branch = default_branch
        self.initial_files = dict(INITIAL_FILES if initial_files is None else initial_files)
        self.initial_message = initial_message
        self.working = WorkingState()
        self.last_gc: GCResult | None = None
        self._lock = threading.Lock()

        if self.refs.head is None:
            self._init()
        else:
            self.working.load(self._load(self._head_id()).snapshot)

    def __repr__(self) -> str:
        head = self.refs.head
        where = head.branch if isinstance(head, Attached) else "detached"
        return f"Repository(head={where}@{self._head_id()[:7]}, commits={len(self.objects)})"

    # -- Public operations --

    def init(self) -> Result:
        """Discard everything and start over from a single root commit."""
        return self._apply("init", self._init)

    def commit(self, message: str) -> Result:
        """Commit the staged paths (or conclude a pending merge)."""
        return self._apply("commit", self._commit, message)

    def checkout(self, target: str) -> Result:
        """Switch to a branch, or detach HEAD at an exact commit id.

        Uncommitted edits and staged paths are discarded.
        """
        return self._apply("checkout", self._checkout, target)

    def create_branch(self, name: str) -> Result:
        """Create ``name`` at HEAD's commit and attach HEAD to it."""
        return self._apply("create_branch", self._create_branch, name)

    def merge(self, branch: str) -> Result:
        """Merge ``branch`` into the current branch with a two-parent commit.

        A clean merge replaces the working tree with the merged snapshot,
        discarding uncommitted edits the way ``checkout`` does. On conflict
        the merge is applied on top of the working tree instead.
        """
        return self._apply("merge", self._merge, branch)

    def merge_abort(self) -> Result:
        """Give up a conflicted merge or cherry-pick, restoring HEAD's tree."""
        return self._apply("merge_abort", self._merge_abort)

    def resolve_conflict(self, content: str) -> Result:
        """Write ``content`` at the conflicting path and mark it resolved.

        The interrupted merge then carries on past that path: clean paths
        are written and staged, and the next conflicting path, if any,
        becomes the current conflict.
        """
        return self._apply("resolve_conflict", self._resolve_conflict, content)

    def rebase(self, branch: str) -> Result:
        """Replay the current branch's first-parent history onto ``branch``.

        The working tree ends at the new tip; uncommitted edits are
        discarded.
        """
        return self._apply("rebase", self._rebase, branch)

    def rebase_continue(self) -> Result:
        """Commit the resolved step of a stopped rebase and replay the rest."""
        return self._apply("rebase_continue", self._rebase_continue)

    def rebase_abort(self) -> Result:
        """Return the rebased branch to where it was before the rebase."""
        return self._apply("rebase_abort", self._rebase_abort)

    def cherry_pick(self, id_or_prefix: str) -> Result:
        """Apply one commit's change on top of HEAD as a new commit.

        Like ``merge``, a clean pick replaces the working tree.
        """
        return self._apply("cherry_pick", self._cherry_pick, id_or_prefix)

    def reset(self, mode: str, target: str) -> Result:
        """Move the current branch to ``target``.

        Args:
            mode: ``"soft"`` keeps the working tree and stages the
                difference; ``"hard"`` replaces the working tree and
                garbage-collects unreachable commits. ``--soft`` and
                ``--hard`` are accepted too.
            target: Commit id, branch name or commit id prefix.

        Raises:
            ValueError: For an unknown mode.
        """
        return self._apply("reset", self._reset, _normalize_mode(mode), target)

    def edit_file(self, path: str, content: str) -> Result:
        return self._apply("edit_file", self._edit_file, path, content)

    def remove_file(self, path: str) -> Result:
        return self._apply("remove_file", self._remove_file, path)

    def stage(self, path: str) -> Result:
        """Stage a path, or every change with ``"."``."""
        return self._apply("stage", self._stage, path)

    def unstage(self, path: str) -> Result:
        return self._apply("unstage", self._unstage, path)

    # -- Queries --

    def log(self) -> tuple[Commit, ...]:
        """First-parent history from HEAD, newest first."""
        with self._lock:
            return self.history.first_parent_log(self._head_id())

    def state(self) -> RepoState:
        with self._lock:
            return self._state()

    def status(self) -> Status:
        with self._lock:
            head = self._load(self._head_id()).snapshot
            staged = self.working.staging
            changes = self.working.changes_against(head)
            return Status(
                staged=tuple(sorted(staged)),
                modified=tuple(sorted(changes.modified - staged)),
                untracked=tuple(sorted(changes.added - staged)),
                deleted=tuple(sorted(changes.removed - staged)),
            )

    @property
    def head(self) -> Head:
        head = self.refs.head
        if head is None:
            raise IntegrityError("Repository has no HEAD")
        return head

    @property
    def current_branch(self) -> str | None:
        head = self.head
        return head.branch if isinstance(head, Attached) else None

    # -- Internal: dispatch --

    def _apply(self, name: str, fn: Callable[..., _Applied], *args) -> Result:
        with self._lock:
            try:
                applied = fn(*args)
            except MergeConflict as e:
                logger.warning("%s stopped: %s", name, e)
                return Result(ok=False, state=self._state(), strategy=name, error=e)
            except GitError as e:
                logger.info("%s rejected (%s): %s", name, e.kind, e)
                return Result(ok=False, state=self._state(), strategy=name, error=e)
            return Result(
                ok=True,
                state=self._state(),
                strategy=applied.strategy,
                commit=applied.commit,
                gc=applied.gc,
            )

    def _state(self) -> RepoState:
        return RepoState(
            commits=tuple(self.objects.commits()),
            branches=MappingProxyType(self.refs.tips()),
            head=self.head,
            head_commit=self._head_id(),
            working_tree=MappingProxyType(dict(self.working.files)),
            staging=frozenset(self.working.staging),
            conflict=self.working.conflict,
            pending_merge=self.working.pending_merge,
            pending_rebase=self.working.pending_rebase,
        )

    # -- Internal: helpers --

    def _head_id(self) -> str:
        commit_id = self.refs.head_commit()
        if commit_id is None:
            raise IntegrityError("Repository has no HEAD")
        return commit_id

    def _load(self, commit_id: str) -> Commit:
        commit = self.objects.get(commit_id)
        if commit is None:
            raise IntegrityError(f"Commit {commit_id[:7]} is missing")
        return commit

    def _current_branch(self, operation: str) -> str:
        head = self.head
        if not isinstance(head, Attached):
            raise DetachedHeadForbidden(operation)
        return head.branch

    def _require_no_conflict(self) -> None:
        if self.working.conflict is not None:
            raise ConflictUnresolved(self.working.conflict.path)

    def _require_idle(self) -> None:
        self._require_no_conflict()
        if self.working.in_progress is not None:
            raise OperationInProgress(self.working.in_progress)

    def _resolve_commit(self, target: str) -> str:
        """Exact commit id, else the first id starting with ``target``."""
        if target in self.objects:
            return target
        commit_id = self.objects.resolve_prefix(target)
        if commit_id is None:
            raise TargetNotFound(target)
        return commit_id

    def _take_changes(self, outcome: MergeOutcome) -> None:
        """Write and stage the paths a merge took from "theirs"."""
        files = self.working.files
        for path in outcome.changed_paths:
            if path in outcome.snapshot:
                files[path] = outcome.snapshot[path]
            else:
                files.pop(path, None)
        self.working.staging.update(outcome.changed_paths)

    def _stop_on_conflict(self, outcome: MergeOutcome, rest: UnmergedRest) -> Conflict:
        """Apply the non-conflicting part of a merge to the working tree.

        ``rest`` is kept so that resolving the conflict can merge the
        paths after it.
        """
        conflict = outcome.conflict
        if conflict is None:
            raise IntegrityError("No conflict to stop on")
        self._take_changes(outcome)
        files = self.working.files
        if conflict.ours is None:
            files.pop(conflict.path, None)
        else:
            files[conflict.path] = conflict.ours
        self.working.conflict = conflict
        self.working.unmerged = rest
        return conflict

    # -- Internal: operations --

    def _init(self) -> _Applied:
        self.store.clear()
        root = self.objects.create_commit(
            (), self.initial_message, self.initial_files, self.default_branch
        )
        self.refs.move(self.default_branch, root)
        self.refs.set_head(Attached(self.default_branch))
        self.working.load(self.initial_files)
        self.last_gc = None
        logger.info("Initialised repository at %s on '%s'", root[:7], self.default_branch)
        return _Applied("init", root)

    def _commit(self, message: str) -> _Applied:
        self._require_no_conflict()
        pending = self.working.pending_merge
        if not self.working.staging and pending is None:
            raise NothingToCommit()

        head_id = self._head_id()
        head = self._load(head_id)
        parents = [head_id] if pending is None else [head_id, pending.other_commit_id]
        label = self.current_branch or head.branch_label
        snapshot = self.working.build_snapshot(head.snapshot)

        new_id = self.objects.create_commit(parents, message, snapshot, label)
        self.refs.advance(new_id)
        self.working.staging.clear()
        self.working.conflict = None
        self.working.pending_merge = None
        logger.info("Committed %s on %s: %s", new_id[:7], label, message)
        return _Applied("commit", new_id)

    def _checkout(self, target: str) -> _Applied:
        tip = self.refs.get(target)
        head: Head
        if tip is not None:
            head, commit_id = Attached(target), tip
        elif target in self.objects:
            head, commit_id = Detached(target), target
        else:
            raise TargetNotFound(target)

        snapshot = self._load(commit_id).snapshot
        self.refs.set_head(head)
        self.working.load(snapshot)
        logger.info("Checked out %s (%s)", target, commit_id[:7])
        return _Applied("checkout", commit_id)

    def _create_branch(self, name: str) -> _Applied:
        if not _valid_branch_name(name):
            raise InvalidBranchName(name)
        if self.working.pending_rebase is not None:
            raise OperationInProgress("rebase")
        head_id = self._head_id()
        self.refs.create(name, head_id)
        self.refs.set_head(Attached(name))
        logger.info("Created branch '%s' at %s", name, head_id[:7])
        return _Applied("create_branch", head_id)

    def _merge(self, branch: str) -> _Applied:
        current = self._current_branch("merge")
        self._require_idle()
        tip = self.refs.get(branch)
        if tip is None:
            raise BranchNotFound(branch)
        head_id = self._head_id()
        if tip == head_id:
            raise SelfMergeNoop(branch)

        base_id = self.history.lowest_common_ancestor(head_id, tip)
        ancestor = self._load(base_id).snapshot if base_id is not None else {}
        theirs = self._load(tip).snapshot
        outcome = three_way_merge(self._load(head_id).snapshot, theirs, ancestor)
        if outcome.conflict is not None:
            conflict = self._stop_on_conflict(outcome, UnmergedRest(theirs, ancestor))
            self.working.pending_merge = PendingMerge(tip, branch)
            raise MergeConflict(conflict)

        message = f"Merge branch '{branch}' into {current}"
        merge_id = self.objects.create_commit([head_id, tip], message, outcome.snapshot, current)
        self.refs.move(current, merge_id)
        self.working.load(outcome.snapshot)
        logger.info("Merged '%s' into '%s' as %s", branch, current, merge_id[:7])
        return _Applied("merge", merge_id)

    def _merge_abort(self) -> _Applied:
        if self.working.pending_rebase is not None:
            raise OperationInProgress("rebase")
        if self.working.conflict is None and self.working.pending_merge is None:
            raise NoConflict()
        head_id = self._head_id()
        self.working.load(self._load(head_id).snapshot)
        return _Applied("merge_abort", head_id)

    def _resolve_conflict(self, content: str) -> _Applied:
        conflict = self.working.conflict
        if conflict is None:
            raise NoConflict()
        self.working.files[conflict.path] = content
        self.working.staging.add(conflict.path)
        self.working.conflict = None

        rest = self.working.unmerged
        self.working.unmerged = None
        if rest is None:
            return _Applied("resolve_conflict")
        outcome = three_way_merge(
            self.working.files, rest.theirs, rest.ancestor, after=conflict.path
        )
        if outcome.conflict is None:
            self._take_changes(outcome)
        else:
            following = self._stop_on_conflict(outcome, rest)
            logger.warning(
                "Resolved '%s', next conflict in '%s'", conflict.path, following.path
            )
        return _Applied("resolve_conflict")

    def _reset(self, mode: ResetMode, target: str) -> _Applied:
        current = self._current_branch("reset")
        if target in self.objects:
            target_id = target
        elif (tip := self.refs.get(target)) is not None:
            target_id = tip
        else:
            target_id = self._resolve_commit(target)

        old_snapshot = self._load(self._head_id()).snapshot
        snapshot = self._load(target_id).snapshot
        self.refs.move(current, target_id)
        self.working.clear_pending()

        if mode == "soft":
            self.working.staging.update(diff_snapshots(old_snapshot, snapshot).changed)
            logger.info("Soft reset '%s' to %s", current, target_id[:7])
            return _Applied("reset", target_id)

        self.working.load(snapshot)
        roots = [*self.refs.tips().values(), self._head_id()]
        self.last_gc = collect_garbage(self.objects, roots)
        logger.info("Hard reset '%s' to %s", current, target_id[:7])
        return _Applied("reset", target_id, gc=self.last_gc)

    def _rebase(self, branch: str) -> _Applied:
        current = self._current_branch("rebase")
        self._require_idle()
        tip = self.refs.get(branch)
        if tip is None:
            raise BranchNotFound(branch)
        head_id = self._head_id()
        if tip == head_id:
            return _Applied("up_to_date", head_id)

        base_id = self.history.lowest_common_ancestor(head_id, tip)
        if base_id == head_id:
            snapshot = self._load(tip).snapshot
            self.refs.move(current, tip)
            self.working.load(snapshot)
            logger.info("Fast-forwarded '%s' to %s", current, tip[:7])
            return _Applied("fast_forward", tip)
        if base_id == tip:
            return _Applied("up_to_date", head_id)

        # disjoint histories (no base) replay everything down to the root
        chain = self.history.linear_chain(head_id, base_id)
        return self._replay_onto(current, tip, chain, original_head=head_id, onto=tip)

    def _replay_onto(
        self,
        branch: str,
        start: str,
        chain: list[str],
        *,
        original_head: str,
        onto: str,
    ) -> _Applied:
        outcome = replay(self.objects, start, chain, branch)
        self.refs.move(branch, outcome.tip)
        self.working.load(outcome.snapshot)
        if outcome.merge is None:
            logger.info(
                "Rebased '%s' onto %s (%d commit(s) replayed)",
                branch,
                onto[:7],
                len(outcome.created),
            )
            return _Applied("rebase", outcome.tip)

        step = self._load(outcome.stopped_at or "")
        conflict = self._stop_on_conflict(
            outcome.merge, UnmergedRest(*pick_sides(self.objects, step))
        )
        self.working.pending_rebase = PendingRebase(
            branch=branch,
            onto=onto,
            original_head=original_head,
            step=step.id,
            remaining=outcome.remaining,
        )
        raise MergeConflict(conflict)

    def _rebase_continue(self) -> _Applied:
        pending = self.working.pending_rebase
        if pending is None:
            raise NoRebaseInProgress()
        self._require_no_conflict()

        step = self._load(pending.step)
        tip = self.refs.get(pending.branch)
        if tip is None:
            raise BranchNotFound(pending.branch)
        if self.working.staging:
            snapshot = self.working.build_snapshot(self._load(tip).snapshot)
            tip = self.objects.create_commit([tip], step.message, snapshot, pending.branch)
            self.refs.move(pending.branch, tip)
        else:
            logger.info("Nothing staged for %s, skipping it", pending.step[:7])

        self.working.pending_rebase = None
        return self._replay_onto(
            pending.branch,
            tip,
            list(pending.remaining),
            original_head=pending.original_head,
            onto=pending.onto,
        )

    def _rebase_abort(self) -> _Applied:
        pending = self.working.pending_rebase
        if pending is None:
            raise NoRebaseInProgress()
        snapshot = self._load(pending.original_head).snapshot
        self.refs.move(pending.branch, pending.original_head)
        self.refs.set_head(Attached(pending.branch))
        self.working.load(snapshot)
        logger.info("Aborted rebase of '%s'", pending.branch)
        return _Applied("rebase_abort", pending.original_head)

    def _cherry_pick(self, id_or_prefix: str) -> _Applied:
        current = self._current_branch("cherry-pick")
        self._require_idle()
        target_id = self._resolve_commit(id_or_prefix)
        target = self._load(target_id)
        if target.is_root:
            raise RootCommitCherryPick(target_id)

        head_id = self._head_id()
        theirs, ancestor = pick_sides(self.objects, target)
        outcome = three_way_merge(self._load(head_id).snapshot, theirs, ancestor)
        if outcome.conflict is not None:
            conflict = self._stop_on_conflict(outcome, UnmergedRest(theirs, ancestor))
            raise MergeConflict(conflict)

        new_id = self.objects.create_commit([head_id], target.message, outcome.snapshot, current)
        self.refs.move(current, new_id)
        self.working.load(outcome.snapshot)
        logger.info("Cherry-picked %s onto '%s' as %s", target_id[:7], current, new_id[:7])
        return _Applied("cherry_pick", new_id)

    def _edit_file(self, path: str, content: str) -> _Applied:
        self.working.edit(path, content)
        return _Applied("edit_file")

    def _remove_file(self, path: str) -> _Applied:
        self.working.remove(path)
        return _Applied("remove_file")

    def _stage(self, path: str) -> _Applied:
        self.working.stage(path, self._load(self._head_id()).snapshot)
        return _Applied("stage")

    def _unstage(self, path: str) -> _Applied:
        self.working.unstage(path)
        return _Applied("unstage")
