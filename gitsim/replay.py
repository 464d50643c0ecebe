"""Replaying commits on top of another commit (rebase, cherry-pick)."""

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from .errors import IntegrityError
from .merge import Conflict, MergeOutcome, three_way_merge
from .objects import Commit, ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayOutcome:
    """Result of replaying a chain of commits.

    When a step conflicts, ``tip`` is the last commit created before it,
    ``stopped_at`` the source commit of the conflicting step, ``merge``
    the partial merge of that step and ``remaining`` the source commits
    not yet replayed.
    """

    tip: str
    created: tuple[str, ...]
    snapshot: dict[str, str]
    merge: MergeOutcome | None = None
    stopped_at: str | None = None
    remaining: tuple[str, ...] = ()

    @property
    def conflict(self) -> Conflict | None:
        return self.merge.conflict if self.merge is not None else None


def _load(objects: ObjectStore, commit_id: str) -> Commit:
    commit = objects.get(commit_id)
    if commit is None:
        raise IntegrityError(f"Commit {commit_id[:7]} is missing")
    return commit


def pick_sides(
    objects: ObjectStore, commit: Commit
) -> tuple[Mapping[str, str], Mapping[str, str]]:
    """The (theirs, ancestor) snapshots for replaying ``commit``."""
    ancestor = _load(objects, commit.parent_ids[0]).snapshot if commit.parent_ids else {}
    return commit.snapshot, ancestor


def pick(objects: ObjectStore, commit: Commit, onto: Mapping[str, str]) -> MergeOutcome:
    """Apply the change ``commit`` made over its first parent to ``onto``."""
    theirs, ancestor = pick_sides(objects, commit)
    return three_way_merge(onto, theirs, ancestor)


def replay(
    objects: ObjectStore,
    onto: str,
    chain: Sequence[str],
    branch_label: str,
) -> ReplayOutcome:
    """Recreate each commit of ``chain`` (oldest first) on top of ``onto``.

    Each replayed commit gets a single parent, the previous new tip, and
    keeps its original message. Replay stops at the first conflicting
    step.
    """
    tip = onto
    snapshot = dict(_load(objects, onto).snapshot)
    created: list[str] = []
    for i, source_id in enumerate(chain):
        source = _load(objects, source_id)
        outcome = pick(objects, source, snapshot)
        if outcome.conflict is not None:
            logger.debug(
                "Replay of %s stopped on '%s'", source_id[:7], outcome.conflict.path
            )
            return ReplayOutcome(
                tip=tip,
                created=tuple(created),
                snapshot=snapshot,
                merge=outcome,
                stopped_at=source_id,
                remaining=tuple(chain[i + 1 :]),
            )
        tip = objects.create_commit([tip], source.message, outcome.snapshot, branch_label)
        snapshot = outcome.snapshot
        created.append(tip)
        logger.debug("Replayed %s as %s", source_id[:7], tip[:7])
    return ReplayOutcome(tip=tip, created=tuple(created), snapshot=snapshot)
