"""Reachability-based garbage collection of commits and blobs."""

import logging
from dataclasses import dataclass
from typing import Iterable

from .history import History
from .objects import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GCResult:
    """Result of a garbage collection pass."""

    dropped_commits: tuple[str, ...]
    dropped_blobs: tuple[str, ...]
    kept_commits: int

    def __bool__(self) -> bool:
        return bool(self.dropped_commits or self.dropped_blobs)


def collect_garbage(objects: ObjectStore, roots: Iterable[str]) -> GCResult:
    """Drop every commit unreachable from ``roots``, then unreferenced blobs.

    Callers pass the ref set as it is *after* their own ref updates
    (all branch tips plus HEAD), so commits still held by another branch
    survive.
    """
    # Mark phase
    reachable = History(objects).reachable_from(roots)

    # Sweep phase: commits
    orphans = tuple(c for c in objects.ids() if c not in reachable)
    if orphans:
        objects.remove_many(orphans)

    # Sweep phase: blobs no surviving commit refers to
    live_blobs: set[str] = set()
    for commit_id in reachable:
        live_blobs.update(objects.tree(commit_id).values())
    dead_blobs = tuple(b for b in objects.blob_ids() if b not in live_blobs)
    if dead_blobs:
        objects.remove_blobs(dead_blobs)

    if orphans or dead_blobs:
        logger.info(
            "Garbage collected %d commit(s) and %d blob(s)",
            len(orphans),
            len(dead_blobs),
        )
    return GCResult(
        dropped_commits=orphans,
        dropped_blobs=dead_blobs,
        kept_commits=len(reachable),
    )
