"""Ancestry queries over the commit DAG."""

import logging
from collections import deque
from typing import Iterable, Iterator

from .objects import Commit, ObjectStore

logger = logging.getLogger(__name__)


class History:
    """Read-only navigation of an ``ObjectStore``.

    Only ``parent_ids`` drive traversal; branch labels are ignored.
    """

    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects

    def ancestors_of(self, commit_id: str) -> Iterator[str]:
        """Yield ``commit_id`` and every commit reachable from it.

        Breadth-first over all parents; each id is yielded once. The
        generator is lazy and cannot be restarted.
        """
        if commit_id not in self.objects:
            return
        seen: set[str] = {commit_id}
        queue: deque[str] = deque([commit_id])
        while queue:
            current = queue.popleft()
            yield current
            for p in self.objects.parent_ids(current):
                if p not in seen:
                    seen.add(p)
                    queue.append(p)

    def reachable_from(self, roots: Iterable[str]) -> set[str]:
        """Union of ``ancestors_of`` over ``roots``."""
        reachable: set[str] = set()
        for root in roots:
            if root in reachable:
                continue
            reachable.update(self.ancestors_of(root))
        return reachable

    def lowest_common_ancestor(self, commit_a: str, commit_b: str) -> str | None:
        """Find the merge base of two commits.

        Every common ancestor is a candidate; the one with the highest
        generation number is the nearest and wins. Between candidates of
        equal generation, the first one met walking breadth-first from
        ``commit_b`` is chosen. Returns None if the histories are disjoint.
        """
        if commit_a == commit_b:
            return commit_a if commit_a in self.objects else None

        seen_a = set(self.ancestors_of(commit_a))
        best: str | None = None
        best_generation = -1
        for candidate in self.ancestors_of(commit_b):
            if candidate not in seen_a:
                continue
            generation = self.objects.generation(candidate)
            if generation > best_generation:
                best = candidate
                best_generation = generation
        if best is not None:
            logger.debug(
                "Merge base of %s and %s is %s (generation %d)",
                commit_a[:7],
                commit_b[:7],
                best[:7],
                best_generation,
            )
        return best

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return any(c == ancestor for c in self.ancestors_of(descendant))

    def first_parent_log(self, head: str | None) -> tuple[Commit, ...]:
        """Commits from ``head`` to the root following first parents only.

        Second parents of merge commits are not visited.
        """
        log: list[Commit] = []
        current = head
        while current is not None:
            commit = self.objects.get(current)
            if commit is None:
                break
            log.append(commit)
            current = commit.parent_ids[0] if commit.parent_ids else None
        return tuple(log)

    def linear_chain(self, head: str, stop: str | None) -> list[str]:
        """First-parent ids from ``head`` back to ``stop`` (exclusive), oldest first.

        Commits reached only through a second parent are not included.
        If ``stop`` is None or not on the first-parent path the chain runs
        to the root.
        """
        chain: list[str] = []
        current: str | None = head
        while current is not None and current != stop:
            chain.append(current)
            parents = self.objects.parent_ids(current)
            current = parents[0] if parents else None
        chain.reverse()
        return chain
