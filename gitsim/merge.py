"""Three-way merge of snapshots.

Everything here is pure: inputs are never modified and the caller decides
what to do with a conflict.
"""

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class DiffResult:
    """Path-level differences between two snapshots."""

    added: frozenset[str]
    removed: frozenset[str]
    modified: frozenset[str]

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    @property
    def changed(self) -> frozenset[str]:
        return self.added | self.removed | self.modified


@dataclass(frozen=True)
class Conflict:
    """A path both sides changed differently since the common ancestor.

    ``None`` for any side means the path is absent there.
    """

    path: str
    ours: str | None
    theirs: str | None
    ancestor: str | None


@dataclass(frozen=True)
class MergeOutcome:
    """Result of ``three_way_merge``.

    On conflict, ``snapshot`` holds the changes taken from the paths
    scanned before the conflicting one; the conflicting path keeps the
    "ours" value.
    """

    snapshot: dict[str, str]
    conflict: Conflict | None
    changed_paths: tuple[str, ...]

    def __bool__(self) -> bool:
        return self.conflict is None


def diff_snapshots(a: Mapping[str, str], b: Mapping[str, str]) -> DiffResult:
    """Which paths were added, removed or modified going from ``a`` to ``b``."""
    keys_a = set(a)
    keys_b = set(b)
    return DiffResult(
        added=frozenset(keys_b - keys_a),
        removed=frozenset(keys_a - keys_b),
        modified=frozenset(k for k in keys_a & keys_b if a[k] != b[k]),
    )


def three_way_merge(
    ours: Mapping[str, str],
    theirs: Mapping[str, str],
    ancestor: Mapping[str, str] | None = None,
    *,
    after: str | None = None,
) -> MergeOutcome:
    """Merge ``theirs`` into ``ours`` relative to ``ancestor``.

    Paths from either side are scanned in sorted order:

    - same content on both sides: kept
    - only theirs changed: theirs wins (absent means deleted)
    - only ours changed: ours kept
    - both changed differently: conflict; scanning stops there

    Only the first conflicting path is reported. Passing the path of a
    resolved conflict as ``after`` resumes the scan past it; paths up to
    and including ``after`` are left as they are in ``ours``.
    """
    base = ancestor or {}
    merged = dict(ours)
    changed: list[str] = []

    for path in sorted(set(ours) | set(theirs)):
        if after is not None and path <= after:
            continue
        o = base.get(path)
        a = ours.get(path)
        b = theirs.get(path)
        if a == b or b == o:
            continue
        if a == o:
            if b is None:
                del merged[path]
            else:
                merged[path] = b
            changed.append(path)
            continue
        return MergeOutcome(
            snapshot=merged,
            conflict=Conflict(path=path, ours=a, theirs=b, ancestor=o),
            changed_paths=tuple(changed),
        )

    return MergeOutcome(snapshot=merged, conflict=None, changed_paths=tuple(changed))
