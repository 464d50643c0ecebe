"""Tests for reachability-based garbage collection."""

import logging

from gitsim import GCResult, ObjectStore, collect_garbage
from gitsim.kv.memory import Memory


def _store() -> ObjectStore:
    return ObjectStore(Memory())


class TestCollectGarbage:
    def test_drops_unreachable_commits(self):
        objects = _store()
        root = objects.create_commit([], "root", {"a": "1"}, "main")
        kept = objects.create_commit([root], "kept", {"a": "2"}, "main")
        lost = objects.create_commit([root], "lost", {"a": "3"}, "other")
        result = collect_garbage(objects, [kept])
        assert result.dropped_commits == (lost,)
        assert result.kept_commits == 2
        assert lost not in objects
        assert kept in objects and root in objects

    def test_drops_unreferenced_blobs_only(self):
        objects = _store()
        root = objects.create_commit([], "root", {"a": "shared"}, "main")
        objects.create_commit([root], "lost", {"a": "shared", "b": "gone"}, "main")
        before = len(objects.blob_ids())
        result = collect_garbage(objects, [root])
        assert len(result.dropped_blobs) == 1
        assert len(objects.blob_ids()) == before - 1
        assert objects.get(root).snapshot == {"a": "shared"}

    def test_merge_parents_stay_reachable(self):
        objects = _store()
        root = objects.create_commit([], "root", {}, "main")
        a = objects.create_commit([root], "a", {"a": "1"}, "main")
        b = objects.create_commit([root], "b", {"b": "1"}, "side")
        merge = objects.create_commit([a, b], "m", {"a": "1", "b": "1"}, "main")
        result = collect_garbage(objects, [merge])
        assert not result
        assert result.dropped_commits == ()
        assert {root, a, b, merge} <= set(objects.ids())

    def test_several_roots(self):
        objects = _store()
        root = objects.create_commit([], "root", {}, "main")
        a = objects.create_commit([root], "a", {"a": "1"}, "main")
        b = objects.create_commit([root], "b", {"b": "1"}, "side")
        result = collect_garbage(objects, [a, b])
        assert result == GCResult(dropped_commits=(), dropped_blobs=(), kept_commits=3)

    def test_unknown_roots_ignored(self):
        objects = _store()
        root = objects.create_commit([], "root", {}, "main")
        result = collect_garbage(objects, ["missing", root])
        assert result.kept_commits == 1

    def test_logs_sweep(self, caplog):
        objects = _store()
        root = objects.create_commit([], "root", {}, "main")
        objects.create_commit([root], "lost", {"x": "1"}, "main")
        with caplog.at_level(logging.INFO, logger="gitsim.gc"):
            collect_garbage(objects, [root])
        assert any("1 commit(s)" in r.getMessage() for r in caplog.records)
