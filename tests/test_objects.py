"""Tests for the content-addressed ObjectStore."""

import pytest

import gitsim.objects as objects_module
from gitsim import IntegrityError, ObjectStore
from gitsim.kv.memory import Memory


def _store() -> ObjectStore:
    return ObjectStore(Memory())


class TestCreateCommit:
    def test_root_commit(self):
        objects = _store()
        root = objects.create_commit((), "root", {"a.txt": "1"}, "main")
        commit = objects.get(root)
        assert commit is not None
        assert commit.parent_ids == ()
        assert commit.is_root
        assert commit.generation == 0
        assert dict(commit.snapshot) == {"a.txt": "1"}
        assert commit.branch_label == "main"
        assert len(root) == 40

    def test_child_generation(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        c1 = objects.create_commit([root], "one", {"a": "1"}, "main")
        c2 = objects.create_commit([c1], "two", {"a": "2"}, "main")
        assert objects.generation(c1) == 1
        assert objects.generation(c2) == 2

    def test_merge_generation_uses_deepest_parent(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        a1 = objects.create_commit([root], "a1", {"a": "1"}, "main")
        a2 = objects.create_commit([a1], "a2", {"a": "2"}, "main")
        b1 = objects.create_commit([root], "b1", {"b": "1"}, "topic")
        merge = objects.create_commit([a2, b1], "merge", {"a": "2", "b": "1"}, "main")
        assert objects.generation(merge) == 3
        assert objects.get(merge).is_merge

    def test_missing_parent_is_integrity_error(self):
        objects = _store()
        with pytest.raises(IntegrityError):
            objects.create_commit(["f" * 40], "orphan", {}, "main")
        assert objects.ids() == []

    def test_more_than_two_parents_rejected(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        with pytest.raises(ValueError):
            objects.create_commit([root, root, root], "octopus", {}, "main")

    def test_snapshot_is_read_only(self):
        objects = _store()
        root = objects.create_commit((), "root", {"a": "1"}, "main")
        with pytest.raises(TypeError):
            objects.get(root).snapshot["a"] = "2"  # type: ignore[index]


class TestContentAddressing:
    def test_same_content_same_id_across_stores(self):
        a = _store().create_commit((), "root", {"a": "1"}, "main")
        b = _store().create_commit((), "root", {"a": "1"}, "main")
        assert a == b

    def test_label_and_timestamp_do_not_affect_id(self):
        a = _store().create_commit((), "root", {"a": "1"}, "main", timestamp=1.0)
        b = _store().create_commit((), "root", {"a": "1"}, "dev", timestamp=2.0)
        assert a == b

    def test_message_affects_id(self):
        objects = _store()
        a = objects.create_commit((), "one", {"a": "1"}, "main")
        b = objects.create_commit((), "two", {"a": "1"}, "main")
        assert a != b

    def test_identical_commit_deduplicated(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        first = objects.create_commit([root], "add a", {"a": "1"}, "main")
        second = objects.create_commit([root], "add a", {"a": "1"}, "feature")
        assert first == second
        assert len(objects) == 2
        # the stored record keeps its original label
        assert objects.get(first).branch_label == "main"

    def test_identical_blobs_stored_once(self):
        objects = _store()
        root = objects.create_commit((), "root", {"a": "same", "b": "same"}, "main")
        objects.create_commit([root], "again", {"a": "same", "c": "same"}, "main")
        assert len(objects.blob_ids()) == 1

    def test_hash_collision_gets_salted_id(self, monkeypatch):
        monkeypatch.setattr(
            objects_module,
            "_content_hash",
            lambda parents, tree, message, salt=0: f"{salt:040d}",
        )
        objects = _store()
        first = objects.create_commit((), "one", {"a": "1"}, "main")
        second = objects.create_commit((), "two", {"a": "2"}, "main")
        assert first == "0" * 40
        assert second == "0" * 39 + "1"
        assert objects.get(second).message == "two"
        # same content as the first still resolves to it
        assert objects.create_commit((), "one", {"a": "1"}, "main") == first


class TestReading:
    def test_ids_in_creation_order(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        c1 = objects.create_commit([root], "one", {"a": "1"}, "main")
        c2 = objects.create_commit([c1], "two", {"a": "2"}, "main")
        assert objects.ids() == [root, c1, c2]
        assert [c.message for c in objects.commits()] == ["root", "one", "two"]

    def test_get_missing(self):
        assert _store().get("nope") is None

    def test_contains(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        assert root in objects
        assert "nope" not in objects
        assert None not in objects

    def test_resolve_prefix_first_match(self):
        objects = _store()
        root = objects.create_commit((), "root", {}, "main")
        assert objects.resolve_prefix(root[:6]) == root
        assert objects.resolve_prefix("zzzz") is None
        assert objects.resolve_prefix("") is None

    def test_remove_commits_and_blobs(self):
        objects = _store()
        root = objects.create_commit((), "root", {"a": "1"}, "main")
        blob = objects.tree(root)["a"]
        objects.remove_many([root])
        objects.remove_blobs([blob])
        assert root not in objects
        assert objects.blob_ids() == []
        assert objects.tree(root) == {}
