"""Tests for RefStore and HEAD."""

import pytest

from gitsim import Attached, BranchAlreadyExists, Detached, IntegrityError, ObjectStore, RefStore
from gitsim.kv.memory import Memory


def _setup() -> tuple[ObjectStore, RefStore, str]:
    store = Memory()
    objects = ObjectStore(store)
    root = objects.create_commit((), "root", {}, "main")
    return objects, RefStore(store), root


class TestBranches:
    def test_create_and_get(self):
        _, refs, root = _setup()
        refs.create("main", root)
        assert refs.get("main") == root
        assert "main" in refs
        assert refs.get("other") is None

    def test_create_existing_raises(self):
        _, refs, root = _setup()
        refs.create("main", root)
        with pytest.raises(BranchAlreadyExists):
            refs.create("main", root)

    def test_move_upserts(self):
        objects, refs, root = _setup()
        child = objects.create_commit([root], "child", {"a": "1"}, "main")
        refs.move("main", root)
        refs.move("main", child)
        refs.move("dev", root)
        assert refs.tips() == {"dev": root, "main": child}

    def test_move_to_missing_commit_raises(self):
        _, refs, _ = _setup()
        with pytest.raises(IntegrityError):
            refs.move("main", "f" * 40)
        assert "main" not in refs

    def test_names_sorted(self):
        _, refs, root = _setup()
        for name in ("zeta", "alpha", "main"):
            refs.create(name, root)
        assert refs.names() == ["alpha", "main", "zeta"]

    def test_delete(self):
        _, refs, root = _setup()
        refs.create("tmp", root)
        refs.delete("tmp")
        assert refs.names() == []


class TestHead:
    def test_no_head_initially(self):
        _, refs, _ = _setup()
        assert refs.head is None
        assert refs.head_commit() is None

    def test_attached_head_follows_branch(self):
        objects, refs, root = _setup()
        refs.move("main", root)
        refs.set_head(Attached("main"))
        child = objects.create_commit([root], "child", {"a": "1"}, "main")
        refs.advance(child)
        assert refs.head == Attached("main")
        assert refs.get("main") == child
        assert refs.head_commit() == child

    def test_detached_head_moves_alone(self):
        objects, refs, root = _setup()
        refs.move("main", root)
        refs.set_head(Detached(root))
        child = objects.create_commit([root], "child", {"a": "1"}, "main")
        refs.advance(child)
        assert refs.head == Detached(child)
        assert refs.get("main") == root

    def test_detached_head_must_exist(self):
        _, refs, _ = _setup()
        with pytest.raises(IntegrityError):
            refs.set_head(Detached("f" * 40))

    def test_head_on_missing_branch_is_integrity_error(self):
        _, refs, _ = _setup()
        refs.set_head(Attached("ghost"))
        with pytest.raises(IntegrityError):
            refs.head_commit()
