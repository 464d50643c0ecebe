"""Tests for the Memory KV store."""

import threading

import pytest

from gitsim.kv.memory import Memory


class TestMemoryBasic:
    def test_set_get(self):
        m = Memory()
        m.set("k", b"v")
        assert m.get("k") == b"v"

    def test_get_missing(self):
        m = Memory()
        assert m.get("nope") is None

    def test_contains(self):
        m = Memory()
        m.set("k", b"v")
        assert "k" in m
        assert "nope" not in m

    def test_keys_keep_insertion_order(self):
        m = Memory()
        m.set("b", b"2")
        m.set("a", b"1")
        m.set("c", b"3")
        assert list(m.keys()) == ["b", "a", "c"]

    def test_set_many_get_many(self):
        m = Memory()
        m.set_many(**{"__x__a": b"1", "__x__b": b"2", "c": b"3"})
        assert m.get_many("__x__a", "c", "missing") == {"__x__a": b"1", "c": b"3"}

    def test_scan_strips_prefix(self):
        m = Memory()
        m.set_many(**{"__commit__abc": b"1", "__commit__def": b"2", "__blob__abc": b"3"})
        assert m.scan("__commit__") == ["abc", "def"]
        assert m.scan("__nothing__") == []

    def test_remove_and_remove_many(self):
        m = Memory()
        m.set_many(a=b"1", b=b"2", c=b"3")
        m.remove("a")
        m.remove("missing")
        m.remove_many("b", "missing")
        assert list(m.keys()) == ["c"]

    def test_clear(self):
        m = Memory()
        m.set_many(a=b"1", b=b"2")
        m.clear()
        assert list(m.keys()) == []


class TestMemoryTypeChecks:
    def test_set_rejects_str(self):
        m = Memory()
        with pytest.raises(TypeError):
            m.set("k", "not bytes")  # type: ignore[arg-type]

    def test_set_many_rejects_whole_batch(self):
        m = Memory()
        with pytest.raises(TypeError):
            m.set_many(a=b"1", b=2)  # type: ignore[arg-type]
        assert "a" not in m


class TestMemoryCAS:
    def test_cas_absent_key(self):
        m = Memory()
        assert m.cas("k", b"v", expected=None)
        assert m.get("k") == b"v"

    def test_cas_fails_when_present(self):
        m = Memory()
        m.set("k", b"v")
        assert not m.cas("k", b"other", expected=None)
        assert m.get("k") == b"v"

    def test_cas_matching_expected(self):
        m = Memory()
        m.set("k", b"old")
        assert m.cas("k", b"new", expected=b"old")
        assert m.get("k") == b"new"

    def test_concurrent_cas_single_winner(self):
        m = Memory()
        wins: list[int] = []
        barrier = threading.Barrier(8)

        def worker(i: int) -> None:
            barrier.wait()
            if m.cas("branch", str(i).encode(), expected=None):
                wins.append(i)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(wins) == 1
        assert m.get("branch") == str(wins[0]).encode()


class TestMemorySeeded:
    def test_initial_items(self):
        m = Memory({"a": b"1", "b": b"2"})
        assert len(m) == 2
        assert m.get("b") == b"2"

    def test_initial_items_must_be_bytes(self):
        with pytest.raises(TypeError):
            Memory({"a": "1"})  # type: ignore[dict-item]

    def test_repr_counts_keys(self):
        assert repr(Memory({"a": b"1"})) == "Memory(keys=1)"
