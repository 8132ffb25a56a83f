"""Tests for the output buffering store."""

import threading

from emacsbridge.buffering.store import BufferingStore


class TestBufferingStore:
    def test_append_without_start_is_not_held(self):
        store = BufferingStore()
        assert store.append("*log*", "x") is False
        assert store.active_buffers == []

    def test_start_then_append_accumulates(self):
        store = BufferingStore()
        store.start("*log*")
        assert store.append("*log*", "a") is True
        assert store.append("*log*", "b") is True
        assert store.pop("*log*") == "ab"

    def test_start_is_idempotent(self):
        store = BufferingStore()
        store.start("*log*")
        store.append("*log*", "keep")
        store.start("*log*")  # Must not reset pending text
        assert store.pop("*log*") == "keep"

    def test_pop_removes_entry(self):
        store = BufferingStore()
        store.start("*log*")
        store.pop("*log*")
        assert not store.is_buffering("*log*")
        assert store.append("*log*", "x") is False

    def test_pop_without_entry(self):
        store = BufferingStore()
        assert store.pop("*log*") is None

    def test_pop_empty_session(self):
        store = BufferingStore()
        store.start("*log*")
        assert store.pop("*log*") == ""

    def test_names_are_independent(self):
        store = BufferingStore()
        store.start("a")
        assert store.append("a", "1") is True
        assert store.append("b", "2") is False
        assert store.active_buffers == ["a"]

    def test_concurrent_appends_all_kept(self):
        store = BufferingStore()
        store.start("out")

        def writer(tag: str):
            for _ in range(200):
                store.append("out", tag)

        threads = [threading.Thread(target=writer, args=(t,)) for t in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        text = store.pop("out")
        assert len(text) == 800
        assert sorted(set(text)) == ["a", "b", "c", "d"]
