"""Tests for webhook replay protection."""

import pytest

from urdigest.domain.dedup import DEFAULT_WINDOW, InMemoryDeduplicator


class TestInMemoryDeduplicator:
    def test_unseen_then_seen(self):
        dedup = InMemoryDeduplicator()
        assert not dedup.seen("m1")
        dedup.record("m1")
        assert dedup.seen("m1")

    def test_default_window(self):
        assert InMemoryDeduplicator().max_size == DEFAULT_WINDOW == 1000

    def test_1001st_id_evicts_the_first(self):
        dedup = InMemoryDeduplicator()
        for i in range(1001):
            dedup.record(f"m{i}")
        assert len(dedup) == 1000
        assert not dedup.seen("m0")
        assert dedup.seen("m1")
        assert dedup.seen("m1000")

    def test_rerecord_does_not_refresh_position(self):
        dedup = InMemoryDeduplicator(max_size=2)
        dedup.record("a")
        dedup.record("b")
        dedup.record("a")
        dedup.record("c")
        assert not dedup.seen("a")
        assert dedup.seen("b")
        assert dedup.seen("c")

    def test_forget(self):
        dedup = InMemoryDeduplicator()
        dedup.record("m1")
        dedup.forget("m1")
        assert not dedup.seen("m1")
        dedup.forget("never-recorded")

    def test_clear(self):
        dedup = InMemoryDeduplicator()
        dedup.record("m1")
        dedup.clear()
        assert len(dedup) == 0
        assert "m1" not in dedup

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            InMemoryDeduplicator(max_size=0)
