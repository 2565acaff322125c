"""Tests for the result cache."""

from unittest.mock import patch

import pytest

from hybrid_search.search.cache import ALL_TYPES, ResultCache


@pytest.mark.unit
class TestResultCache:
    def test_get_set(self):
        cache = ResultCache()

        cache.set("k", {"value": 1})

        assert cache.get("k") == {"value": 1}
        assert cache.get("missing") is None
        assert cache.get_stats()["hits"] == 1
        assert cache.get_stats()["misses"] == 1

    def test_entries_expire(self):
        cache = ResultCache(ttl_seconds=10)

        with patch("hybrid_search.search.cache.time.monotonic", return_value=100.0):
            cache.set("k", "v")
        with patch("hybrid_search.search.cache.time.monotonic", return_value=105.0):
            assert cache.get("k") == "v"
        with patch("hybrid_search.search.cache.time.monotonic", return_value=111.0):
            assert cache.get("k") is None

        assert len(cache) == 0

    def test_lru_eviction(self):
        cache = ResultCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_invalidate_by_entity_type(self):
        cache = ResultCache()
        cache.set("users", 1, tags=["User"])
        cache.set("files", 2, tags=["File"])
        cache.set("mixed", 3, tags=["User", "File"])
        cache.set("untyped", 4)

        removed = cache.invalidate("User")

        assert removed == 3
        assert cache.get("files") == 2
        assert cache.get("users") is None
        assert cache.get("mixed") is None
        assert cache.get("untyped") is None

    def test_untyped_entries_use_wildcard_tag(self):
        cache = ResultCache()
        cache.set("k", 1)

        assert cache.invalidate(ALL_TYPES) == 1

    def test_clear(self):
        cache = ResultCache()
        cache.set("a", 1)

        cache.clear()

        assert len(cache) == 0
