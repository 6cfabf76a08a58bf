"""
Tests for FeedCache.

Verifies:
- Read-through get/set per operation and params
- get_or_set never stores a value loaded before an invalidate()
- invalidate() hides every cached value of one user only
- Backend failures degrade to misses and no-ops
"""

from unittest.mock import MagicMock

import pytest
from django.core.cache import caches

from notifications.cache import FeedCache


class TestKeys:
    def test_generation_key(self):
        assert FeedCache.generation_key("alice") == "cache:generation:user:alice"

    def test_params_are_sorted(self, feed_cache):
        key = feed_cache.make_key("notifications", "alice", "g1", {"page_size": 20, "page": 2})

        assert key == "cache:notifications:user:alice:g1:page=2,page_size=20"

    def test_empty_params(self, feed_cache):
        assert feed_cache.make_key("unread", "alice", "g1", None).endswith(":g1:-")


class TestReadThrough:
    def test_miss_before_any_write(self, feed_cache):
        assert feed_cache.get("notifications", "alice", {"page": 1}) is None

    def test_set_then_get(self, feed_cache):
        feed_cache.set("notifications", "alice", {"page": 1}, {"results": [1, 2]})

        assert feed_cache.get("notifications", "alice", {"page": 1}) == {"results": [1, 2]}

    def test_params_distinguish_entries(self, feed_cache):
        feed_cache.set("notifications", "alice", {"page": 1}, "first")
        feed_cache.set("notifications", "alice", {"page": 2}, "second")

        assert feed_cache.get("notifications", "alice", {"page": 1}) == "first"
        assert feed_cache.get("notifications", "alice", {"page": 2}) == "second"

    def test_zero_is_a_hit(self, feed_cache):
        feed_cache.set("unread", "alice", None, 0)

        assert feed_cache.get("unread", "alice") == 0

    def test_uses_operation_ttl(self, feed_cache, mocker):
        spy = mocker.spy(caches["default"], "set")

        feed_cache.set("unread", "alice", None, 3)

        assert spy.call_args.args[2] == 60


class TestInvalidate:
    def test_invalidate_clears_all_ops(self, feed_cache):
        feed_cache.set("notifications", "alice", {"page": 1}, "page")
        feed_cache.set("unread", "alice", None, 4)

        feed_cache.invalidate("alice")

        assert feed_cache.get("notifications", "alice", {"page": 1}) is None
        assert feed_cache.get("unread", "alice") is None

    def test_invalidate_is_per_user(self, feed_cache):
        feed_cache.set("unread", "alice", None, 1)
        feed_cache.set("unread", "bob", None, 2)

        feed_cache.invalidate("alice")

        assert feed_cache.get("unread", "bob") == 2

    def test_writes_after_invalidate_are_visible(self, feed_cache):
        feed_cache.set("unread", "alice", None, 1)
        feed_cache.invalidate("alice")

        feed_cache.set("unread", "alice", None, 5)

        assert feed_cache.get("unread", "alice") == 5


class TestGetOrSet:
    def test_loads_on_miss_then_hits(self, feed_cache):
        loader = MagicMock(return_value={"results": []})

        first = feed_cache.get_or_set("notifications", "alice", {"page": 1}, loader)
        second = feed_cache.get_or_set("notifications", "alice", {"page": 1}, loader)

        assert first == second == {"results": []}
        loader.assert_called_once()

    def test_zero_is_cached(self, feed_cache):
        loader = MagicMock(return_value=0)

        feed_cache.get_or_set("unread", "alice", None, loader)
        feed_cache.get_or_set("unread", "alice", None, loader)

        loader.assert_called_once()

    def test_invalidate_during_load_is_not_overwritten(self, feed_cache):
        def load_then_invalidate():
            # A concurrent mutation lands after the database read
            feed_cache.invalidate("alice")
            return 3

        feed_cache.get_or_set("unread", "alice", None, load_then_invalidate)

        assert feed_cache.get("unread", "alice") is None
        assert feed_cache.get_or_set("unread", "alice", None, lambda: 2) == 2

    def test_loader_errors_propagate(self, feed_cache):
        loader = MagicMock(side_effect=LookupError("gone"))

        with pytest.raises(LookupError):
            feed_cache.get_or_set("detail", "alice", {"id": "x"}, loader)

        assert feed_cache.get("detail", "alice", {"id": "x"}) is None


class TestBackendFailure:
    @pytest.fixture
    def broken_cache(self, mocker):
        backend = MagicMock()
        backend.get.side_effect = ConnectionError("redis down")
        backend.set.side_effect = ConnectionError("redis down")
        backend.add.side_effect = ConnectionError("redis down")
        mocker.patch.object(FeedCache, "backend", new=backend)
        return FeedCache()

    def test_get_degrades_to_miss(self, broken_cache):
        assert broken_cache.get("notifications", "alice", {"page": 1}) is None

    def test_set_is_noop(self, broken_cache):
        broken_cache.set("notifications", "alice", {"page": 1}, "value")

    def test_invalidate_is_noop(self, broken_cache):
        broken_cache.invalidate("alice")

    def test_get_or_set_falls_back_to_loader(self, broken_cache):
        assert broken_cache.get_or_set("unread", "alice", None, lambda: 7) == 7
