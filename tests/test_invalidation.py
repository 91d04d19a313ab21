"""Tests for write-triggered cache invalidation."""
import asyncio

from jira_core.cache import generate_cache_key
from jira_core.invalidation import (
    BOARD_SPRINTS_TAG,
    SEARCH_TAG,
    VERSIONS_TAG,
)


def _seed(cache):
    keys = {
        "issue_x": generate_cache_key("jira", "issue", {"issueIdOrKey": "X-1"}),
        "comments_x": generate_cache_key("jira", "comments", {"issueIdOrKey": "X-1"}),
        "issue_y": generate_cache_key("jira", "issue", {"issueIdOrKey": "Y-2"}),
        "search": generate_cache_key("jira", "search", {"jql": "project = Y"}),
        "projects": generate_cache_key("jira", "projects"),
        "user": generate_cache_key("jira", "user", {"userIdOrEmail": "Z"}),
        "versions": generate_cache_key("jira", "versions", {"projectIdOrKey": "Y"}),
    }
    for key in keys.values():
        cache.set(key, {"cached": key})
    return keys


class TestInvalidateIssue:
    """Test issue-scoped invalidation."""

    def test_removes_issue_keys_and_aggregates_only(self, cache, invalidator):
        """Test that a write to X-1 drops X-1 keys, search and projects, and nothing else."""
        keys = _seed(cache)

        removed = invalidator.invalidate_issue("X-1")

        assert removed == 4
        for name in ("issue_x", "comments_x", "search", "projects"):
            assert not cache.has(keys[name]), name
        for name in ("issue_y", "user", "versions"):
            assert cache.has(keys[name]), name

    def test_substring_match_over_deletes(self, cache, invalidator):
        """Test that identifiers sharing a prefix are invalidated together."""
        key_10 = generate_cache_key("jira", "issue", {"issueIdOrKey": "X-10"})
        cache.set(key_10, {})

        invalidator.invalidate_issue("X-1")

        assert not cache.has(key_10)

    def test_nothing_to_invalidate(self, cache, invalidator):
        """Test that an empty request removes nothing."""
        _seed(cache)
        assert invalidator.invalidate() == 0
        assert len(cache.keys()) == 7


class TestInvalidateTags:
    """Test tag and pattern invalidation."""

    def test_invalidate_tags(self, cache, invalidator):
        """Test that tags remove whole collections."""
        keys = _seed(cache)
        sprints = generate_cache_key("jira", "boardSprints", {"boardId": "7"})
        cache.set(sprints, [])

        removed = invalidator.invalidate_tags(VERSIONS_TAG, BOARD_SPRINTS_TAG)

        assert removed == 2
        assert not cache.has(keys["versions"])
        assert not cache.has(sprints)
        assert cache.has(keys["search"])

    def test_plain_pattern_is_substring(self, cache, invalidator):
        """Test that a pattern without wildcards matches as a substring."""
        keys = _seed(cache)
        assert invalidator.invalidate_pattern(SEARCH_TAG) == 1
        assert not cache.has(keys["search"])

    def test_wildcard_pattern(self, cache, invalidator):
        """Test that '*' matches any run of characters."""
        keys = _seed(cache)

        removed = invalidator.invalidate_pattern("jira:issue:*X-1*")

        assert removed == 1
        assert not cache.has(keys["issue_x"])
        assert cache.has(keys["comments_x"])
        assert cache.has(keys["issue_y"])


class TestInvalidationDuringFetch:
    """Test writes that land while a read of the same key is in flight."""

    async def test_search_after_write_does_not_join_older_fetch(self, cache, invalidator):
        """Test that a search started after a create sees the new issue."""
        key = generate_cache_key("jira", "search", {"jql": "project = PROJ"})
        release = asyncio.Event()
        calls = []

        async def before_write():
            calls.append("before")
            await release.wait()
            return {"total": 0}

        async def after_write():
            calls.append("after")
            return {"total": 1}

        early = asyncio.create_task(cache.get_or_set(key, before_write, ttl=60))
        await asyncio.sleep(0)

        invalidator.invalidate_issue("PROJ-7")
        late = await cache.get_or_set(key, after_write, ttl=60)
        release.set()

        assert late == {"total": 1}
        assert await early == {"total": 0}
        assert calls == ["before", "after"]
        assert cache.get(key) == {"total": 1}

    async def test_unrelated_fetch_is_not_detached(self, cache, invalidator):
        """Test that in-flight keys outside the invalidation scope still get stored."""
        key = generate_cache_key("jira", "user", {"userIdOrEmail": "Z"})
        release = asyncio.Event()

        async def producer():
            await release.wait()
            return {"name": "Z"}

        task = asyncio.create_task(cache.get_or_set(key, producer))
        await asyncio.sleep(0)

        assert invalidator.invalidate_issue("PROJ-7") == 0
        release.set()

        assert await task == {"name": "Z"}
        assert cache.has(key)
