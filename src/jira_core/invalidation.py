"""Cache invalidation rules applied after successful Jira writes.

Invalidation is a synchronous scan over the live cache keys, including keys
whose fetch is still in flight: every key that contains the resource
identifier or one of the tags is deleted, and a fetch still running for it
will not store its result. Matching is by substring, so unrelated keys that
happen to share the text are dropped too (e.g. invalidating PROJ-1 also
clears PROJ-10). Over-deletion only costs an extra fetch; a missed key would
serve stale data.
"""
import logging
import re
from typing import Iterable, Optional

from .cache import CacheStore

logger = logging.getLogger("jira-core.invalidation")

# Tags are literal key prefixes produced by generate_cache_key("jira", ...)
SEARCH_TAG = "jira:search"
PROJECTS_TAG = "jira:projects"
VERSIONS_TAG = "jira:versions"
AGILE_BOARDS_TAG = "jira:agileBoards"
BOARD_SPRINTS_TAG = "jira:boardSprints"
SPRINT_ISSUES_TAG = "jira:sprintIssues"

# Aggregate views that may embed any issue
ISSUE_AGGREGATE_TAGS = (SEARCH_TAG, PROJECTS_TAG)


class CacheInvalidator:
    """Deletes cache entries made stale by a mutation."""

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    def invalidate(self, identifier: Optional[str] = None, tags: Iterable[str] = ()) -> int:
        """Delete every key containing identifier or any of tags.

        Returns:
            Number of entries deleted.
        """
        needles = [t for t in tags if t]
        if identifier:
            needles.append(identifier)
        if not needles:
            return 0

        related = [key for key in self.cache.keys(include_pending=True) if any(n in key for n in needles)]
        removed = sum(1 for key in related if self.cache.delete(key))

        logger.debug(f"Invalidated {removed} cache entries for {needles}")
        return removed

    def invalidate_issue(self, issue_key: str) -> int:
        """Drop everything cached for an issue plus search and project listings."""
        return self.invalidate(issue_key, ISSUE_AGGREGATE_TAGS)

    def invalidate_tags(self, *tags: str) -> int:
        return self.invalidate(None, tags)

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete keys matching pattern.

        A pattern containing ``*`` is treated as a wildcard expression
        (``jira:issue:*PROJ-1*``); anything else is a plain substring.
        """
        if "*" not in pattern:
            return self.invalidate(pattern)

        regex = re.compile(".*".join(re.escape(part) for part in pattern.split("*")))
        matching = [key for key in self.cache.keys(include_pending=True) if regex.search(key)]
        removed = sum(1 for key in matching if self.cache.delete(key))

        logger.debug(f"Invalidated {removed} cache entries matching pattern '{pattern}'")
        return removed
