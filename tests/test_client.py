"""Tests for JiraClient using mocked HTTP responses."""
import json

import httpx
import pytest

from jira_core.cache import generate_cache_key
from jira_core.errors import ApiError, AuthorizationError, NotFoundError, ValidationError
from jira_core.schemas import IssueCreate

API = "https://jira.test/rest/api/2"
AGILE = "https://jira.test/rest/agile/1.0"


def _issue(key: str, summary: str = "Something") -> dict:
    return {"id": "10001", "key": key, "fields": {"summary": summary, "status": {"name": "Open"}}}


class TestIssueReads:
    """Test cached issue reads."""

    async def test_get_issue_is_cached(self, client, respx_mock):
        """Test that a second read is served from the cache."""
        route = respx_mock.get(f"{API}/issue/PROJ-1").mock(return_value=httpx.Response(200, json=_issue("PROJ-1")))

        first = await client.get_issue("PROJ-1")
        second = await client.get_issue("PROJ-1")

        assert first == second
        assert route.call_count == 1

    async def test_get_issue_passes_fields_and_expand(self, client, respx_mock):
        """Test that list params are sent comma separated."""
        route = respx_mock.get(f"{API}/issue/PROJ-1").mock(return_value=httpx.Response(200, json=_issue("PROJ-1")))

        await client.get_issue("PROJ-1", fields=["summary", "status"], expand=["changelog"])

        params = route.calls[0].request.url.params
        assert params["fields"] == "summary,status"
        assert params["expand"] == "changelog"

    async def test_404_is_not_found(self, client, respx_mock):
        """Test that a missing issue raises NotFoundError with its key."""
        respx_mock.get(f"{API}/issue/NOPE-1").mock(
            return_value=httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
        )

        with pytest.raises(NotFoundError) as exc_info:
            await client.get_issue("NOPE-1")
        assert str(exc_info.value) == "NOT_FOUND_ERROR: Issue with identifier 'NOPE-1' not found"

    async def test_errors_are_not_cached(self, client, cache, respx_mock):
        """Test that a failed read is retried against Jira on the next call."""
        route = respx_mock.get(f"{API}/issue/PROJ-1").mock(
            side_effect=[
                httpx.Response(403, json={"errorMessages": ["No permission"]}),
                httpx.Response(200, json=_issue("PROJ-1")),
            ]
        )

        with pytest.raises(AuthorizationError):
            await client.get_issue("PROJ-1")
        assert cache.keys() == []

        assert (await client.get_issue("PROJ-1"))["key"] == "PROJ-1"
        assert route.call_count == 2

    async def test_headers_sent_but_not_keyed(self, client, respx_mock):
        """Test that per-call headers reach Jira and do not split the cache."""
        route = respx_mock.get(f"{API}/issue/PROJ-1").mock(return_value=httpx.Response(200, json=_issue("PROJ-1")))

        await client.with_headers({"X-Request-Id": "a"}).get_issue("PROJ-1")
        await client.with_headers({"X-Request-Id": "b"}).get_issue("PROJ-1")

        assert route.call_count == 1
        assert route.calls[0].request.headers["X-Request-Id"] == "a"


class TestSearch:
    """Test JQL search."""

    async def test_max_results_defaults_and_caps(self, client, respx_mock):
        """Test that omitted or oversized maxResults uses the configured limit."""
        route = respx_mock.post(f"{API}/search").mock(
            return_value=httpx.Response(200, json={"issues": [], "total": 0, "startAt": 0})
        )

        await client.search_issues("project = PROJ")
        await client.search_issues("project = OTHER", max_results=500)
        await client.search_issues("project = THIRD", max_results=10)

        bodies = [json.loads(call.request.content) for call in route.calls]
        assert [b["maxResults"] for b in bodies] == [50, 50, 10]

    async def test_create_then_search_is_fresh(self, client, respx_mock):
        """Test that creating an issue invalidates earlier search results."""
        search = respx_mock.post(f"{API}/search").mock(
            side_effect=[
                httpx.Response(200, json={"issues": [], "total": 0, "startAt": 0}),
                httpx.Response(200, json={"issues": [_issue("PROJ-7", "New")], "total": 1, "startAt": 0}),
            ]
        )
        respx_mock.post(f"{API}/issue").mock(
            return_value=httpx.Response(201, json={"id": "10007", "key": "PROJ-7", "self": f"{API}/issue/10007"})
        )

        before = await client.search_issues("project = PROJ")
        payload = IssueCreate(project_key="PROJ", issue_type="Task", summary="New").to_payload()
        await client.create_issue(payload)
        after = await client.search_issues("project = PROJ")

        assert before["total"] == 0
        assert after["total"] == 1
        assert search.call_count == 2


class TestWrites:
    """Test writes and their invalidation."""

    async def test_create_issue_validates_before_request(self, client, respx_mock):
        """Test that a payload without summary never reaches Jira."""
        with pytest.raises(ValidationError, match="Summary is required for issue creation"):
            await client.create_issue({"fields": {"project": {"key": "PROJ"}, "issuetype": {"name": "Task"}}})
        assert respx_mock.calls.call_count == 0

    async def test_transition_invalidates_issue(self, client, cache, respx_mock):
        """Test that a transition drops the issue's cached transitions."""
        transitions = respx_mock.get(f"{API}/issue/PROJ-1/transitions").mock(
            return_value=httpx.Response(200, json={"transitions": [{"id": "31", "name": "Done"}]})
        )
        post = respx_mock.post(f"{API}/issue/PROJ-1/transitions").mock(return_value=httpx.Response(204))

        await client.get_transitions("PROJ-1")
        await client.transition_issue("PROJ-1", "31", comment="Finished")
        await client.get_transitions("PROJ-1")

        assert transitions.call_count == 2
        body = json.loads(post.calls[0].request.content)
        assert body == {
            "transition": {"id": "31"},
            "update": {"comment": [{"add": {"body": "Finished"}}]},
        }

    async def test_failed_write_keeps_cache(self, client, cache, respx_mock):
        """Test that nothing is invalidated when the write fails."""
        respx_mock.get(f"{API}/issue/PROJ-1").mock(return_value=httpx.Response(200, json=_issue("PROJ-1")))
        respx_mock.put(f"{API}/issue/PROJ-1").mock(return_value=httpx.Response(400, json={"errors": {"summary": "bad"}}))

        await client.get_issue("PROJ-1")
        with pytest.raises(ApiError):
            await client.update_issue("PROJ-1", {"fields": {"summary": ""}})

        assert cache.has(generate_cache_key("jira", "issue", {"issueIdOrKey": "PROJ-1"}))

    async def test_link_to_epic_uses_configured_field(self, client, settings, respx_mock):
        """Test that the epic link goes through the configured custom field."""
        route = respx_mock.put(f"{API}/issue/PROJ-2").mock(return_value=httpx.Response(204))

        await client.link_to_epic("PROJ-2", "PROJ-10")

        body = json.loads(route.calls[0].request.content)
        assert body == {"fields": {settings.jira_epic_link_field: "PROJ-10"}}

    async def test_batch_create_versions_collects_failures(self, client, respx_mock):
        """Test that one failing version does not stop the batch."""
        respx_mock.post(f"{API}/version").mock(
            side_effect=[
                httpx.Response(201, json={"id": "1", "name": "1.0"}),
                httpx.Response(400, json={"errorMessages": ["A version with this name already exists"]}),
            ]
        )

        results = await client.batch_create_versions([
            {"name": "1.0", "projectId": "100"},
            {"name": "1.0", "projectId": "100"},
        ])

        assert results[0] == {"id": "1", "name": "1.0"}
        assert results[1] == {"error": "A version with this name already exists", "version": "1.0"}

    async def test_create_sprint_invalidates_board_sprints(self, client, respx_mock):
        """Test that sprint listings refresh after a sprint is created."""
        listing = respx_mock.get(f"{AGILE}/board/7/sprint").mock(
            return_value=httpx.Response(200, json={"values": []})
        )
        respx_mock.post(f"{AGILE}/sprint").mock(return_value=httpx.Response(201, json={"id": 3, "name": "S1"}))

        await client.get_sprints_from_board("7")
        await client.create_sprint({"name": "S1", "originBoardId": 7})
        await client.get_sprints_from_board("7")

        assert listing.call_count == 2


def _seed_collections(cache) -> dict:
    keys = {
        "issue": generate_cache_key("jira", "issue", {"issueIdOrKey": "PROJ-1"}),
        "comments": generate_cache_key("jira", "comments", {"issueIdOrKey": "PROJ-1"}),
        "other_issue": generate_cache_key("jira", "issue", {"issueIdOrKey": "PROJ-2"}),
        "search": generate_cache_key("jira", "search", {"jql": "project = PROJ"}),
        "projects": generate_cache_key("jira", "projects"),
        "versions": generate_cache_key("jira", "versions", {"projectIdOrKey": "PROJ"}),
        "boards": generate_cache_key("jira", "agileBoards"),
        "board_sprints": generate_cache_key("jira", "boardSprints", {"boardId": "7"}),
        "sprint_issues": generate_cache_key("jira", "sprintIssues", {"sprintId": "3"}),
    }
    for key in keys.values():
        cache.set(key, {"cached": key})
    return keys


ISSUE_WRITES = [
    ("PUT", "/rest/api/2/issue/PROJ-1", lambda c: c.update_issue("PROJ-1", {"fields": {"summary": "New"}})),
    ("DELETE", "/rest/api/2/issue/PROJ-1", lambda c: c.delete_issue("PROJ-1")),
    ("POST", "/rest/api/2/issue/PROJ-1/comment", lambda c: c.add_comment("PROJ-1", {"body": "Hi"})),
    ("PUT", "/rest/api/2/issue/PROJ-1/comment/5", lambda c: c.update_comment("PROJ-1", "5", {"body": "Edited"})),
    ("DELETE", "/rest/api/2/issue/PROJ-1/comment/5", lambda c: c.delete_comment("PROJ-1", "5")),
    ("POST", "/rest/api/2/issue/PROJ-1/worklog", lambda c: c.add_worklog("PROJ-1", {"timeSpent": "1h"})),
]


class TestInvalidationRules:
    """Test which cached collections each write drops."""

    def _remaining(self, cache, keys) -> set:
        return {name for name, key in keys.items() if cache.has(key)}

    @pytest.mark.parametrize(
        "method,path,write",
        ISSUE_WRITES,
        ids=["update_issue", "delete_issue", "add_comment", "update_comment", "delete_comment", "add_worklog"],
    )
    async def test_issue_writes(self, client, cache, respx_mock, method, path, write):
        """Test that issue writes drop that issue's keys, searches and projects."""
        keys = _seed_collections(cache)
        respx_mock.route(method=method, host="jira.test", path=path).mock(
            return_value=httpx.Response(200, json={"id": "5"})
        )

        await write(client)

        assert self._remaining(cache, keys) == {
            "other_issue", "versions", "boards", "board_sprints", "sprint_issues",
        }

    async def test_remove_issue_link_drops_searches_only(self, client, cache, respx_mock):
        keys = _seed_collections(cache)
        respx_mock.delete(f"{API}/issueLink/10").mock(return_value=httpx.Response(204))

        await client.remove_issue_link("10")

        assert self._remaining(cache, keys) == set(keys) - {"search"}

    async def test_create_version_drops_versions_only(self, client, cache, respx_mock):
        keys = _seed_collections(cache)
        respx_mock.post(f"{API}/version").mock(return_value=httpx.Response(201, json={"id": "1", "name": "2.0"}))

        await client.create_version({"name": "2.0", "projectId": "100"})

        assert self._remaining(cache, keys) == set(keys) - {"versions"}

    async def test_delete_version_drops_versions_only(self, client, cache, respx_mock):
        keys = _seed_collections(cache)
        respx_mock.delete(f"{API}/version/1").mock(return_value=httpx.Response(204))

        await client.delete_version("1")

        assert self._remaining(cache, keys) == set(keys) - {"versions"}

    async def test_update_sprint_drops_sprint_listings(self, client, cache, respx_mock):
        """Test that a sprint update drops sprint issues and board sprint listings."""
        keys = _seed_collections(cache)
        respx_mock.post(f"{AGILE}/sprint/3").mock(return_value=httpx.Response(200, json={"id": 3, "state": "active"}))

        await client.update_sprint("3", {"state": "active"})

        assert self._remaining(cache, keys) == set(keys) - {"sprint_issues", "board_sprints"}


class TestUsers:
    """Test user lookups."""

    async def test_falls_back_to_user_search(self, client, respx_mock):
        """Test that an email is resolved through /user/search."""
        respx_mock.get(f"{API}/user").mock(return_value=httpx.Response(404))
        respx_mock.get(f"{API}/user/search").mock(
            return_value=httpx.Response(200, json=[{"accountId": "abc", "displayName": "Ann"}])
        )

        user = await client.get_user_profile("ann@example.com")

        assert user["accountId"] == "abc"

    async def test_no_match_is_not_found(self, client, respx_mock):
        """Test that an empty search result raises NotFoundError."""
        respx_mock.get(f"{API}/user").mock(return_value=httpx.Response(404))
        respx_mock.get(f"{API}/user/search").mock(return_value=httpx.Response(200, json=[]))

        with pytest.raises(NotFoundError, match="User with identifier 'ghost@example.com' not found"):
            await client.get_user_profile("ghost@example.com")


class TestReferenceData:
    """Test TTL classes of reference and listing reads."""

    async def test_server_info_uses_reference_ttl(self, client, cache, respx_mock):
        respx_mock.get(f"{API}/serverInfo").mock(return_value=httpx.Response(200, json={"version": "9.4.0"}))

        await client.get_server_info()

        assert cache.ttl("jira:serverInfo") == pytest.approx(600)

    async def test_current_user_uses_listing_ttl(self, client, cache, respx_mock):
        respx_mock.get(f"{API}/myself").mock(return_value=httpx.Response(200, json={"name": "bot"}))

        assert (await client.get_current_user())["name"] == "bot"
        assert cache.ttl("jira:currentUser") == pytest.approx(300)

    async def test_search_uses_search_ttl(self, client, cache, clock, respx_mock):
        """Test that search results expire after a minute."""
        route = respx_mock.post(f"{API}/search").mock(
            return_value=httpx.Response(200, json={"issues": [], "total": 0, "startAt": 0})
        )

        await client.search_issues("project = PROJ")
        clock.advance(61)
        await client.search_issues("project = PROJ")

        assert route.call_count == 2
