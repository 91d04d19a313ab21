"""Jira REST client with request caching and write-triggered invalidation.

Read operations go through CacheStore.get_or_set() with a key built from the
operation name and its parameters. Write operations never touch the cache
before the HTTP call succeeds; afterwards they hand the affected issue key or
collection tag to the CacheInvalidator.

Per-call headers (with_headers) are sent with every request but are not part
of any cache key: two calls differing only in headers share one entry.
"""
import logging
from typing import Any, Optional

import httpx

from .cache import CacheStore, generate_cache_key
from .config import Settings
from .errors import JiraMcpError, NotFoundError, ValidationError, error_handled
from .invalidation import (
    AGILE_BOARDS_TAG,
    BOARD_SPRINTS_TAG,
    ISSUE_AGGREGATE_TAGS,
    SEARCH_TAG,
    SPRINT_ISSUES_TAG,
    VERSIONS_TAG,
    CacheInvalidator,
)

logger = logging.getLogger("jira-core.client")

NAMESPACE = "jira"


def _list_or_none(values: Optional[list]) -> Optional[list]:
    """Empty lists key and query like omitted ones."""
    return list(values) if values else None


def _csv(values: Optional[list]) -> Optional[str]:
    return ",".join(values) if values else None


def _drop_none(params: dict) -> dict:
    return {k: v for k, v in params.items() if v is not None}


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Build the shared httpx client from settings."""
    headers = {"Accept": "application/json"}
    auth = None
    if settings.jira_token:
        headers["Authorization"] = f"Bearer {settings.jira_token}"
    elif settings.jira_username and settings.jira_password:
        auth = httpx.BasicAuth(settings.jira_username, settings.jira_password)

    return httpx.AsyncClient(
        base_url=settings.jira_url.rstrip("/"),
        headers=headers,
        auth=auth,
        timeout=settings.http_timeout,
    )


class JiraClient:
    """Cached Jira REST API client."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: CacheStore,
        settings: Settings,
        invalidator: Optional[CacheInvalidator] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.http = http
        self.cache = cache
        self.settings = settings
        self.invalidator = invalidator or CacheInvalidator(cache)
        self.headers = dict(headers or {})

    def with_headers(self, headers: Optional[dict[str, str]]) -> "JiraClient":
        """Return a client sharing cache and connection pool that adds headers to requests."""
        if not headers:
            return self
        return JiraClient(
            self.http,
            self.cache,
            self.settings,
            self.invalidator,
            {**self.headers, **headers},
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _api(self, path: str) -> str:
        return f"{self.settings.jira_rest_path}{path}"

    def _agile(self, path: str) -> str:
        return f"{self.settings.jira_agile_path}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        response = await self.http.request(
            method,
            path,
            params=_drop_none(params) if params else None,
            json=json,
            headers=self.headers or None,
        )
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _cached(self, operation: str, key_params: dict, producer, ttl: Optional[float] = None) -> Any:
        key = generate_cache_key(NAMESPACE, operation, key_params)
        return await self.cache.get_or_set(key, producer, ttl)

    @staticmethod
    def _validate_issue_fields(payload: dict) -> None:
        fields = (payload or {}).get("fields") or {}
        if not fields.get("summary"):
            raise ValidationError("Summary is required for issue creation")
        if not fields.get("project"):
            raise ValidationError("Project is required for issue creation")
        if not fields.get("issuetype"):
            raise ValidationError("Issue type is required for issue creation")

    # ------------------------------------------------------------------
    # Server / users
    # ------------------------------------------------------------------

    @error_handled()
    async def health_check(self) -> dict:
        """Check connectivity and authentication (never cached)."""
        data = await self._request("GET", self._api("/myself"))
        return {
            "status": "ok",
            "user": {
                "displayName": data.get("displayName"),
                "name": data.get("name") or data.get("accountId"),
                "emailAddress": data.get("emailAddress"),
                "active": data.get("active"),
            },
        }

    @error_handled(resource="User", identifier="user_id_or_email")
    async def get_user_profile(self, user_id_or_email: str) -> dict:
        async def fetch():
            logger.info(f"Fetching Jira user profile: {user_id_or_email}")
            try:
                return await self._request("GET", self._api("/user"), params={"accountId": user_id_or_email})
            except httpx.HTTPStatusError:
                matches = await self._request(
                    "GET",
                    self._api("/user/search"),
                    params={"query": user_id_or_email, "maxResults": 1},
                )
                if not matches:
                    raise NotFoundError("User", user_id_or_email)
                return matches[0]

        return await self._cached("user", {"userIdOrEmail": user_id_or_email}, fetch)

    @error_handled()
    async def get_current_user(self) -> dict:
        async def fetch():
            return await self._request("GET", self._api("/myself"))

        return await self._cached("currentUser", {}, fetch, self.settings.cache_listing_ttl)

    @error_handled()
    async def get_server_info(self) -> dict:
        async def fetch():
            return await self._request("GET", self._api("/serverInfo"))

        return await self._cached("serverInfo", {}, fetch, self.settings.cache_reference_ttl)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    @error_handled(resource="Issue", identifier="issue_key")
    async def get_issue(
        self,
        issue_key: str,
        expand: Optional[list[str]] = None,
        fields: Optional[list[str]] = None,
        properties: Optional[list[str]] = None,
    ) -> dict:
        key_params = {
            "issueIdOrKey": issue_key,
            "expand": _list_or_none(expand),
            "fields": _list_or_none(fields),
            "properties": _list_or_none(properties),
        }

        async def fetch():
            logger.info(f"Fetching Jira issue {issue_key}")
            data = await self._request(
                "GET",
                self._api(f"/issue/{issue_key}"),
                params={"expand": _csv(expand), "fields": _csv(fields), "properties": _csv(properties)},
            )
            if not data:
                raise NotFoundError("Issue", issue_key)
            return data

        return await self._cached("issue", key_params, fetch)

    @error_handled()
    async def search_issues(
        self,
        jql: str,
        start_at: int = 0,
        max_results: Optional[int] = None,
        fields: Optional[list[str]] = None,
        expand: Optional[list[str]] = None,
    ) -> dict:
        if not jql:
            raise ValidationError("JQL query is required for search")

        request = _drop_none({
            "jql": jql,
            "startAt": start_at,
            "maxResults": min(max_results or self.settings.jira_max_results, self.settings.jira_max_results),
            "fields": _list_or_none(fields),
            "expand": _list_or_none(expand),
        })

        async def fetch():
            logger.info(f"Searching Jira issues: jql='{jql}', maxResults={request['maxResults']}")
            return await self._request("POST", self._api("/search"), json=request)

        return await self._cached("search", request, fetch, self.settings.cache_search_ttl)

    @error_handled()
    async def create_issue(self, payload: dict) -> dict:
        self._validate_issue_fields(payload)
        fields = payload["fields"]
        logger.info(f"Creating Jira issue in {fields['project']}: {fields['summary']}")

        result = await self._request("POST", self._api("/issue"), json=payload)
        self.invalidator.invalidate_issue(result["key"])
        return result

    @error_handled(resource="Issue", identifier="issue_key")
    async def update_issue(self, issue_key: str, payload: dict) -> None:
        logger.info(f"Updating Jira issue {issue_key}")
        await self._request("PUT", self._api(f"/issue/{issue_key}"), json=payload)
        self.invalidator.invalidate_issue(issue_key)

    @error_handled(resource="Issue", identifier="issue_key")
    async def delete_issue(self, issue_key: str, delete_subtasks: bool = False) -> None:
        logger.info(f"Deleting Jira issue {issue_key} (delete_subtasks={delete_subtasks})")
        await self._request(
            "DELETE",
            self._api(f"/issue/{issue_key}"),
            params={"deleteSubtasks": "true" if delete_subtasks else "false"},
        )
        self.invalidator.invalidate_issue(issue_key)

    @error_handled()
    async def batch_create_issues(self, payloads: list[dict]) -> dict:
        if not payloads:
            raise ValidationError("At least one issue is required for batch creation")
        for payload in payloads:
            self._validate_issue_fields(payload)

        logger.info(f"Batch creating {len(payloads)} Jira issues")
        result = await self._request("POST", self._api("/issue/bulk"), json={"issueUpdates": payloads})
        self.invalidator.invalidate_tags(*ISSUE_AGGREGATE_TAGS)
        return result

    @error_handled(resource="Issue", identifier="issue_key")
    async def link_to_epic(self, issue_key: str, epic_key: str) -> None:
        logger.info(f"Linking {issue_key} to epic {epic_key}")
        await self.update_issue(issue_key, {"fields": {self.settings.jira_epic_link_field: epic_key}})
        self.invalidator.invalidate_issue(epic_key)

    @error_handled(resource="Issue", identifier="issue_key")
    async def get_attachments(self, issue_key: str) -> list[dict]:
        issue = await self.get_issue(issue_key, fields=["attachment"])
        return (issue.get("fields") or {}).get("attachment") or []

    @error_handled()
    async def batch_get_changelogs(self, issue_ids: list[str], field_ids: Optional[list[str]] = None) -> dict:
        if not issue_ids:
            raise ValidationError("At least one issue is required to fetch changelogs")
        logger.info(f"Batch fetching changelogs for {len(issue_ids)} issues")
        body = _drop_none({"issueIdsOrKeys": list(issue_ids), "fieldIds": _list_or_none(field_ids)})
        return await self._request("POST", self._api("/changelog/bulkfetch"), json=body)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @error_handled(resource="Issue", identifier="issue_key")
    async def get_comments(
        self,
        issue_key: str,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> dict:
        params = {"startAt": start_at, "maxResults": max_results, "orderBy": order_by}

        async def fetch():
            logger.info(f"Fetching comments for {issue_key}")
            data = await self._request("GET", self._api(f"/issue/{issue_key}/comment"), params=params)
            return {"comments": data.get("comments", []), "total": data.get("total", 0)}

        return await self._cached("comments", {"issueIdOrKey": issue_key, **params}, fetch)

    @error_handled(resource="Issue", identifier="issue_key")
    async def add_comment(self, issue_key: str, payload: dict) -> dict:
        logger.info(f"Adding comment to {issue_key}")
        result = await self._request("POST", self._api(f"/issue/{issue_key}/comment"), json=payload)
        self.invalidator.invalidate_issue(issue_key)
        return result

    @error_handled(resource="Comment", identifier="comment_id")
    async def update_comment(self, issue_key: str, comment_id: str, payload: dict) -> dict:
        logger.info(f"Updating comment {comment_id} on {issue_key}")
        result = await self._request("PUT", self._api(f"/issue/{issue_key}/comment/{comment_id}"), json=payload)
        self.invalidator.invalidate_issue(issue_key)
        return result

    @error_handled(resource="Comment", identifier="comment_id")
    async def delete_comment(self, issue_key: str, comment_id: str) -> None:
        logger.info(f"Deleting comment {comment_id} on {issue_key}")
        await self._request("DELETE", self._api(f"/issue/{issue_key}/comment/{comment_id}"))
        self.invalidator.invalidate_issue(issue_key)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @error_handled(resource="Issue", identifier="issue_key")
    async def get_transitions(self, issue_key: str) -> list[dict]:
        async def fetch():
            logger.info(f"Fetching transitions for {issue_key}")
            data = await self._request("GET", self._api(f"/issue/{issue_key}/transitions"))
            return data.get("transitions", [])

        return await self._cached("transitions", {"issueIdOrKey": issue_key}, fetch)

    @error_handled(resource="Issue", identifier="issue_key")
    async def transition_issue(
        self,
        issue_key: str,
        transition_id: str,
        fields: Optional[dict] = None,
        comment: Optional[str] = None,
    ) -> None:
        if not transition_id:
            raise ValidationError("Transition ID is required")
        logger.info(f"Transitioning {issue_key} with transition {transition_id}")

        body: dict[str, Any] = {"transition": {"id": str(transition_id)}}
        if fields:
            body["fields"] = fields
        if comment:
            body["update"] = {"comment": [{"add": {"body": comment}}]}

        await self._request("POST", self._api(f"/issue/{issue_key}/transitions"), json=body)
        self.invalidator.invalidate_issue(issue_key)

    # ------------------------------------------------------------------
    # Worklogs
    # ------------------------------------------------------------------

    @error_handled(resource="Issue", identifier="issue_key")
    async def get_worklogs(
        self,
        issue_key: str,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        started_after: Optional[int] = None,
        started_before: Optional[int] = None,
    ) -> dict:
        params = {
            "startAt": start_at,
            "maxResults": max_results,
            "startedAfter": started_after,
            "startedBefore": started_before,
        }

        async def fetch():
            logger.info(f"Fetching worklogs for {issue_key}")
            data = await self._request("GET", self._api(f"/issue/{issue_key}/worklog"), params=params)
            return {"worklogs": data.get("worklogs", []), "total": data.get("total", 0)}

        return await self._cached("worklogs", {"issueIdOrKey": issue_key, **params}, fetch)

    @error_handled(resource="Issue", identifier="issue_key")
    async def add_worklog(self, issue_key: str, payload: dict) -> dict:
        logger.info(f"Adding worklog to {issue_key}: {payload.get('timeSpent')}")
        result = await self._request("POST", self._api(f"/issue/{issue_key}/worklog"), json=payload)
        self.invalidator.invalidate_issue(issue_key)
        return result

    # ------------------------------------------------------------------
    # Projects / versions
    # ------------------------------------------------------------------

    @error_handled()
    async def get_projects(self, expand: Optional[list[str]] = None, recent: Optional[int] = None) -> list[dict]:
        params = {"expand": _csv(expand), "recent": recent}

        async def fetch():
            logger.info("Fetching Jira projects")
            return await self._request("GET", self._api("/project"), params=params)

        return await self._cached("projects", params, fetch, self.settings.cache_listing_ttl)

    @error_handled(resource="Project", identifier="project_key")
    async def get_project(self, project_key: str, expand: Optional[list[str]] = None) -> dict:
        async def fetch():
            logger.info(f"Fetching Jira project {project_key}")
            return await self._request("GET", self._api(f"/project/{project_key}"), params={"expand": _csv(expand)})

        return await self._cached(
            "project",
            {"projectIdOrKey": project_key, "expand": _list_or_none(expand)},
            fetch,
            self.settings.cache_listing_ttl,
        )

    @error_handled(resource="Project", identifier="project_key")
    async def get_project_versions(self, project_key: str) -> list[dict]:
        async def fetch():
            logger.info(f"Fetching versions for project {project_key}")
            return await self._request("GET", self._api(f"/project/{project_key}/versions"))

        return await self._cached("versions", {"projectIdOrKey": project_key}, fetch, self.settings.cache_listing_ttl)

    @error_handled()
    async def create_version(self, payload: dict) -> dict:
        if not payload.get("name"):
            raise ValidationError("Version name is required")
        if not payload.get("projectId"):
            raise ValidationError("Project ID is required for version creation")
        logger.info(f"Creating version '{payload['name']}' in project {payload['projectId']}")

        result = await self._request("POST", self._api("/version"), json=payload)
        self.invalidator.invalidate_tags(VERSIONS_TAG)
        return result

    @error_handled(resource="Version", identifier="version_id")
    async def delete_version(self, version_id: str) -> None:
        logger.info(f"Deleting version {version_id}")
        await self._request("DELETE", self._api(f"/version/{version_id}"))
        self.invalidator.invalidate_tags(VERSIONS_TAG)

    async def batch_create_versions(self, payloads: list[dict]) -> list[dict]:
        """Create versions one by one; failures are reported per item."""
        logger.info(f"Batch creating {len(payloads)} versions")
        results = []
        for payload in payloads:
            try:
                results.append(await self.create_version(payload))
            except JiraMcpError as e:
                logger.warning(f"Failed to create version {payload.get('name')}: {e}")
                results.append({"error": e.message, "version": payload.get("name")})
        return results

    # ------------------------------------------------------------------
    # Fields / links
    # ------------------------------------------------------------------

    @error_handled()
    async def search_fields(self, query: Optional[str] = None) -> list[dict]:
        async def fetch():
            logger.info(f"Searching Jira fields: {query!r}")
            fields = await self._request("GET", self._api("/field"))
            if query:
                needle = query.lower()
                fields = [
                    f for f in fields
                    if needle in (f.get("name") or "").lower() or needle in (f.get("key") or f.get("id") or "").lower()
                ]
            return fields

        return await self._cached("fields", {"query": query}, fetch, self.settings.cache_reference_ttl)

    @error_handled()
    async def get_link_types(self) -> list[dict]:
        async def fetch():
            logger.info("Fetching issue link types")
            data = await self._request("GET", self._api("/issueLinkType"))
            return data.get("issueLinkTypes", [])

        return await self._cached("linkTypes", {}, fetch, self.settings.cache_reference_ttl)

    @error_handled()
    async def create_issue_link(self, payload: dict) -> None:
        inward = payload["inwardIssue"].get("key") or payload["inwardIssue"].get("id")
        outward = payload["outwardIssue"].get("key") or payload["outwardIssue"].get("id")
        logger.info(f"Linking {inward} -> {outward} ({payload['type']})")

        await self._request("POST", self._api("/issueLink"), json=payload)
        self.invalidator.invalidate_issue(inward)
        self.invalidator.invalidate_issue(outward)

    @error_handled(resource="Issue", identifier="issue_key")
    async def create_remote_issue_link(self, issue_key: str, payload: dict) -> dict:
        logger.info(f"Creating remote link on {issue_key}")
        result = await self._request("POST", self._api(f"/issue/{issue_key}/remotelink"), json=payload)
        self.invalidator.invalidate_issue(issue_key)
        return result

    @error_handled(resource="Issue link", identifier="link_id")
    async def remove_issue_link(self, link_id: str) -> None:
        logger.info(f"Removing issue link {link_id}")
        await self._request("DELETE", self._api(f"/issueLink/{link_id}"))
        # Both ends are unknown here; only search results are addressable
        self.invalidator.invalidate_tags(SEARCH_TAG)

    # ------------------------------------------------------------------
    # Agile
    # ------------------------------------------------------------------

    @error_handled()
    async def get_agile_boards(
        self,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        board_type: Optional[str] = None,
        name: Optional[str] = None,
        project_key: Optional[str] = None,
    ) -> dict:
        params = {
            "startAt": start_at,
            "maxResults": max_results,
            "type": board_type,
            "name": name,
            "projectKeyOrId": project_key,
        }

        async def fetch():
            logger.info("Fetching agile boards")
            return await self._request("GET", self._agile("/board"), params=params)

        return await self._cached("agileBoards", params, fetch, self.settings.cache_listing_ttl)

    @error_handled(resource="Board", identifier="board_id")
    async def get_board_issues(
        self,
        board_id: str,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        jql: Optional[str] = None,
        fields: Optional[list[str]] = None,
        expand: Optional[list[str]] = None,
    ) -> dict:
        key_params = {
            "boardId": str(board_id),
            "startAt": start_at,
            "maxResults": max_results,
            "jql": jql,
            "fields": _list_or_none(fields),
            "expand": _list_or_none(expand),
        }

        async def fetch():
            logger.info(f"Fetching issues for board {board_id}")
            return await self._request(
                "GET",
                self._agile(f"/board/{board_id}/issue"),
                params={
                    "startAt": start_at,
                    "maxResults": max_results,
                    "jql": jql,
                    "fields": _csv(fields),
                    "expand": _csv(expand),
                },
            )

        return await self._cached("boardIssues", key_params, fetch)

    @error_handled(resource="Board", identifier="board_id")
    async def get_sprints_from_board(
        self,
        board_id: str,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        state: Optional[str] = None,
    ) -> dict:
        params = {"startAt": start_at, "maxResults": max_results, "state": state}

        async def fetch():
            logger.info(f"Fetching sprints for board {board_id}")
            return await self._request("GET", self._agile(f"/board/{board_id}/sprint"), params=params)

        return await self._cached("boardSprints", {"boardId": str(board_id), **params}, fetch)

    @error_handled(resource="Sprint", identifier="sprint_id")
    async def get_sprint_issues(
        self,
        sprint_id: str,
        start_at: Optional[int] = None,
        max_results: Optional[int] = None,
        jql: Optional[str] = None,
        fields: Optional[list[str]] = None,
    ) -> dict:
        key_params = {
            "sprintId": str(sprint_id),
            "startAt": start_at,
            "maxResults": max_results,
            "jql": jql,
            "fields": _list_or_none(fields),
        }

        async def fetch():
            logger.info(f"Fetching issues for sprint {sprint_id}")
            return await self._request(
                "GET",
                self._agile(f"/sprint/{sprint_id}/issue"),
                params={"startAt": start_at, "maxResults": max_results, "jql": jql, "fields": _csv(fields)},
            )

        return await self._cached("sprintIssues", key_params, fetch)

    @error_handled()
    async def create_sprint(self, payload: dict) -> dict:
        if not payload.get("name"):
            raise ValidationError("Sprint name is required")
        if not payload.get("originBoardId"):
            raise ValidationError("Board ID is required for sprint creation")
        logger.info(f"Creating sprint '{payload['name']}' on board {payload['originBoardId']}")

        result = await self._request("POST", self._agile("/sprint"), json=payload)
        self.invalidator.invalidate_tags(BOARD_SPRINTS_TAG, AGILE_BOARDS_TAG)
        return result

    @error_handled(resource="Sprint", identifier="sprint_id")
    async def update_sprint(self, sprint_id: str, payload: dict) -> dict:
        logger.info(f"Updating sprint {sprint_id}")
        result = await self._request("POST", self._agile(f"/sprint/{sprint_id}"), json=payload)
        self.invalidator.invalidate_tags(SPRINT_ISSUES_TAG, BOARD_SPRINTS_TAG)
        return result
