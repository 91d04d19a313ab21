"""Jira MCP tool handlers.

All handlers follow a consistent pattern:
- Accept: normalized arguments dict and a JiraClient bound to the call's headers
- Return: structured data (dict or list) which the dispatcher formats
- Build request bodies through the jira_core.schemas models
- Let JiraMcpError propagate; the dispatcher reports it to the caller

Arguments arrive validated against the tool's input schema, with every
string-or-list parameter already coerced to a list.
"""
import logging
from typing import Any

from jira_core.client import JiraClient
from jira_core.schemas import (
    CommentInput,
    IssueCreate,
    IssueLinkCreate,
    IssueUpdate,
    RemoteLinkCreate,
    SearchRequest,
    SprintCreate,
    SprintUpdate,
    VersionCreate,
    WorklogInput,
)

logger = logging.getLogger("jira-mcp.handlers")


def _done(operation: str, message: str, **extra: Any) -> dict:
    return {"success": True, "operation": operation, "message": message, **extra}


# ============================================================================
# Issue Handlers
# ============================================================================

async def handle_get_issue(arguments: dict, client: JiraClient) -> dict:
    """Get an issue by key.

    Errors: NOT_FOUND_ERROR when Jira answers 404.
    """
    return await client.get_issue(
        arguments["issue_key"],
        expand=arguments.get("expand"),
        fields=arguments.get("fields"),
    )


async def handle_search_issues(arguments: dict, client: JiraClient) -> dict:
    """Search issues with JQL.

    max_results is capped at the configured page size.
    """
    request = SearchRequest(**arguments)
    result = await client.search_issues(
        request.jql,
        start_at=request.start_at,
        max_results=request.max_results,
        fields=request.fields,
        expand=request.expand,
    )
    logger.info(f"Search returned {len(result.get('issues') or [])} of {result.get('total', 0)} issues")
    return result


async def handle_create_issue(arguments: dict, client: JiraClient) -> dict:
    """Create an issue.

    COMMON PATTERNS:
    • jira_get_project(expand='issueTypes') → jira_create_issue()
    • Create under an epic: jira_create_issue(epic_key='PROJ-10', ...)

    RETURNS: id, key and self URL of the new issue.
    """
    issue = IssueCreate(**arguments)
    result = await client.create_issue(issue.to_payload(client.settings.jira_epic_link_field))
    logger.info(f"Successfully created issue {result.get('key')}")
    return result


async def handle_update_issue(arguments: dict, client: JiraClient) -> dict:
    update = IssueUpdate(**arguments)
    await client.update_issue(update.issue_key, update.to_payload())
    return _done("update_issue", f"Issue {update.issue_key} updated", issueKey=update.issue_key)


async def handle_delete_issue(arguments: dict, client: JiraClient) -> dict:
    issue_key = arguments["issue_key"]
    await client.delete_issue(issue_key, delete_subtasks=bool(arguments.get("delete_subtasks")))
    return _done("delete_issue", f"Issue {issue_key} deleted", issueKey=issue_key)


async def handle_batch_create_issues(arguments: dict, client: JiraClient) -> dict:
    epic_field = client.settings.jira_epic_link_field
    payloads = [IssueCreate(**item).to_payload(epic_field) for item in arguments["issues"]]
    result = await client.batch_create_issues(payloads)
    logger.info(f"Batch created {len((result or {}).get('issues') or [])} issues")
    return result


async def handle_link_to_epic(arguments: dict, client: JiraClient) -> dict:
    issue_key = arguments["issue_key"]
    epic_key = arguments["epic_key"]
    await client.link_to_epic(issue_key, epic_key)
    return _done("link_to_epic", f"Issue {issue_key} linked to epic {epic_key}", issueKey=issue_key, epicKey=epic_key)


async def handle_batch_get_changelogs(arguments: dict, client: JiraClient) -> dict:
    return await client.batch_get_changelogs(arguments["issue_keys"], arguments.get("fields"))


async def handle_get_attachments_info(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.get_attachments(arguments["issue_key"])


# ============================================================================
# Comment and Transition Handlers
# ============================================================================

async def handle_get_comments(arguments: dict, client: JiraClient) -> dict:
    return await client.get_comments(
        arguments["issue_key"],
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
        order_by=arguments.get("order_by"),
    )


async def handle_add_comment(arguments: dict, client: JiraClient) -> dict:
    comment = CommentInput(body=arguments["body"])
    return await client.add_comment(arguments["issue_key"], comment.to_payload())


async def handle_update_comment(arguments: dict, client: JiraClient) -> dict:
    comment = CommentInput(body=arguments["body"])
    return await client.update_comment(arguments["issue_key"], arguments["comment_id"], comment.to_payload())


async def handle_delete_comment(arguments: dict, client: JiraClient) -> dict:
    await client.delete_comment(arguments["issue_key"], arguments["comment_id"])
    return _done("delete_comment", f"Comment {arguments['comment_id']} deleted from {arguments['issue_key']}")


async def handle_get_transitions(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.get_transitions(arguments["issue_key"])


async def handle_transition_issue(arguments: dict, client: JiraClient) -> dict:
    """Move an issue through its workflow.

    Transition IDs differ per workflow; look them up with jira_get_transitions.
    """
    issue_key = arguments["issue_key"]
    await client.transition_issue(
        issue_key,
        arguments["transition_id"],
        fields=arguments.get("fields"),
        comment=arguments.get("comment"),
    )
    return _done(
        "transition_issue",
        f"Issue {issue_key} transitioned with transition {arguments['transition_id']}",
        issueKey=issue_key,
    )


# ============================================================================
# Worklog Handlers
# ============================================================================

async def handle_get_worklog(arguments: dict, client: JiraClient) -> dict:
    return await client.get_worklogs(
        arguments["issue_key"],
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
    )


async def handle_add_worklog(arguments: dict, client: JiraClient) -> dict:
    worklog = WorklogInput(**arguments)
    return await client.add_worklog(arguments["issue_key"], worklog.to_payload())


# ============================================================================
# Project and Version Handlers
# ============================================================================

async def handle_get_projects(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.get_projects(expand=arguments.get("expand"), recent=arguments.get("recent"))


async def handle_get_project(arguments: dict, client: JiraClient) -> dict:
    return await client.get_project(arguments["project_key"], expand=arguments.get("expand"))


async def handle_get_project_versions(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.get_project_versions(arguments["project_key"])


async def handle_create_version(arguments: dict, client: JiraClient) -> dict:
    version = VersionCreate(**arguments)
    return await client.create_version(version.to_payload())


async def handle_batch_create_versions(arguments: dict, client: JiraClient) -> dict:
    """Create several versions; per-version failures are listed, not raised."""
    project_id = arguments["project_id"]
    payloads = [VersionCreate(**{**item, "project_id": project_id}).to_payload() for item in arguments["versions"]]
    results = await client.batch_create_versions(payloads)
    failed = [r for r in results if "error" in r]
    return {
        "success": not failed,
        "operation": "batch_create_versions",
        "message": f"Created {len(results) - len(failed)} of {len(results)} versions",
        "results": results,
    }


async def handle_delete_version(arguments: dict, client: JiraClient) -> dict:
    await client.delete_version(arguments["version_id"])
    return _done("delete_version", f"Version {arguments['version_id']} deleted")


# ============================================================================
# User and Metadata Handlers
# ============================================================================

async def handle_get_user_profile(arguments: dict, client: JiraClient) -> dict:
    """Get a user profile.

    Errors: NOT_FOUND_ERROR if no user matches the account ID, username or email.
    """
    return await client.get_user_profile(arguments["user_id_or_email"])


async def handle_search_fields(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.search_fields(arguments.get("query"))


# ============================================================================
# Link Handlers
# ============================================================================

async def handle_get_link_types(arguments: dict, client: JiraClient) -> list[dict]:
    return await client.get_link_types()


async def handle_create_issue_link(arguments: dict, client: JiraClient) -> dict:
    link = IssueLinkCreate(**arguments)
    await client.create_issue_link(link.to_payload())
    return _done(
        "create_issue_link",
        f"Linked {link.inward_issue} and {link.outward_issue} ({link.link_type})",
    )


async def handle_create_remote_issue_link(arguments: dict, client: JiraClient) -> dict:
    link = RemoteLinkCreate(**arguments)
    return await client.create_remote_issue_link(arguments["issue_key"], link.to_payload())


async def handle_remove_issue_link(arguments: dict, client: JiraClient) -> dict:
    await client.remove_issue_link(arguments["link_id"])
    return _done("remove_issue_link", f"Issue link {arguments['link_id']} removed")


# ============================================================================
# Agile Handlers
# ============================================================================

async def handle_get_agile_boards(arguments: dict, client: JiraClient) -> dict:
    return await client.get_agile_boards(
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
        board_type=arguments.get("board_type"),
        name=arguments.get("name"),
        project_key=arguments.get("project_key"),
    )


async def handle_get_board_issues(arguments: dict, client: JiraClient) -> dict:
    return await client.get_board_issues(
        arguments["board_id"],
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
        jql=arguments.get("jql"),
        fields=arguments.get("fields"),
    )


async def handle_get_sprints_from_board(arguments: dict, client: JiraClient) -> dict:
    return await client.get_sprints_from_board(
        arguments["board_id"],
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
        state=arguments.get("state"),
    )


async def handle_get_sprint_issues(arguments: dict, client: JiraClient) -> dict:
    return await client.get_sprint_issues(
        arguments["sprint_id"],
        start_at=arguments.get("start_at"),
        max_results=arguments.get("max_results"),
        jql=arguments.get("jql"),
        fields=arguments.get("fields"),
    )


async def handle_create_sprint(arguments: dict, client: JiraClient) -> dict:
    sprint = SprintCreate(origin_board_id=arguments["board_id"], **arguments)
    return await client.create_sprint(sprint.to_payload())


async def handle_update_sprint(arguments: dict, client: JiraClient) -> dict:
    sprint = SprintUpdate(**arguments)
    return await client.update_sprint(arguments["sprint_id"], sprint.to_payload())
