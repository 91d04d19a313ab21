"""Text formatting for Jira tool results.

Each formatter takes the structured result of a handler and returns the
text sent back to the MCP client. Tools without a dedicated formatter use
format_json.
"""
import json
from typing import Any


def format_json(result: Any) -> str:
    """Pretty-print a result as JSON."""
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


def _name(value: Any, default: str = "None") -> str:
    """Display name of a nested Jira object ({name}, {displayName} or plain)."""
    if not value:
        return default
    if isinstance(value, dict):
        return value.get("displayName") or value.get("name") or value.get("key") or value.get("value") or default
    return str(value)


def format_issue(issue: dict) -> str:
    """Format a single issue for display."""
    fields = issue.get("fields") or {}
    labels = fields.get("labels") or []
    components = [c.get("name") for c in fields.get("components") or []]

    labels_info = f"\nLabels: {', '.join(labels)}" if labels else ""
    components_info = f"\nComponents: {', '.join(components)}" if components else ""
    desc_info = f"\n\n{fields['description']}" if fields.get("description") else ""

    return f"""**{issue.get('key')}**: {fields.get('summary', '')}
Type: {_name(fields.get('issuetype'))}
Status: {_name(fields.get('status'))}
Priority: {_name(fields.get('priority'))}
Assignee: {_name(fields.get('assignee'), 'Unassigned')}
Reporter: {_name(fields.get('reporter'))}{labels_info}{components_info}
Created: {fields.get('created', 'N/A')}
Updated: {fields.get('updated', 'N/A')}{desc_info}"""


def format_issue_line(issue: dict) -> str:
    fields = issue.get("fields") or {}
    return f"- {issue.get('key')}: {fields.get('summary', '')} [{_name(fields.get('status'))}]"


def format_search_results(result: dict) -> str:
    """Format a search (or board / sprint issue listing) page."""
    issues = result.get("issues") or []
    start = result.get("startAt", 0)
    total = result.get("total", len(issues))
    if not issues:
        return "No issues found"

    header = f"Found {total} issues (showing {start + 1}-{start + len(issues)})"
    return header + "\n\n" + "\n".join(format_issue_line(issue) for issue in issues)


def format_created_issue(result: dict) -> str:
    return f"Created issue {result.get('key')} (ID: {result.get('id')})"


def format_comments(result: dict) -> str:
    comments = result.get("comments") or []
    if not comments:
        return "No comments"
    lines = [f"{result.get('total', len(comments))} comments\n"]
    for comment in comments:
        lines.append(f"[{comment.get('id')}] {_name(comment.get('author'))} ({comment.get('created', '')}):")
        lines.append(f"{comment.get('body', '')}\n")
    return "\n".join(lines).rstrip()


def format_transitions(transitions: list[dict]) -> str:
    if not transitions:
        return "No transitions available"
    lines = ["Available transitions:"]
    for transition in transitions:
        lines.append(f"- {transition.get('id')}: {transition.get('name')} → {_name(transition.get('to'))}")
    return "\n".join(lines)


def format_worklogs(result: dict) -> str:
    worklogs = result.get("worklogs") or []
    if not worklogs:
        return "No work logged"
    lines = [f"{result.get('total', len(worklogs))} worklog entries"]
    for worklog in worklogs:
        comment = f": {worklog['comment']}" if worklog.get("comment") else ""
        lines.append(f"- {worklog.get('timeSpent')} by {_name(worklog.get('author'))} on {worklog.get('started')}{comment}")
    return "\n".join(lines)


def format_project(project: dict) -> str:
    issue_types = [t.get("name") for t in project.get("issueTypes") or []]
    types_info = f"\nIssue types: {', '.join(issue_types)}" if issue_types else ""
    desc_info = f"\nDescription: {project['description']}" if project.get("description") else ""
    return f"""**{project.get('name')}** ({project.get('key')})
ID: {project.get('id')}
Lead: {_name(project.get('lead'))}{desc_info}{types_info}"""


def format_projects(projects: list[dict]) -> str:
    if not projects:
        return "No projects found"
    lines = [f"Found {len(projects)} projects"]
    lines.extend(f"- {p.get('key')}: {p.get('name')} (ID: {p.get('id')})" for p in projects)
    return "\n".join(lines)


def format_versions(versions: list[dict]) -> str:
    if not versions:
        return "No versions found"
    lines = []
    for version in versions:
        flags = []
        if version.get("released"):
            flags.append("released")
        if version.get("archived"):
            flags.append("archived")
        flags_info = f" [{', '.join(flags)}]" if flags else ""
        date_info = f" - release {version['releaseDate']}" if version.get("releaseDate") else ""
        lines.append(f"- {version.get('name')} (ID: {version.get('id')}){date_info}{flags_info}")
    return "\n".join(lines)


def format_user(user: dict) -> str:
    email_info = f"\nEmail: {user['emailAddress']}" if user.get("emailAddress") else ""
    return f"""**{user.get('displayName')}**
Account: {user.get('accountId') or user.get('name') or user.get('key')}{email_info}
Active: {user.get('active')}"""


def format_fields(fields: list[dict]) -> str:
    if not fields:
        return "No matching fields"
    lines = []
    for field in fields:
        kind = "custom" if field.get("custom") else "system"
        field_type = (field.get("schema") or {}).get("type", "unknown")
        lines.append(f"- {field.get('id')}: {field.get('name')} ({kind}, {field_type})")
    return "\n".join(lines)


def format_link_types(link_types: list[dict]) -> str:
    if not link_types:
        return "No link types"
    return "\n".join(
        f"- {t.get('name')} (ID: {t.get('id')}): inward '{t.get('inward')}', outward '{t.get('outward')}'"
        for t in link_types
    )


def format_attachments(attachments: list[dict]) -> str:
    if not attachments:
        return "No attachments"
    return "\n".join(
        f"- {a.get('filename')} ({a.get('size', 0)} bytes, {a.get('mimeType')}) by {_name(a.get('author'))}: {a.get('content')}"
        for a in attachments
    )


def format_boards(result: dict) -> str:
    boards = result.get("values") or []
    if not boards:
        return "No boards found"
    return "\n".join(f"- {b.get('id')}: {b.get('name')} ({b.get('type')})" for b in boards)


def format_sprints(result: dict) -> str:
    sprints = result.get("values") or []
    if not sprints:
        return "No sprints found"
    lines = []
    for sprint in sprints:
        dates = ""
        if sprint.get("startDate") or sprint.get("endDate"):
            dates = f" {sprint.get('startDate', '?')} → {sprint.get('endDate', '?')}"
        goal = f" - {sprint['goal']}" if sprint.get("goal") else ""
        lines.append(f"- {sprint.get('id')}: {sprint.get('name')} [{sprint.get('state')}]{dates}{goal}")
    return "\n".join(lines)


def format_operation(result: dict) -> str:
    """Format the confirmation of a write with no response body."""
    return result.get("message") or format_json(result)
