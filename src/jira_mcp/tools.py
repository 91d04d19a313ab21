"""MCP tool definitions for the Jira facade.

This module is the single list of tools exposed by the server. The
dispatcher derives its argument validation and normalization from these
input schemas, so a property declared with string_or_list() is always
delivered to handlers as a list.
"""

from mcp.types import Tool


def string_or_list(description: str) -> dict:
    """Schema for a parameter accepting a string or an array of strings."""
    return {
        "anyOf": [
            {"type": "string"},
            {"type": "array", "items": {"type": "string"}},
        ],
        "description": description,
    }


def is_string_or_list(prop_schema: dict) -> bool:
    variants = prop_schema.get("anyOf") or []
    types = {variant.get("type") for variant in variants}
    return types == {"string", "array"}


ISSUE_KEY = {"type": "string", "description": "Issue key (e.g. 'PROJ-123') or numeric ID"}
START_AT = {"type": "integer", "description": "Index of the first result (default: 0)"}
MAX_RESULTS = {"type": "integer", "description": "Maximum number of results to return"}

ISSUE_FIELDS_PROPERTIES = {
    "project_key": {"type": "string", "description": "Project key (e.g. 'PROJ') or numeric ID"},
    "issue_type": {
        "type": "string",
        "description": "Issue type name or ID. Use jira_get_project(expand='issueTypes') to list valid types.",
    },
    "summary": {"type": "string", "description": "Short, descriptive title"},
    "description": {"type": "string", "description": "Detailed description. For bugs include reproduction steps."},
    "assignee": {"type": "string", "description": "Optional Jira username of the assignee"},
    "reporter": {"type": "string", "description": "Optional Jira username of the reporter"},
    "priority": {"type": "string", "description": "Optional priority name (e.g. 'High')"},
    "labels": string_or_list("Labels, e.g. 'bug' or ['bug', 'urgent']"),
    "components": string_or_list("Component names, e.g. ['Backend', 'API']"),
    "epic_key": {"type": "string", "description": "Epic issue key to link the new issue to"},
    "original_estimate": {"type": "string", "description": "Original estimate in Jira duration format (e.g. '1d 4h')"},
    "remaining_estimate": {"type": "string", "description": "Remaining estimate in Jira duration format"},
    "custom_fields": {"type": "object", "description": "Custom field values keyed by field ID"},
}


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for Jira."""
    return [
        # ============================================================================
        # Issue Tools
        # ============================================================================
        Tool(
            name="jira_get_issue",
            description="Get a Jira issue by key with its fields. "
                       "Errors: NOT_FOUND_ERROR if the issue does not exist or is not visible.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "fields": string_or_list("Fields to return, e.g. ['summary', 'status']"),
                    "expand": string_or_list("Sections to expand, e.g. ['changelog', 'renderedFields']"),
                },
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_search_issues",
            description="Search issues with JQL. Results are cached for a minute and refreshed "
                       "automatically after any issue is created, updated or transitioned through this server.",
            inputSchema={
                "type": "object",
                "properties": {
                    "jql": {
                        "type": "string",
                        "description": "JQL query, e.g. 'project = PROJ AND status = Open'"
                    },
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                    "fields": string_or_list("Fields to return, e.g. ['summary', 'status', 'assignee']"),
                    "expand": string_or_list("Sections to expand, e.g. ['changelog']"),
                },
                "required": ["jql"]
            }
        ),
        Tool(
            name="jira_create_issue",
            description="Create a new issue (task, bug, story, etc.). "
                       "Common pattern: jira_get_project(expand='issueTypes') → pick issue type → jira_create_issue().",
            inputSchema={
                "type": "object",
                "properties": ISSUE_FIELDS_PROPERTIES,
                "required": ["project_key", "issue_type", "summary"]
            }
        ),
        Tool(
            name="jira_update_issue",
            description="Update fields of an existing issue. Only provided fields are changed. "
                       "To clear labels pass custom_fields={'labels': []}.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "summary": {"type": "string", "description": "New summary"},
                    "description": {"type": "string", "description": "New description"},
                    "assignee": {"type": "string", "description": "New assignee username"},
                    "priority": {"type": "string", "description": "New priority name"},
                    "labels": string_or_list("Replacement labels"),
                    "components": string_or_list("Replacement component names"),
                    "custom_fields": {"type": "object", "description": "Field values keyed by field ID"},
                },
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_delete_issue",
            description="Delete an issue. This cannot be undone.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "delete_subtasks": {
                        "type": "boolean",
                        "description": "Also delete subtasks (required if the issue has any)"
                    },
                },
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_batch_create_issues",
            description="Create several issues in one request. Each item takes the same fields as jira_create_issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issues": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": ISSUE_FIELDS_PROPERTIES,
                            "required": ["project_key", "issue_type", "summary"]
                        },
                        "description": "Issues to create"
                    }
                },
                "required": ["issues"]
            }
        ),
        Tool(
            name="jira_link_to_epic",
            description="Link an issue to an epic via the configured Epic Link field.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "epic_key": {"type": "string", "description": "Key of the epic, e.g. 'PROJ-10'"},
                },
                "required": ["issue_key", "epic_key"]
            }
        ),
        Tool(
            name="jira_batch_get_changelogs",
            description="Fetch changelogs for several issues at once (Jira Cloud only).",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_keys": string_or_list("Issue keys or IDs"),
                    "fields": string_or_list("Only return changes to these field IDs"),
                },
                "required": ["issue_keys"]
            }
        ),
        Tool(
            name="jira_get_attachments_info",
            description="List attachment metadata (file name, size, author, download URL) for an issue.",
            inputSchema={
                "type": "object",
                "properties": {"issue_key": ISSUE_KEY},
                "required": ["issue_key"]
            }
        ),
        # ============================================================================
        # Comment and Transition Tools
        # ============================================================================
        Tool(
            name="jira_get_comments",
            description="Get comments of an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                    "order_by": {"type": "string", "description": "Sort order, e.g. '-created' for newest first"},
                },
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_add_comment",
            description="Add a comment to an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "body": {"type": "string", "description": "Comment text (Jira wiki markup)"},
                },
                "required": ["issue_key", "body"]
            }
        ),
        Tool(
            name="jira_update_comment",
            description="Replace the text of an existing comment.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "comment_id": {"type": "string", "description": "ID of the comment"},
                    "body": {"type": "string", "description": "New comment text"},
                },
                "required": ["issue_key", "comment_id", "body"]
            }
        ),
        Tool(
            name="jira_delete_comment",
            description="Delete a comment from an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "comment_id": {"type": "string", "description": "ID of the comment"},
                },
                "required": ["issue_key", "comment_id"]
            }
        ),
        Tool(
            name="jira_get_transitions",
            description="List the workflow transitions currently available for an issue. "
                       "Use the returned ID with jira_transition_issue().",
            inputSchema={
                "type": "object",
                "properties": {"issue_key": ISSUE_KEY},
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_transition_issue",
            description="Move an issue through its workflow. "
                       "Common pattern: jira_get_transitions() → pick ID → jira_transition_issue().",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "transition_id": {"type": "string", "description": "Transition ID from jira_get_transitions"},
                    "comment": {"type": "string", "description": "Optional comment added with the transition"},
                    "fields": {"type": "object", "description": "Fields required by the transition screen"},
                },
                "required": ["issue_key", "transition_id"]
            }
        ),
        # ============================================================================
        # Worklog Tools
        # ============================================================================
        Tool(
            name="jira_get_worklog",
            description="Get work log entries of an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                },
                "required": ["issue_key"]
            }
        ),
        Tool(
            name="jira_add_worklog",
            description="Log time spent on an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "time_spent": {"type": "string", "description": "Jira duration, e.g. '2h 30m'"},
                    "comment": {"type": "string", "description": "Optional work description"},
                    "started": {
                        "type": "string",
                        "description": "Start time, e.g. '2024-01-31T09:00:00.000+0000' (default: now)"
                    },
                },
                "required": ["issue_key", "time_spent"]
            }
        ),
        # ============================================================================
        # Project and Version Tools
        # ============================================================================
        Tool(
            name="jira_get_projects",
            description="List projects visible to the current user.",
            inputSchema={
                "type": "object",
                "properties": {
                    "expand": string_or_list("Sections to expand, e.g. ['description', 'lead']"),
                    "recent": {"type": "integer", "description": "Only return this many recently viewed projects"},
                }
            }
        ),
        Tool(
            name="jira_get_project",
            description="Get project details. Use expand='issueTypes' to list the issue types available for creation.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_key": {"type": "string", "description": "Project key or ID"},
                    "expand": string_or_list("Sections to expand, e.g. 'issueTypes'"),
                },
                "required": ["project_key"]
            }
        ),
        Tool(
            name="jira_get_project_versions",
            description="List the versions (releases) of a project.",
            inputSchema={
                "type": "object",
                "properties": {"project_key": {"type": "string", "description": "Project key or ID"}},
                "required": ["project_key"]
            }
        ),
        Tool(
            name="jira_create_version",
            description="Create a version (release) in a project.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": {"type": "string", "description": "Numeric project ID"},
                    "name": {"type": "string", "description": "Version name, e.g. '1.4.0'"},
                    "description": {"type": "string", "description": "Optional description"},
                    "start_date": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
                    "release_date": {"type": "string", "description": "Release date (YYYY-MM-DD)"},
                    "released": {"type": "boolean", "description": "Mark as released"},
                    "archived": {"type": "boolean", "description": "Mark as archived"},
                },
                "required": ["project_id", "name"]
            }
        ),
        Tool(
            name="jira_batch_create_versions",
            description="Create several versions in a project. Failures are reported per version.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": {"type": "string", "description": "Numeric project ID"},
                    "versions": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "description": {"type": "string"},
                                "start_date": {"type": "string"},
                                "release_date": {"type": "string"},
                            },
                            "required": ["name"]
                        },
                        "description": "Versions to create"
                    },
                },
                "required": ["project_id", "versions"]
            }
        ),
        Tool(
            name="jira_delete_version",
            description="Delete a project version.",
            inputSchema={
                "type": "object",
                "properties": {"version_id": {"type": "string", "description": "ID of the version"}},
                "required": ["version_id"]
            }
        ),
        # ============================================================================
        # User and Metadata Tools
        # ============================================================================
        Tool(
            name="jira_get_user_profile",
            description="Get a user profile by account ID, username or email. "
                       "Errors: NOT_FOUND_ERROR if no user matches.",
            inputSchema={
                "type": "object",
                "properties": {
                    "user_id_or_email": {"type": "string", "description": "Account ID, username or email"}
                },
                "required": ["user_id_or_email"]
            }
        ),
        Tool(
            name="jira_search_fields",
            description="Search system and custom fields by name or key. Useful to find custom field IDs.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Case-insensitive text to match (omit to list all)"}
                }
            }
        ),
        # ============================================================================
        # Link Tools
        # ============================================================================
        Tool(
            name="jira_get_link_types",
            description="List available issue link types (e.g. 'Blocks', 'Relates').",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="jira_create_issue_link",
            description="Link two issues. Common pattern: jira_get_link_types() → pick name → jira_create_issue_link().",
            inputSchema={
                "type": "object",
                "properties": {
                    "link_type": {"type": "string", "description": "Link type name, e.g. 'Blocks'"},
                    "inward_issue": {"type": "string", "description": "Inward issue key"},
                    "outward_issue": {"type": "string", "description": "Outward issue key"},
                    "comment": {"type": "string", "description": "Optional comment on the link"},
                },
                "required": ["link_type", "inward_issue", "outward_issue"]
            }
        ),
        Tool(
            name="jira_create_remote_issue_link",
            description="Attach a web link (e.g. documentation, pull request) to an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_key": ISSUE_KEY,
                    "url": {"type": "string", "description": "Target URL"},
                    "title": {"type": "string", "description": "Link title"},
                    "summary": {"type": "string", "description": "Optional link summary"},
                },
                "required": ["issue_key", "url", "title"]
            }
        ),
        Tool(
            name="jira_remove_issue_link",
            description="Remove a link between two issues.",
            inputSchema={
                "type": "object",
                "properties": {"link_id": {"type": "string", "description": "ID of the issue link"}},
                "required": ["link_id"]
            }
        ),
        # ============================================================================
        # Agile Tools
        # ============================================================================
        Tool(
            name="jira_get_agile_boards",
            description="List agile boards, optionally filtered by project, type or name.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_key": {"type": "string", "description": "Only boards of this project"},
                    "board_type": {"type": "string", "enum": ["scrum", "kanban", "simple"], "description": "Board type"},
                    "name": {"type": "string", "description": "Board name filter"},
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                }
            }
        ),
        Tool(
            name="jira_get_board_issues",
            description="List issues on an agile board.",
            inputSchema={
                "type": "object",
                "properties": {
                    "board_id": {"type": "string", "description": "Board ID"},
                    "jql": {"type": "string", "description": "Optional JQL filter"},
                    "fields": string_or_list("Fields to return"),
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                },
                "required": ["board_id"]
            }
        ),
        Tool(
            name="jira_get_sprints_from_board",
            description="List sprints of a board.",
            inputSchema={
                "type": "object",
                "properties": {
                    "board_id": {"type": "string", "description": "Board ID"},
                    "state": {"type": "string", "enum": ["active", "closed", "future"], "description": "Sprint state filter"},
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                },
                "required": ["board_id"]
            }
        ),
        Tool(
            name="jira_get_sprint_issues",
            description="List issues in a sprint.",
            inputSchema={
                "type": "object",
                "properties": {
                    "sprint_id": {"type": "string", "description": "Sprint ID"},
                    "jql": {"type": "string", "description": "Optional JQL filter"},
                    "fields": string_or_list("Fields to return"),
                    "start_at": START_AT,
                    "max_results": MAX_RESULTS,
                },
                "required": ["sprint_id"]
            }
        ),
        Tool(
            name="jira_create_sprint",
            description="Create a sprint on a scrum board.",
            inputSchema={
                "type": "object",
                "properties": {
                    "board_id": {"type": "integer", "description": "Board ID the sprint belongs to"},
                    "name": {"type": "string", "description": "Sprint name"},
                    "goal": {"type": "string", "description": "Sprint goal"},
                    "start_date": {"type": "string", "description": "ISO start date"},
                    "end_date": {"type": "string", "description": "ISO end date"},
                },
                "required": ["board_id", "name"]
            }
        ),
        Tool(
            name="jira_update_sprint",
            description="Update a sprint (rename, change goal or dates, start or close it).",
            inputSchema={
                "type": "object",
                "properties": {
                    "sprint_id": {"type": "string", "description": "Sprint ID"},
                    "name": {"type": "string", "description": "New name"},
                    "goal": {"type": "string", "description": "New goal"},
                    "state": {"type": "string", "enum": ["active", "closed", "future"], "description": "New state"},
                    "start_date": {"type": "string", "description": "ISO start date"},
                    "end_date": {"type": "string", "description": "ISO end date"},
                },
                "required": ["sprint_id"]
            }
        ),
        # ============================================================================
        # Utility Tools
        # ============================================================================
        Tool(
            name="cache_clear",
            description="Clear cached Jira responses to force fresh API calls.",
            inputSchema={
                "type": "object",
                "properties": {
                    "pattern": {
                        "type": "string",
                        "description": "Only clear keys containing this text; '*' acts as a wildcard "
                                       "(e.g. 'jira:search' or 'jira:issue:*PROJ-1*')"
                    }
                }
            }
        ),
        Tool(
            name="cache_stats",
            description="Get cache statistics (hits, misses, hit rate, number of keys).",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="health_check",
            description="Check connectivity and authentication against Jira.",
            inputSchema={
                "type": "object",
                "properties": {
                    "detailed": {"type": "boolean", "description": "Include cache statistics"}
                }
            }
        ),
    ]
