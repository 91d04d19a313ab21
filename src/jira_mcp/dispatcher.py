"""Tool dispatch: validation, argument normalization and result formatting.

ToolDispatcher.execute() is the only entry point used by the MCP server. It
holds no per-call state, so a failed invocation leaves it usable for the next.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

import pydantic
from mcp.types import TextContent

from jira_core.cache import CacheStore
from jira_core.client import JiraClient
from jira_core.config import Settings
from jira_core.errors import JiraMcpError, ToolExecutionError, ValidationError
from jira_core.invalidation import CacheInvalidator

from . import formatters
from . import handlers
from .tools import get_tools, is_string_or_list

logger = logging.getLogger("jira-mcp.dispatcher")

Handler = Callable[[dict, JiraClient], Awaitable[Any]]
Formatter = Callable[[Any], str]

# Map tool names to (handler, formatter)
HANDLER_MAP: dict[str, tuple[Handler, Formatter]] = {
    # Issue handlers
    "jira_get_issue": (handlers.handle_get_issue, formatters.format_issue),
    "jira_search_issues": (handlers.handle_search_issues, formatters.format_search_results),
    "jira_create_issue": (handlers.handle_create_issue, formatters.format_created_issue),
    "jira_update_issue": (handlers.handle_update_issue, formatters.format_operation),
    "jira_delete_issue": (handlers.handle_delete_issue, formatters.format_operation),
    "jira_batch_create_issues": (handlers.handle_batch_create_issues, formatters.format_json),
    "jira_link_to_epic": (handlers.handle_link_to_epic, formatters.format_operation),
    "jira_batch_get_changelogs": (handlers.handle_batch_get_changelogs, formatters.format_json),
    "jira_get_attachments_info": (handlers.handle_get_attachments_info, formatters.format_attachments),
    # Comment and transition handlers
    "jira_get_comments": (handlers.handle_get_comments, formatters.format_comments),
    "jira_add_comment": (handlers.handle_add_comment, formatters.format_json),
    "jira_update_comment": (handlers.handle_update_comment, formatters.format_json),
    "jira_delete_comment": (handlers.handle_delete_comment, formatters.format_operation),
    "jira_get_transitions": (handlers.handle_get_transitions, formatters.format_transitions),
    "jira_transition_issue": (handlers.handle_transition_issue, formatters.format_operation),
    # Worklog handlers
    "jira_get_worklog": (handlers.handle_get_worklog, formatters.format_worklogs),
    "jira_add_worklog": (handlers.handle_add_worklog, formatters.format_json),
    # Project and version handlers
    "jira_get_projects": (handlers.handle_get_projects, formatters.format_projects),
    "jira_get_project": (handlers.handle_get_project, formatters.format_project),
    "jira_get_project_versions": (handlers.handle_get_project_versions, formatters.format_versions),
    "jira_create_version": (handlers.handle_create_version, formatters.format_json),
    "jira_batch_create_versions": (handlers.handle_batch_create_versions, formatters.format_json),
    "jira_delete_version": (handlers.handle_delete_version, formatters.format_operation),
    # User and metadata handlers
    "jira_get_user_profile": (handlers.handle_get_user_profile, formatters.format_user),
    "jira_search_fields": (handlers.handle_search_fields, formatters.format_fields),
    # Link handlers
    "jira_get_link_types": (handlers.handle_get_link_types, formatters.format_link_types),
    "jira_create_issue_link": (handlers.handle_create_issue_link, formatters.format_operation),
    "jira_create_remote_issue_link": (handlers.handle_create_remote_issue_link, formatters.format_json),
    "jira_remove_issue_link": (handlers.handle_remove_issue_link, formatters.format_operation),
    # Agile handlers
    "jira_get_agile_boards": (handlers.handle_get_agile_boards, formatters.format_boards),
    "jira_get_board_issues": (handlers.handle_get_board_issues, formatters.format_search_results),
    "jira_get_sprints_from_board": (handlers.handle_get_sprints_from_board, formatters.format_sprints),
    "jira_get_sprint_issues": (handlers.handle_get_sprint_issues, formatters.format_search_results),
    "jira_create_sprint": (handlers.handle_create_sprint, formatters.format_json),
    "jira_update_sprint": (handlers.handle_update_sprint, formatters.format_json),
}

UTILITY_TOOLS = ("cache_clear", "cache_stats", "health_check")

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


def _matches_type(value: Any, json_type: str) -> bool:
    expected = _JSON_TYPES.get(json_type)
    if expected is None:
        return True
    # bool is an int subclass but never a JSON number
    if isinstance(value, bool) and json_type in ("integer", "number"):
        return False
    return isinstance(value, expected)


def _pydantic_message(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts) or str(error)


class ToolDispatcher:
    """Validates, routes and formats MCP tool calls."""

    def __init__(
        self,
        client: JiraClient,
        cache: CacheStore,
        settings: Settings,
        invalidator: Optional[CacheInvalidator] = None,
    ):
        self.client = client
        self.cache = cache
        self.settings = settings
        self.invalidator = invalidator or client.invalidator
        self.schemas = {tool.name: tool.inputSchema for tool in get_tools()}

    def enabled_tools(self) -> list:
        """Tool definitions that are both implemented and enabled."""
        return [
            tool for tool in get_tools()
            if self._is_known(tool.name) and self.settings.is_tool_enabled(tool.name)
        ]

    @staticmethod
    def _is_known(name: str) -> bool:
        return name in HANDLER_MAP or name in UTILITY_TOOLS

    # ------------------------------------------------------------------
    # Argument handling
    # ------------------------------------------------------------------

    def validate_arguments(self, name: str, arguments: dict) -> None:
        """Check required properties and declared JSON types."""
        schema = self.schemas.get(name) or {}
        properties = schema.get("properties") or {}

        for required in schema.get("required") or []:
            if arguments.get(required) is None:
                raise ValidationError(f"Missing required parameter: {required}")

        for prop, value in arguments.items():
            prop_schema = properties.get(prop)
            if value is None or not prop_schema or is_string_or_list(prop_schema):
                continue
            json_type = prop_schema.get("type")
            if json_type and not _matches_type(value, json_type):
                raise ValidationError(
                    f"Invalid type for parameter '{prop}': expected {json_type}, got {type(value).__name__}"
                )
            if "enum" in prop_schema and value not in prop_schema["enum"]:
                raise ValidationError(
                    f"Invalid value for parameter '{prop}': expected one of {', '.join(prop_schema['enum'])}"
                )

    def normalize_arguments(self, name: str, arguments: dict) -> dict:
        """Drop None values and coerce string-or-list parameters to lists."""
        properties = (self.schemas.get(name) or {}).get("properties") or {}
        normalized = {k: v for k, v in arguments.items() if v is not None}

        for prop, prop_schema in properties.items():
            if not is_string_or_list(prop_schema):
                continue
            value = normalized.get(prop)
            if value is None:
                normalized[prop] = []
            elif not isinstance(value, list):
                normalized[prop] = [value]
        return normalized

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        name: str,
        arguments: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> list[TextContent]:
        """Execute a tool and return its formatted result.

        Raises:
            JiraMcpError: Unchanged from the handler, or ValidationError /
                ToolExecutionError raised here.
        """
        if not self._is_known(name) or not self.settings.is_tool_enabled(name):
            raise ToolExecutionError(name, "Unknown tool")

        logger.info(f"Tool call: {name} with arguments: {arguments}")

        try:
            if arguments is None:
                arguments = {}
            elif not isinstance(arguments, dict):
                raise ValidationError(f"Tool arguments must be an object, got {type(arguments).__name__}")
            arguments = dict(arguments)
            self.validate_arguments(name, arguments)
            arguments = self.normalize_arguments(name, arguments)

            if name in UTILITY_TOOLS:
                result = await self._execute_utility(name, arguments)
                formatter = formatters.format_json
            else:
                handler, formatter = HANDLER_MAP[name]
                result = await handler(arguments, self.client.with_headers(headers))

            return [TextContent(type="text", text=formatter(result))]
        except JiraMcpError as e:
            logger.warning(f"Tool {name} failed: {e}")
            raise
        except pydantic.ValidationError as e:
            error = ValidationError(_pydantic_message(e), {"toolName": name})
            logger.warning(f"Tool {name} failed: {error}")
            raise error from e
        except Exception as e:
            logger.error(f"Tool {name} failed unexpectedly: {e}", exc_info=True)
            raise ToolExecutionError(name, str(e) or type(e).__name__) from e

    async def _execute_utility(self, name: str, arguments: dict) -> dict:
        if name == "cache_clear":
            return self._cache_clear(arguments.get("pattern"))
        if name == "cache_stats":
            return self.cache.stats()
        return await self._health_check(bool(arguments.get("detailed")))

    def _cache_clear(self, pattern: Optional[str]) -> dict:
        if pattern:
            cleared = self.invalidator.invalidate_pattern(pattern)
            logger.info(f"Cleared {cleared} cache entries matching '{pattern}'")
            return {"success": True, "message": f"Cleared {cleared} cache entries matching pattern: {pattern}"}

        self.cache.flush()
        logger.info("Cleared all cache entries")
        return {"success": True, "message": "Cleared all cache entries"}

    async def _health_check(self, detailed: bool) -> dict:
        """Report Jira connectivity; a failing Jira is a result, not an error."""
        try:
            jira = await self.client.health_check()
            status = "healthy"
        except JiraMcpError as e:
            logger.warning(f"Health check failed: {e}")
            jira = {"status": "error", "error": e.to_dict()}
            status = "unhealthy"

        result: dict[str, Any] = {"status": status, "jira": jira}
        if detailed:
            result["cache"] = self.cache.stats()
        return result
