"""Jira MCP Server - Model Context Protocol integration.

This package exposes Jira to AI assistants as MCP tools, backed by the
cached client in jira_core.

Modules:
- server: stdio MCP server implementation
- dispatcher: Argument validation, routing and result formatting
- formatters: Response formatting utilities
- tools: MCP tool definitions
- handlers: Tool implementation handlers
"""

__version__ = "1.0.0"

from . import formatters
from . import tools
from . import handlers

__all__ = ["formatters", "tools", "handlers", "__version__"]
