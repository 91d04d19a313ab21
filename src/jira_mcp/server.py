"""Jira MCP Server - Expose Jira to AI assistants over stdio."""
import asyncio
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from jira_core.cache import CacheStore
from jira_core.client import JiraClient, create_http_client
from jira_core.config import Settings, get_settings
from jira_core.errors import JiraMcpError
from jira_core.invalidation import CacheInvalidator

from .dispatcher import ToolDispatcher

logger = logging.getLogger("jira-mcp")


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout carries the MCP protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True
    )


def create_server(dispatcher: ToolDispatcher) -> Server:
    """Build the MCP server instance around a dispatcher."""
    app = Server("jira-mcp")

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List the enabled Jira tools."""
        return dispatcher.enabled_tools()

    # Arguments are validated by the dispatcher so errors carry our codes
    @app.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle MCP tool calls by delegating to the dispatcher.

        Raised errors are turned into an error result by the MCP server,
        with str(error) ("CODE: message") as its text.
        """
        try:
            return await dispatcher.execute(name, arguments or {})
        except JiraMcpError as e:
            logger.error(f"Error during {name} call: {e}")
            if e.details:
                logger.debug(f"  Details: {e.details}")
            raise

    return app


def build_dispatcher(settings: Settings) -> ToolDispatcher:
    """Wire settings, cache, HTTP client and Jira client together."""
    cache = CacheStore(
        default_ttl=settings.cache_default_ttl,
        max_items=settings.cache_max_items,
        single_flight=settings.cache_single_flight,
    )
    invalidator = CacheInvalidator(cache)
    client = JiraClient(create_http_client(settings), cache, settings, invalidator)
    return ToolDispatcher(client, cache, settings, invalidator)


async def main():
    """Run the MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"MCP Server starting with JIRA_URL: {settings.jira_url}")
    if settings.jira_token:
        logger.info("MCP Server configured with personal access token authentication")
    elif settings.jira_username:
        logger.info(f"MCP Server configured with basic authentication as {settings.jira_username}")
    else:
        logger.info("MCP Server running without Jira credentials")

    dispatcher = build_dispatcher(settings)
    app = create_server(dispatcher)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())
    finally:
        await dispatcher.client.http.aclose()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
