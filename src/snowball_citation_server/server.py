"""
Snowball Citation MCP Server
============================

This module implements an MCP server for snowball literature
discovery using the Semantic Scholar API.
"""

import logging
import sys
from typing import Any, Dict, List

import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server

from .config import Settings
from .tools import (
    handle_link_session,
    handle_session_events,
    handle_snowball_search,
    link_session_tool,
    session_events_tool,
    snowball_search_tool,
)

# Initialize settings and server
settings = Settings()

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("snowball-citation-server")

# Create MCP server
server = Server(settings.APP_NAME)


@server.list_tools()
async def list_tools() -> List[types.Tool]:
    """List available snowball tools."""
    return [
        snowball_search_tool,
        link_session_tool,
        session_events_tool,
    ]


@server.call_tool()
async def call_tool(
    name: str,
    arguments: Dict[str, Any],
) -> List[types.TextContent]:
    """Handle tool calls for snowball operations."""
    logger.debug(f"Calling tool {name} with arguments {arguments}")

    try:
        if name == "snowball_search":
            return await handle_snowball_search(arguments)
        elif name == "link_session":
            return await handle_link_session(arguments)
        elif name == "list_session_events":
            return await handle_session_events(arguments)
        else:
            return [
                types.TextContent(
                    type="text",
                    text=f"Error: Unknown tool '{name}'",
                )
            ]
    except Exception as e:
        logger.error(f"Tool error: {str(e)}")
        return [
            types.TextContent(
                type="text",
                text=f"Error: {str(e)}",
            )
        ]


async def _async_main():
    """Async entry point for the MCP server."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Data path: {settings.DATA_PATH}")

    async with stdio_server() as streams:
        await server.run(
            streams[0],
            streams[1],
            InitializationOptions(
                server_name=settings.APP_NAME,
                server_version=settings.APP_VERSION,
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )


def main():
    """Run the MCP server (synchronous entry point)."""
    import asyncio
    asyncio.run(_async_main())
