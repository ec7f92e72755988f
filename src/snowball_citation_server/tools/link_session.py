"""
MCP Tool: link_session

Links an exercise token to a session ID used to tag search events.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types

from ..core import InvalidSessionTokenError
from ..resources import SessionLinker

logger = logging.getLogger("snowball-citation-server")

# Lazy initialization
_linker: SessionLinker | None = None


def _get_linker() -> SessionLinker:
    """Get or create the session linker."""
    global _linker
    if _linker is None:
        _linker = SessionLinker()
    return _linker


# Tool definition
link_session_tool = types.Tool(
    name="link_session",
    description="""Link an exercise token to a session ID.

Tokens look like 'BT-A1B2C3D4E5F6-7A'. The same token always maps to
the same session ID. Pass the returned session_id to snowball_search
so that all searches of one session can be grouped.""",
    inputSchema={
        "type": "object",
        "properties": {
            "exercise_token": {
                "type": "string",
                "description": "Exercise token of the form BT-XXXXXXXXXXXX-YY",
            },
        },
        "required": ["exercise_token"],
    },
)


async def handle_link_session(arguments: dict[str, Any]) -> list[types.TextContent]:
    """Handle the link_session tool call."""
    try:
        linker = _get_linker()
        session_id = await linker.link(arguments["exercise_token"])
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"session_id": session_id}, indent=2),
            )
        ]

    except InvalidSessionTokenError as e:
        logger.warning(f"Invalid exercise token: {e}")
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": e.message, "kind": e.kind}, indent=2),
            )
        ]
    except Exception as e:
        logger.error(f"Error linking session: {e}")
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": str(e)}, indent=2),
            )
        ]
