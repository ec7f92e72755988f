"""
MCP Tool: list_session_events

Lists the recorded search events of one session.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types

from ..config import Settings
from ..core import InvalidSessionTokenError
from ..resources import EventStore, SessionLinker

logger = logging.getLogger("snowball-citation-server")

# Lazy initialization
_store: EventStore | None = None
_linker: SessionLinker | None = None


def _get_store() -> EventStore:
    """Get or create the event store."""
    global _store
    if _store is None:
        _store = EventStore(Settings())
    return _store


def _get_linker() -> SessionLinker:
    """Get or create the session linker."""
    global _linker
    if _linker is None:
        _linker = SessionLinker(Settings())
    return _linker


# Tool definition
session_events_tool = types.Tool(
    name="list_session_events",
    description="""List the searches recorded for a session.

Identify the session either by the session_id returned from link_session
or by the exercise token itself. Each event carries the request inputs,
its timing and whether it succeeded.""",
    inputSchema={
        "type": "object",
        "properties": {
            "session_id": {
                "type": "string",
                "description": "Session ID returned by link_session",
            },
            "exercise_token": {
                "type": "string",
                "description": "Exercise token of the form BT-XXXXXXXXXXXX-YY",
            },
        },
    },
)


async def handle_session_events(arguments: dict[str, Any]) -> list[types.TextContent]:
    """Handle the list_session_events tool call."""
    try:
        session_id = arguments.get("session_id")
        token = arguments.get("exercise_token")

        if not session_id and token:
            session_id = await _get_linker().get_session(token)
            if session_id is None:
                raise InvalidSessionTokenError(f"No session linked to token '{token}'")
        if not session_id:
            raise InvalidSessionTokenError("Provide a session_id or an exercise_token")

        events = await _get_store().read_events(session_id=session_id)
        response = {
            "session_id": session_id,
            "event_count": len(events),
            "events": [event.model_dump() for event in events],
        }
        return [
            types.TextContent(
                type="text",
                text=json.dumps(response, indent=2, default=str),
            )
        ]

    except InvalidSessionTokenError as e:
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": e.message, "kind": e.kind}, indent=2),
            )
        ]
    except Exception as e:
        logger.error(f"Error listing session events: {e}")
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": str(e)}, indent=2),
            )
        ]
