"""
MCP Tools for snowball operations.

Provides tools for:
- Snowball search: expand and rank the literature around seed papers
- Session linking: map an exercise token to a session ID
- Session events: list the searches recorded for a session
"""

from .link_session import handle_link_session, link_session_tool
from .session_events import handle_session_events, session_events_tool
from .snowball_search import handle_snowball_search, snowball_search_tool

__all__ = [
    "snowball_search_tool",
    "handle_snowball_search",
    "link_session_tool",
    "handle_link_session",
    "session_events_tool",
    "handle_session_events",
]
