"""
MCP Tool: snowball_search

Expands the citation graph around seed papers and ranks the
discovered papers by how often they were reached.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types

from ..config import Settings
from ..core import SnowballError, SnowballService
from ..resources import EventStore

logger = logging.getLogger("snowball-citation-server")

# Lazy initialization
_service: SnowballService | None = None


def _get_service() -> SnowballService:
    """Get or create the snowball service."""
    global _service
    if _service is None:
        settings = Settings()
        _service = SnowballService(
            settings=settings,
            event_sink=EventStore(settings),
        )
    return _service


# Tool definition
snowball_search_tool = types.Tool(
    name="snowball_search",
    description="""Find the literature around a few known papers by snowballing.

Starting from seed papers, follows references (papers they cite) and/or
citations (papers citing them) level by level, then ranks every paper
found by how many distinct paths reached it. Papers that keep coming
back from different seeds rank highest.

Useful for:
- Building a reading list around a handful of key papers
- Finding papers shared by several seeds
- Starting a systematic literature review

Seeds may be DOIs (e.g., '10.1016/j.cell.2020.01.040'), PubMed IDs
(e.g., '31978945') or Semantic Scholar paper IDs (40-char hex).

The response includes a summary of seeds or papers that could not be
resolved or expanded.

Warning: Depth 2 with 'Both' can reach thousands of papers.""",
    inputSchema={
        "type": "object",
        "properties": {
            "input_id_list": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Seed identifiers (DOI, PMID or Semantic Scholar ID), at most 7",
                "minItems": 1,
                "maxItems": 7,
            },
            "depth": {
                "type": "integer",
                "description": "Expansion levels (default: 1, max: 2; 0 returns the seeds only)",
                "default": 1,
                "minimum": 0,
                "maximum": 2,
            },
            "search_for": {
                "type": "string",
                "enum": ["References", "Citations", "Both"],
                "description": "Which edges to follow (default: 'Both')",
                "default": "Both",
            },
            "output_max_size": {
                "type": "integer",
                "description": "Maximum number of ranked papers to return (default: 100)",
                "default": 100,
                "minimum": 1,
            },
            "session_id": {
                "type": "string",
                "description": "Optional session ID from link_session, used to group searches",
            },
        },
        "required": ["input_id_list"],
    },
)


async def handle_snowball_search(arguments: dict[str, Any]) -> list[types.TextContent]:
    """Handle the snowball_search tool call."""
    try:
        service = _get_service()

        input_id_list = arguments.get("input_id_list") or []
        if isinstance(input_id_list, str):
            input_id_list = [input_id_list]
        depth = arguments.get("depth", 1)
        search_for = arguments.get("search_for", "Both")
        output_max_size = arguments.get("output_max_size", 100)

        logger.info(
            f"Snowball search for {len(input_id_list)} seeds "
            f"(depth={depth}, search_for={search_for})"
        )

        result = await service.snowball(
            input_id_list,
            depth=depth,
            search_for=search_for,
            output_max_size=output_max_size,
            session_id=arguments.get("session_id"),
        )

        return [
            types.TextContent(
                type="text",
                text=json.dumps(result.to_response(), indent=2, default=str),
            )
        ]

    except SnowballError as e:
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": e.message, "kind": e.kind}, indent=2),
            )
        ]
    except Exception as e:
        logger.error(f"Error running snowball search: {e}")
        return [
            types.TextContent(
                type="text",
                text=json.dumps({"error": str(e)}, indent=2),
            )
        ]
