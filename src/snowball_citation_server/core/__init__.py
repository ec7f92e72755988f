"""
Core snowball search module.

This module contains the pure Python business logic with NO MCP dependencies.
It can be used directly by web applications or other Python code.

Example usage:
    from snowball_citation_server.core import SnowballService

    service = SnowballService()
    result = await service.snowball(["10.1016/j.cell.2020.01.040"], depth=1)
"""

from .client import SemanticScholarClient
from .errors import (
    AllSeedsUnresolvedError,
    InvalidRequestError,
    InvalidSessionTokenError,
    ProviderError,
    ProviderErrorKind,
    ResolutionError,
    ResolutionErrorKind,
    SnowballCancelledError,
    SnowballError,
)
from .expander import FrontierExpander
from .identifiers import IdentifierNormalizer, parse_identifier
from .models import (
    ChunkFailure,
    Direction,
    EdgeBatch,
    GraphNode,
    Identifier,
    IdScheme,
    LevelReport,
    OutcomeSummary,
    PaperInfo,
    RequestParameters,
    ScoredArticle,
    SearchEvent,
    SearchFor,
    SnowballResult,
    TraversalState,
)
from .orchestrator import SnowballOrchestrator, SnowballState
from .scoring import finalize
from .service import EventSink, SnowballService

__all__ = [
    # Models
    "ChunkFailure",
    "Direction",
    "EdgeBatch",
    "GraphNode",
    "Identifier",
    "IdScheme",
    "LevelReport",
    "OutcomeSummary",
    "PaperInfo",
    "RequestParameters",
    "ScoredArticle",
    "SearchEvent",
    "SearchFor",
    "SnowballResult",
    "TraversalState",
    # Errors
    "AllSeedsUnresolvedError",
    "InvalidRequestError",
    "InvalidSessionTokenError",
    "ProviderError",
    "ProviderErrorKind",
    "ResolutionError",
    "ResolutionErrorKind",
    "SnowballCancelledError",
    "SnowballError",
    # Engine
    "FrontierExpander",
    "IdentifierNormalizer",
    "parse_identifier",
    "finalize",
    "SnowballOrchestrator",
    "SnowballState",
    # Service
    "EventSink",
    "SemanticScholarClient",
    "SnowballService",
]
