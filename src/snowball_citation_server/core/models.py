"""
Data models for snowball citation searches.

These models are pure Pydantic with no MCP dependencies,
making them usable by both MCP tools and web applications.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class IdScheme(str, Enum):
    """Source scheme of an input identifier."""

    DOI = "doi"
    PMID = "pmid"
    S2 = "s2"  # Semantic Scholar paperId, the canonical scheme


class Direction(str, Enum):
    """
    A single edge direction understood by the provider.

    - REFERENCES: papers the source cites (downward)
    - CITATIONS: papers that cite the source (upward)
    """

    REFERENCES = "references"
    CITATIONS = "citations"

    @property
    def nested_key(self) -> str:
        """Key holding the linked paper in a provider edge record."""
        return "citedPaper" if self is Direction.REFERENCES else "citingPaper"


class SearchFor(str, Enum):
    """Which edges a snowball search follows."""

    REFERENCES = "References"
    CITATIONS = "Citations"
    BOTH = "Both"

    @property
    def directions(self) -> tuple[Direction, ...]:
        """Provider directions to query, in merge order."""
        if self is SearchFor.REFERENCES:
            return (Direction.REFERENCES,)
        if self is SearchFor.CITATIONS:
            return (Direction.CITATIONS,)
        return (Direction.REFERENCES, Direction.CITATIONS)

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class Identifier(BaseModel):
    """An input identifier tagged with the scheme it was written in."""

    raw: str = Field(..., description="Identifier exactly as supplied")
    scheme: IdScheme = Field(..., description="Detected identifier scheme")
    value: str = Field(..., description="Identifier with prefixes stripped")

    class Config:
        frozen = True

    @property
    def is_canonical(self) -> bool:
        return self.scheme == IdScheme.S2

    @property
    def provider_query(self) -> str:
        """Identifier in the form the provider's paper endpoint accepts."""
        if self.scheme == IdScheme.DOI:
            return f"DOI:{self.value}"
        if self.scheme == IdScheme.PMID:
            return f"PMID:{self.value}"
        return self.value


class PaperInfo(BaseModel):
    """
    Compact paper metadata as returned by the provider.

    Treated as an opaque payload by the traversal; only `paper_id`
    is used for graph bookkeeping.
    """

    paper_id: str = Field(..., description="Semantic Scholar paper ID")
    title: str = Field(default="Unknown Title", description="Paper title")
    authors: list[str] = Field(default_factory=list, description="List of author names")
    year: Optional[int] = Field(default=None, description="Publication year")
    venue: Optional[str] = Field(default=None, description="Publication venue")
    journal: Optional[str] = Field(default=None, description="Journal name")
    abstract: Optional[str] = Field(default=None, description="Paper abstract")

    # Cross-reference identifiers
    doi: Optional[str] = Field(default=None, description="DOI")
    pmid: Optional[str] = Field(default=None, description="PubMed ID")

    # Citation metrics
    citation_count: Optional[int] = Field(default=None, description="Total citation count")
    reference_count: Optional[int] = Field(default=None, description="Number of references")

    class Config:
        frozen = True


class GraphNode(BaseModel):
    """One publication discovered during a traversal."""

    id: str = Field(..., description="Canonical identifier")
    metadata: Optional[PaperInfo] = Field(default=None)
    visit_count: int = Field(default=1, ge=1, description="Distinct discovery events")
    first_seen_depth: int = Field(..., ge=0)
    discovery_index: int = Field(..., ge=0, description="Global discovery order")

    def record_visit(self, metadata: Optional[PaperInfo] = None) -> None:
        """Count one more discovery. Metadata is filled once, never replaced."""
        self.visit_count += 1
        if self.metadata is None and metadata is not None:
            self.metadata = metadata


class TraversalState(BaseModel):
    """
    Mutable state of one snowball traversal.

    Owned by a single orchestrator for one request. Only the expander's
    merge step writes to it.
    """

    visited: dict[str, GraphNode] = Field(default_factory=dict)
    current_frontier: set[str] = Field(default_factory=set)
    next_frontier: set[str] = Field(default_factory=set)
    expanded: set[str] = Field(default_factory=set)
    level: int = Field(default=0, ge=0)

    def add_seed(self, node_id: str, metadata: Optional[PaperInfo] = None) -> bool:
        """Register a resolved seed at depth 0. Returns False for duplicates."""
        if node_id in self.visited:
            return False
        self.visited[node_id] = GraphNode(
            id=node_id,
            metadata=metadata,
            first_seen_depth=0,
            discovery_index=len(self.visited),
        )
        self.current_frontier.add(node_id)
        return True

    def discover(self, node_id: str, metadata: Optional[PaperInfo], depth: int) -> bool:
        """
        Apply one discovery event.

        Returns True when the node is new (and queued for the next level),
        False when an existing node only had its visit count bumped.
        """
        node = self.visited.get(node_id)
        if node is not None:
            node.record_visit(metadata)
            return False

        self.visited[node_id] = GraphNode(
            id=node_id,
            metadata=metadata,
            first_seen_depth=depth,
            discovery_index=len(self.visited),
        )
        self.next_frontier.add(node_id)
        return True

    def advance(self) -> None:
        """Promote the next frontier and move to the following level."""
        self.current_frontier = self.next_frontier
        self.next_frontier = set()
        self.level += 1


class RequestParameters(BaseModel):
    """Validated snowball request parameters."""

    input_id_list: list[str] = Field(..., min_length=1)
    depth: int = Field(..., ge=0)
    search_for: SearchFor
    output_max_size: int = Field(..., gt=0)

    class Config:
        frozen = True

    @field_validator("input_id_list")
    @classmethod
    def _strip_ids(cls, value: list[str]) -> list[str]:
        stripped = [raw.strip() for raw in value]
        if any(not raw for raw in stripped):
            raise ValueError("identifiers must be non-empty strings")
        return stripped


class ChunkFailure(BaseModel):
    """A chunk of frontier IDs whose edges could not be fetched."""

    direction: Direction
    ids: list[str] = Field(default_factory=list)
    reason: str = Field(..., description="ProviderErrorKind value")
    message: str = Field(default="")


class EdgeBatch(BaseModel):
    """Result of fetching one direction of edges for a set of IDs."""

    direction: Direction
    edges: dict[str, list[PaperInfo]] = Field(
        default_factory=dict, description="Source ID -> linked papers, in provider order"
    )
    unresolved_edges: int = Field(
        default=0, description="Edge records whose linked paper has no provider ID"
    )
    failures: list[ChunkFailure] = Field(default_factory=list)

    @property
    def failed_ids(self) -> list[str]:
        return [pid for failure in self.failures for pid in failure.ids]


class LevelReport(BaseModel):
    """What one expansion level did."""

    level: int = Field(..., description="Depth of the nodes discovered by this level")
    frontier_size: int = Field(default=0)
    newly_discovered: int = Field(default=0)
    rediscovered: int = Field(default=0)
    unresolved_edges: int = Field(default=0)
    failed_ids: list[str] = Field(default_factory=list)
    error_count: int = Field(default=0, description="Cumulative across levels")


class SeedFailure(BaseModel):
    """A seed dropped during resolution."""

    raw_id: str
    reason: str
    message: str = ""


class OutcomeSummary(BaseModel):
    """Warnings and counters reported alongside a successful result."""

    depth: int
    search_for: SearchFor
    seed_count: int = 0
    resolved_seed_count: int = 0
    unresolved_seeds: list[SeedFailure] = Field(default_factory=list)
    failed_ids: list[str] = Field(default_factory=list)
    unresolved_edges: int = 0
    error_count: int = 0
    levels_completed: int = 0
    discovered_count: int = 0

    @property
    def warning_count(self) -> int:
        """Seeds plus IDs that could not be resolved or expanded."""
        return len(self.unresolved_seeds) + len(self.failed_ids)


class ScoredArticle(BaseModel):
    """One ranked entry of a snowball result."""

    id: str
    score: int
    first_seen_depth: int
    paper: Optional[PaperInfo] = None

    def to_response_dict(self) -> dict[str, Any]:
        """Provider metadata flattened together with the score."""
        data: dict[str, Any] = self.paper.model_dump() if self.paper else {"paper_id": self.id}
        data["score"] = self.score
        data["first_seen_depth"] = self.first_seen_depth
        return data


class SnowballResult(BaseModel):
    """Ranked, size-capped articles plus the outcome summary."""

    articles: list[ScoredArticle] = Field(default_factory=list)
    summary: OutcomeSummary

    def to_response(self) -> dict[str, Any]:
        summary = self.summary.model_dump(mode="json")
        summary["warning_count"] = self.summary.warning_count
        return {
            "articles": [a.to_response_dict() for a in self.articles],
            "summary": summary,
        }


class SearchEvent(BaseModel):
    """Completion event handed to the analytics collaborator."""

    event_type: str = Field(..., description="'search_success' or 'search_error'")
    endpoint: str = Field(default="snowball_search")
    session_id: Optional[str] = Field(default=None)
    request_started_ms: int
    request_completed_ms: int
    request_duration_ms: int
    metadata: dict[str, Any] = Field(default_factory=dict)
