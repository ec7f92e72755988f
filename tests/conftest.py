"""
Shared test fixtures for snowball-citation-server tests.
"""

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from snowball_citation_server.config import Settings
from snowball_citation_server.core.errors import ProviderError, ProviderErrorKind
from snowball_citation_server.core.models import (
    ChunkFailure,
    Direction,
    EdgeBatch,
    Identifier,
    PaperInfo,
)


def make_paper(paper_id: str, **kwargs) -> PaperInfo:
    """Build a PaperInfo with a predictable title."""
    return PaperInfo(paper_id=paper_id, title=kwargs.pop("title", f"Paper {paper_id}"), **kwargs)


class FakeProvider:
    """
    In-memory provider with canned graphs.

    references/citations map a canonical ID to the IDs it links to.
    resolutions map an identifier value (DOI, PMID) to candidate IDs.
    """

    def __init__(
        self,
        references: Optional[dict[str, list[str]]] = None,
        citations: Optional[dict[str, list[str]]] = None,
        resolutions: Optional[dict[str, list[str]]] = None,
        failing: Optional[set[str]] = None,
        resolve_failures: Optional[set[str]] = None,
        delays: Optional[dict[Direction, float]] = None,
        edge_error: Optional[Exception] = None,
    ):
        self.graph = {
            Direction.REFERENCES: references or {},
            Direction.CITATIONS: citations or {},
        }
        self.resolutions = resolutions or {}
        self.failing = failing or set()
        self.resolve_failures = resolve_failures or set()
        self.delays = delays or {}
        self.edge_error = edge_error

        self.resolve_calls: list[str] = []
        self.lookup_calls: list[list[str]] = []
        self.edge_calls: list[tuple[Direction, set[str]]] = []

    @property
    def expanded_ids(self) -> list[str]:
        return [pid for _, ids in self.edge_calls for pid in ids]

    async def resolve(self, identifier: Identifier) -> list[PaperInfo]:
        self.resolve_calls.append(identifier.raw)
        if identifier.value in self.resolve_failures:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"timeout resolving {identifier.raw}")
        return [make_paper(pid) for pid in self.resolutions.get(identifier.value, [])]

    async def lookup_papers(self, paper_ids: list[str]) -> dict[str, Optional[PaperInfo]]:
        self.lookup_calls.append(list(paper_ids))
        return {pid: make_paper(pid) for pid in paper_ids}

    async def fetch_edges(self, paper_ids: set[str], direction: Direction) -> EdgeBatch:
        self.edge_calls.append((direction, set(paper_ids)))
        delay = self.delays.get(direction)
        if delay:
            await asyncio.sleep(delay)
        if self.edge_error is not None:
            raise self.edge_error

        batch = EdgeBatch(direction=direction)
        for pid in sorted(paper_ids):
            if pid in self.failing:
                batch.failures.append(
                    ChunkFailure(direction=direction, ids=[pid], reason="timeout", message="boom")
                )
                continue
            batch.edges[pid] = [make_paper(t) for t in self.graph[direction].get(pid, [])]
        return batch


def s2id(n: int) -> str:
    """A syntactically valid Semantic Scholar paper ID."""
    return f"{n:040x}"


@pytest.fixture
def sample_paper() -> PaperInfo:
    """Create a sample paper for testing."""
    return PaperInfo(
        paper_id=s2id(1),
        title="A SARS-CoV-2 protein interaction map",
        authors=["David E. Gordon", "Gwendolyn M. Jang"],
        year=2020,
        venue="Nature",
        journal="Nature",
        doi="10.1038/s41586-020-2286-9",
        pmid="32353859",
        citation_count=3000,
        reference_count=120,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings writing to a temporary data directory with fast retries."""
    return Settings(
        DATA_PATH=tmp_path / "data",
        BACKOFF_BASE=0.0,
        MAX_ATTEMPTS=3,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Two seeds sharing one reference."""
    return FakeProvider(
        references={
            "A": ["R1", "SHARED"],
            "B": ["R2", "SHARED"],
        },
        resolutions={
            "10.1000/seed.a": ["A"],
            "10.1000/seed.b": ["B"],
        },
    )
