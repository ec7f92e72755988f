"""
Tests for core data models.
"""

import pytest
from pydantic import ValidationError

from snowball_citation_server.core.models import (
    Direction,
    GraphNode,
    Identifier,
    IdScheme,
    OutcomeSummary,
    PaperInfo,
    RequestParameters,
    ScoredArticle,
    SearchFor,
    SeedFailure,
    SnowballResult,
    TraversalState,
)

from conftest import make_paper


class TestPaperInfo:
    """Tests for PaperInfo model."""

    def test_create_minimal(self):
        """Test creating paper with minimal fields."""
        paper = PaperInfo(paper_id="abc")
        assert paper.title == "Unknown Title"
        assert paper.authors == []
        assert paper.doi is None

    def test_immutable(self, sample_paper: PaperInfo):
        """Test that PaperInfo is immutable (frozen)."""
        with pytest.raises(Exception):  # ValidationError or AttributeError
            sample_paper.title = "Changed Title"


class TestSearchFor:
    """Tests for the SearchFor enumeration."""

    def test_directions(self):
        assert SearchFor.REFERENCES.directions == (Direction.REFERENCES,)
        assert SearchFor.CITATIONS.directions == (Direction.CITATIONS,)
        assert SearchFor.BOTH.directions == (Direction.REFERENCES, Direction.CITATIONS)

    def test_case_insensitive_lookup(self):
        assert SearchFor("both") is SearchFor.BOTH
        assert SearchFor(" references ") is SearchFor.REFERENCES

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            SearchFor("sideways")

    def test_nested_keys(self):
        assert Direction.REFERENCES.nested_key == "citedPaper"
        assert Direction.CITATIONS.nested_key == "citingPaper"


class TestIdentifier:
    def test_provider_query(self):
        doi = Identifier(raw="doi:10.1000/x", scheme=IdScheme.DOI, value="10.1000/x")
        pmid = Identifier(raw="123", scheme=IdScheme.PMID, value="123")
        s2 = Identifier(raw="ab" * 20, scheme=IdScheme.S2, value="ab" * 20)

        assert doi.provider_query == "DOI:10.1000/x"
        assert pmid.provider_query == "PMID:123"
        assert s2.provider_query == "ab" * 20
        assert s2.is_canonical and not doi.is_canonical


class TestGraphNode:
    def test_record_visit_keeps_metadata(self):
        node = GraphNode(id="A", metadata=make_paper("A", title="First"), first_seen_depth=0, discovery_index=0)
        node.record_visit(make_paper("A", title="Second"))

        assert node.visit_count == 2
        assert node.metadata.title == "First"

    def test_record_visit_fills_missing_metadata(self):
        node = GraphNode(id="A", first_seen_depth=0, discovery_index=0)
        node.record_visit(make_paper("A", title="Late"))

        assert node.metadata.title == "Late"


class TestTraversalState:
    def test_add_seed_dedups(self):
        state = TraversalState()
        assert state.add_seed("A")
        assert not state.add_seed("A")

        assert list(state.visited) == ["A"]
        assert state.visited["A"].visit_count == 1
        assert state.current_frontier == {"A"}

    def test_discover_new_and_existing(self):
        state = TraversalState()
        state.add_seed("A")

        assert state.discover("B", make_paper("B"), depth=1)
        assert not state.discover("B", make_paper("B"), depth=1)
        assert not state.discover("A", None, depth=1)

        assert state.visited["B"].visit_count == 2
        assert state.visited["B"].first_seen_depth == 1
        assert state.visited["A"].visit_count == 2
        # Rediscovered seeds never rejoin a frontier
        assert state.next_frontier == {"B"}

    def test_discovery_index_follows_insertion(self):
        state = TraversalState()
        state.add_seed("S")
        state.discover("X", None, depth=1)
        state.discover("Y", None, depth=1)

        assert [n.discovery_index for n in state.visited.values()] == [0, 1, 2]

    def test_advance(self):
        state = TraversalState()
        state.add_seed("A")
        state.discover("B", None, depth=1)
        state.advance()

        assert state.level == 1
        assert state.current_frontier == {"B"}
        assert state.next_frontier == set()


class TestRequestParameters:
    def test_valid(self):
        params = RequestParameters(
            input_id_list=[" 10.1000/x "],
            depth=0,
            search_for=SearchFor.BOTH,
            output_max_size=1,
        )
        assert params.input_id_list == ["10.1000/x"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"input_id_list": []},
            {"input_id_list": ["  "]},
            {"depth": -1},
            {"output_max_size": 0},
        ],
    )
    def test_invalid(self, overrides):
        data = {
            "input_id_list": ["10.1000/x"],
            "depth": 1,
            "search_for": SearchFor.BOTH,
            "output_max_size": 10,
        }
        data.update(overrides)
        with pytest.raises(ValidationError):
            RequestParameters(**data)


class TestResultModels:
    def test_scored_article_flattens_metadata(self, sample_paper: PaperInfo):
        article = ScoredArticle(id=sample_paper.paper_id, score=3, first_seen_depth=1, paper=sample_paper)
        data = article.to_response_dict()

        assert data["title"] == sample_paper.title
        assert data["doi"] == sample_paper.doi
        assert data["score"] == 3
        assert data["first_seen_depth"] == 1

    def test_scored_article_without_metadata(self):
        data = ScoredArticle(id="A", score=1, first_seen_depth=0).to_response_dict()
        assert data == {"paper_id": "A", "score": 1, "first_seen_depth": 0}

    def test_warning_count_in_response(self):
        summary = OutcomeSummary(
            depth=1,
            search_for=SearchFor.REFERENCES,
            unresolved_seeds=[SeedFailure(raw_id="1", reason="not_found")],
            failed_ids=["X", "Y"],
        )
        response = SnowballResult(summary=summary).to_response()

        assert summary.warning_count == 3
        assert response["summary"]["warning_count"] == 3
        assert response["summary"]["search_for"] == "References"
        assert response["articles"] == []
