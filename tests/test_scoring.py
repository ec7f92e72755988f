"""
Tests for result ranking.
"""

from snowball_citation_server.core.models import TraversalState
from snowball_citation_server.core.scoring import finalize

from conftest import make_paper


def build_state() -> TraversalState:
    state = TraversalState()
    state.add_seed("S")
    state.discover("A", make_paper("A"), depth=1)
    state.discover("B", make_paper("B"), depth=1)
    state.discover("C", None, depth=1)
    state.discover("B", make_paper("B"), depth=1)
    state.discover("C", None, depth=2)
    state.discover("C", None, depth=2)
    return state


def test_sorted_by_visit_count():
    articles = finalize(build_state(), output_max_size=10)

    assert [(a.id, a.score) for a in articles] == [("C", 3), ("B", 2), ("S", 1), ("A", 1)]


def test_ties_keep_discovery_order():
    state = TraversalState()
    for pid in ["Z", "M", "A"]:
        state.add_seed(pid)

    assert [a.id for a in finalize(state, output_max_size=3)] == ["Z", "M", "A"]


def test_truncates_to_output_max_size():
    articles = finalize(build_state(), output_max_size=2)
    assert [a.id for a in articles] == ["C", "B"]


def test_first_seen_depth_and_metadata():
    articles = {a.id: a for a in finalize(build_state(), output_max_size=10)}

    assert articles["S"].first_seen_depth == 0
    assert articles["C"].first_seen_depth == 1
    assert articles["C"].paper is None
    assert articles["A"].paper.title == "Paper A"


def test_does_not_mutate_state():
    state = build_state()
    before = {pid: node.visit_count for pid, node in state.visited.items()}

    finalize(state, output_max_size=1)

    assert {pid: node.visit_count for pid, node in state.visited.items()} == before
