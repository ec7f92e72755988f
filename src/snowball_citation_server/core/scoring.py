"""Path-frequency ranking of a finished traversal."""

from __future__ import annotations

from .models import ScoredArticle, TraversalState


def finalize(state: TraversalState, output_max_size: int) -> list[ScoredArticle]:
    """
    Rank visited nodes by visit count.

    Ties keep discovery order, so the result is fully determined by the
    contents of `state.visited`.

    Args:
        state: Completed traversal state (not modified).
        output_max_size: Maximum number of entries returned.

    Returns:
        At most `output_max_size` ScoredArticle entries, best first.
    """
    ranked = sorted(
        state.visited.values(),
        key=lambda node: (-node.visit_count, node.discovery_index),
    )
    return [
        ScoredArticle(
            id=node.id,
            score=node.visit_count,
            first_seen_depth=node.first_seen_depth,
            paper=node.metadata,
        )
        for node in ranked[:output_max_size]
    ]
