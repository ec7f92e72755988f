"""
Level-by-level frontier expansion.

Provider calls for a level run concurrently; their results are folded
into the traversal state by a single merge step that walks sources in
sorted order, so visit counts and discovery order do not depend on
network completion order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .models import Direction, EdgeBatch, LevelReport, SearchFor, TraversalState

logger = logging.getLogger("snowball-citation-server")


class EdgeProvider(Protocol):
    async def fetch_edges(self, paper_ids: set[str], direction: Direction) -> EdgeBatch: ...


class FrontierExpander:
    """
    Expands the current frontier of a traversal by one level.

    Supports following edges in different directions:
    - References: papers the frontier cites
    - Citations: papers that cite the frontier
    - Both: the two queries are issued separately and merged
    """

    def __init__(self, provider: EdgeProvider):
        """
        Initialize the expander.

        Args:
            provider: Client implementing fetch_edges.
        """
        self.provider = provider

    async def expand_level(
        self,
        state: TraversalState,
        search_for: SearchFor,
        max_depth: int,
        prior_errors: int = 0,
    ) -> LevelReport:
        """
        Expand `state.current_frontier` and advance the state one level.

        Args:
            state: Traversal state, mutated in place.
            search_for: Which edges to follow.
            max_depth: Depth ceiling; no provider call is made at or beyond it.
            prior_errors: Error count accumulated by earlier levels.

        Returns:
            LevelReport for this level.
        """
        target_depth = state.level + 1
        report = LevelReport(level=target_depth, error_count=prior_errors)

        if state.level >= max_depth:
            logger.warning(f"Refusing to expand beyond depth {max_depth}")
            return report

        # Once-only expansion: a node is queried for its edges at most once
        to_expand = {pid for pid in state.current_frontier if pid not in state.expanded}
        state.expanded.update(to_expand)
        report.frontier_size = len(to_expand)

        if not to_expand:
            state.advance()
            return report

        logger.info(
            f"Expanding level {target_depth}/{max_depth}, "
            f"processing {len(to_expand)} papers ({search_for.value})"
        )

        results = await asyncio.gather(
            *(self.provider.fetch_edges(to_expand, d) for d in search_for.directions),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        batches: list[EdgeBatch] = list(results)

        self._merge(state, batches, sorted(to_expand), target_depth, report)

        failed: set[str] = set()
        for batch in batches:
            failed.update(batch.failed_ids)
            report.unresolved_edges += batch.unresolved_edges
            report.error_count += len(batch.failures)
        report.failed_ids = sorted(failed)

        state.advance()

        logger.info(
            f"Level {target_depth} complete: {report.newly_discovered} new, "
            f"{report.rediscovered} revisited, {len(report.failed_ids)} failed"
        )
        return report

    @staticmethod
    def _merge(
        state: TraversalState,
        batches: list[EdgeBatch],
        sources: list[str],
        depth: int,
        report: LevelReport,
    ) -> None:
        """
        Apply all discovery events of one level.

        Each distinct (source, target) pair counts once, even when the
        target shows up in both directions for the same source.
        """
        for source in sources:
            seen_targets: set[str] = set()
            for batch in batches:
                for paper in batch.edges.get(source, []):
                    target = paper.paper_id
                    if target == source or target in seen_targets:
                        continue
                    seen_targets.add(target)

                    if state.discover(target, paper, depth):
                        report.newly_discovered += 1
                    else:
                        report.rediscovered += 1
