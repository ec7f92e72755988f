"""
Snowball orchestrator.

Drives one snowball request through its states:

    VALIDATING -> RESOLVING -> EXPANDING -> AGGREGATING -> COMPLETED
                                                        \\-> FAILED

An orchestrator instance owns its TraversalState and is used for
exactly one request.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from .errors import (
    AllSeedsUnresolvedError,
    InvalidRequestError,
    ResolutionError,
    SnowballCancelledError,
    SnowballError,
)
from .expander import FrontierExpander
from .identifiers import IdentifierNormalizer, parse_identifier
from .models import (
    Direction,
    EdgeBatch,
    Identifier,
    LevelReport,
    OutcomeSummary,
    PaperInfo,
    RequestParameters,
    SearchFor,
    SeedFailure,
    SnowballResult,
    TraversalState,
)
from .scoring import finalize

logger = logging.getLogger("snowball-citation-server")


class SnowballProvider(Protocol):
    async def resolve(self, identifier: Identifier) -> list[PaperInfo]: ...

    async def lookup_papers(self, paper_ids: list[str]) -> dict[str, Optional[PaperInfo]]: ...

    async def fetch_edges(self, paper_ids: set[str], direction: Direction) -> EdgeBatch: ...


class SnowballState(str, Enum):
    VALIDATING = "validating"
    RESOLVING = "resolving"
    EXPANDING = "expanding"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"


class SnowballOrchestrator:
    """Runs a single snowball request against a provider."""

    def __init__(
        self,
        provider: SnowballProvider,
        max_seed_ids: int = 7,
        max_depth: int = 2,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            provider: Client implementing the provider contract.
            max_seed_ids: Maximum number of input identifiers.
            max_depth: Depth ceiling; requested depths above it are clamped.
            timeout: Seconds before the request is cancelled (None = no limit).
        """
        self.provider = provider
        self.max_seed_ids = max_seed_ids
        self.max_depth = max_depth
        self.timeout = timeout
        self.normalizer = IdentifierNormalizer(provider)
        self.expander = FrontierExpander(provider)

        self.state: Optional[SnowballState] = None
        self.history: list[SnowballState] = []
        self.failure: Optional[Exception] = None
        self.traversal = TraversalState()
        self.reports: list[LevelReport] = []
        self.seed_failures: list[ResolutionError] = []

    def _transition(self, new_state: SnowballState) -> None:
        logger.debug(f"Snowball state: {self.state} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    # ==================== Validating ====================

    def validate(
        self,
        input_id_list: list[str],
        depth: int,
        search_for: Any,
        output_max_size: int,
    ) -> tuple[RequestParameters, list[Identifier]]:
        """
        Check request parameters and parse every identifier.

        Raises:
            InvalidRequestError: On any invalid parameter.
        """
        if not input_id_list:
            raise InvalidRequestError("No valid identifiers provided")
        if len(input_id_list) > self.max_seed_ids:
            raise InvalidRequestError(
                f"Too many identifiers: maximum {self.max_seed_ids} allowed, "
                f"got {len(input_id_list)}"
            )

        try:
            direction = SearchFor(search_for)
        except ValueError as e:
            raise InvalidRequestError(
                f"Invalid search_for '{search_for}': expected References, Citations or Both"
            ) from e

        try:
            params = RequestParameters(
                input_id_list=input_id_list,
                depth=depth,
                search_for=direction,
                output_max_size=output_max_size,
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid request parameters: {e}") from e

        if params.depth > self.max_depth:
            logger.warning(f"Requested depth {params.depth} clamped to {self.max_depth}")
            params = params.model_copy(update={"depth": self.max_depth})

        identifiers = [parse_identifier(raw) for raw in params.input_id_list]
        return params, identifiers

    # ==================== Lifecycle ====================

    async def run(
        self,
        input_id_list: list[str],
        depth: int,
        search_for: Any,
        output_max_size: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SnowballResult:
        """
        Execute the request.

        Args:
            input_id_list: Raw seed identifiers (DOI, PMID or S2 ID).
            depth: Number of expansion levels.
            search_for: "References", "Citations" or "Both".
            output_max_size: Maximum number of ranked articles.
            cancel_event: Setting this event aborts the request.

        Returns:
            SnowballResult with ranked articles and the outcome summary.

        Raises:
            SnowballError: InvalidRequestError, AllSeedsUnresolvedError,
                SnowballCancelledError or an unrecoverable ProviderError.
        """
        self._transition(SnowballState.VALIDATING)
        try:
            params, identifiers = self.validate(input_id_list, depth, search_for, output_max_size)
            logger.info(
                f"Snowball request: {len(identifiers)} seeds, depth={params.depth}, "
                f"search_for={params.search_for.value}, max={params.output_max_size}"
            )
            return await self._run_cancellable(self._execute(params, identifiers), cancel_event)
        except SnowballError as e:
            self.failure = e
            self._transition(SnowballState.FAILED)
            raise
        except asyncio.CancelledError:
            self.failure = SnowballCancelledError("Request task was cancelled")
            self._transition(SnowballState.FAILED)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in snowball request: {e}")
            self.failure = e
            self._transition(SnowballState.FAILED)
            raise

    async def _run_cancellable(
        self,
        coro,
        cancel_event: Optional[asyncio.Event],
    ) -> SnowballResult:
        """Run the traversal until it finishes, the event fires or time runs out."""
        task = asyncio.ensure_future(coro)
        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task in done:
            return task.result()

        if cancel_event is not None and cancel_event.is_set():
            raise SnowballCancelledError("Snowball request was cancelled")
        raise SnowballCancelledError(f"Snowball request timed out after {self.timeout}s")

    async def _execute(
        self,
        params: RequestParameters,
        identifiers: list[Identifier],
    ) -> SnowballResult:
        self._transition(SnowballState.RESOLVING)
        resolved = await self._resolve_seeds(identifiers)

        self._transition(SnowballState.EXPANDING)
        errors = len(self.seed_failures)
        while self.traversal.level < params.depth and self.traversal.current_frontier:
            report = await self.expander.expand_level(
                self.traversal,
                params.search_for,
                params.depth,
                prior_errors=errors,
            )
            self.reports.append(report)
            errors = report.error_count

        if self.traversal.level < params.depth:
            logger.info(f"Graph exhausted after {self.traversal.level} of {params.depth} levels")

        self._transition(SnowballState.AGGREGATING)
        articles = finalize(self.traversal, params.output_max_size)
        summary = self._build_summary(params, len(identifiers), resolved, errors)

        self._transition(SnowballState.COMPLETED)
        logger.info(
            f"Snowball complete: {summary.discovered_count} papers discovered, "
            f"returning {len(articles)}, {summary.warning_count} warnings"
        )
        return SnowballResult(articles=articles, summary=summary)

    # ==================== Resolving ====================

    async def _resolve_seeds(self, identifiers: list[Identifier]) -> int:
        """
        Resolve all seeds concurrently and register them at depth 0.

        Returns:
            Number of identifiers that resolved.

        Raises:
            AllSeedsUnresolvedError: If no seed resolved.
        """
        results = await asyncio.gather(
            *(self.normalizer.normalize(identifier) for identifier in identifiers),
            return_exceptions=True,
        )

        resolved = 0
        # Seeds are registered in input order, whatever order resolution finished in
        for identifier, result in zip(identifiers, results):
            if isinstance(result, ResolutionError):
                logger.warning(f"Dropping seed {identifier.raw}: {result}")
                self.seed_failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result

            canonical_id, metadata = result
            resolved += 1
            if not self.traversal.add_seed(canonical_id, metadata):
                logger.info(f"Seed {identifier.raw} duplicates {canonical_id}")

        if not self.traversal.visited:
            raise AllSeedsUnresolvedError(self.seed_failures)

        await self._hydrate_seeds()
        return resolved

    async def _hydrate_seeds(self) -> None:
        """Fetch metadata for seeds that were given as canonical IDs."""
        missing = [pid for pid, node in self.traversal.visited.items() if node.metadata is None]
        if not missing:
            return

        papers = await self.provider.lookup_papers(missing)
        for pid in missing:
            paper = papers.get(pid)
            if paper is None:
                logger.warning(f"No metadata available for seed {pid}")
                continue
            self.traversal.visited[pid].metadata = paper

    # ==================== Aggregating ====================

    def _build_summary(
        self,
        params: RequestParameters,
        seed_count: int,
        resolved: int,
        errors: int,
    ) -> OutcomeSummary:
        failed: set[str] = set()
        for report in self.reports:
            failed.update(report.failed_ids)

        return OutcomeSummary(
            depth=params.depth,
            search_for=params.search_for,
            seed_count=seed_count,
            resolved_seed_count=resolved,
            unresolved_seeds=[
                SeedFailure(raw_id=f.raw_id, reason=f.reason.value, message=f.message)
                for f in self.seed_failures
            ],
            failed_ids=sorted(failed),
            unresolved_edges=sum(r.unresolved_edges for r in self.reports),
            error_count=errors,
            levels_completed=self.traversal.level,
            discovered_count=len(self.traversal.visited),
        )
