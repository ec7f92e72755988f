"""
Snowball service - main business logic.

This is the core service that can be used by both MCP tools
and web applications. It has NO MCP dependencies.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

from ..config import Settings
from .client import SemanticScholarClient
from .errors import SnowballCancelledError, SnowballError
from .models import SearchEvent, SnowballResult
from .orchestrator import SnowballOrchestrator, SnowballProvider

logger = logging.getLogger("snowball-citation-server")

ENDPOINT = "snowball_search"
INTERNAL_ERROR_KIND = "internal"


class EventSink(Protocol):
    async def record(self, event: SearchEvent) -> None: ...


def epoch_ms() -> int:
    return int(time.time() * 1000)


class SnowballService:
    """
    Core snowball search service.

    Owns the provider client (shared by all requests so the in-flight
    request cap applies globally) and runs one SnowballOrchestrator per
    request. Every request, successful or not, produces one SearchEvent.

    Example usage:
        service = SnowballService()
        result = await service.snowball(
            ["10.1016/j.cell.2020.01.040"],
            depth=2,
            search_for="Both",
            output_max_size=50,
        )
        for article in result.articles:
            print(article.score, article.paper.title if article.paper else article.id)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[SnowballProvider] = None,
        event_sink: Optional[EventSink] = None,
    ):
        """
        Initialize the snowball service.

        Args:
            settings: Optional settings; defaults are read from the environment.
            client: Provider implementation. Defaults to a SemanticScholarClient.
            event_sink: Analytics collaborator receiving completion events.
        """
        self.settings = settings or Settings()
        self.client = client or SemanticScholarClient.from_settings(self.settings)
        self.event_sink = event_sink

    def _new_orchestrator(self) -> SnowballOrchestrator:
        return SnowballOrchestrator(
            self.client,
            max_seed_ids=self.settings.MAX_SEED_IDS,
            max_depth=self.settings.MAX_DEPTH,
            timeout=self.settings.TRAVERSAL_TIMEOUT,
        )

    async def snowball(
        self,
        input_id_list: list[str],
        depth: int = 1,
        search_for: Any = "Both",
        output_max_size: int = 100,
        session_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SnowballResult:
        """
        Run a snowball search around the given seeds.

        Args:
            input_id_list: Seed identifiers (DOI, PMID or Semantic Scholar ID).
            depth: Expansion levels (0 returns only the seeds).
            search_for: "References", "Citations" or "Both".
            output_max_size: Maximum number of ranked articles.
            session_id: Optional session tag for the analytics event.
            cancel_event: Setting this event aborts the request.

        Returns:
            SnowballResult with articles ranked by path frequency.

        Raises:
            SnowballError: When the request fails as a whole.
        """
        request_inputs = {
            "input_id_list": list(input_id_list or []),
            "depth": depth,
            "search_for": str(getattr(search_for, "value", search_for)),
            "output_max_size": output_max_size,
        }
        started_ms = epoch_ms()
        orchestrator = self._new_orchestrator()

        try:
            result = await orchestrator.run(
                input_id_list,
                depth,
                search_for,
                output_max_size,
                cancel_event=cancel_event,
            )
        except SnowballError as e:
            logger.error(f"Snowball request failed: {e}")
            await self._emit(
                "search_error",
                session_id,
                started_ms,
                request_inputs,
                {"error": str(e), "error_kind": e.kind},
            )
            raise
        except asyncio.CancelledError:
            await self._emit(
                "search_error",
                session_id,
                started_ms,
                request_inputs,
                {"error": "Request task was cancelled", "error_kind": SnowballCancelledError.kind},
            )
            raise
        except Exception as e:
            await self._emit(
                "search_error",
                session_id,
                started_ms,
                request_inputs,
                {"error": str(e), "error_kind": INTERNAL_ERROR_KIND},
            )
            raise

        summary = result.summary
        await self._emit(
            "search_success",
            session_id,
            started_ms,
            request_inputs,
            {
                "depth": summary.depth,
                "search_for": summary.search_for.value,
                "seed_count": summary.seed_count,
                "result_count": len(result.articles),
                "unresolved_seed_count": len(summary.unresolved_seeds),
                "failed_id_count": len(summary.failed_ids),
                "warning_count": summary.warning_count,
            },
        )
        return result

    async def _emit(
        self,
        event_type: str,
        session_id: Optional[str],
        started_ms: int,
        request_inputs: dict[str, Any],
        outcome: dict[str, Any],
    ) -> None:
        """Hand a completion event to the analytics sink. Never raises."""
        if self.event_sink is None:
            return

        completed_ms = epoch_ms()
        metadata = {
            "request": request_inputs,
            "depth": request_inputs["depth"],
            "search_for": request_inputs["search_for"],
            "seed_count": len(request_inputs["input_id_list"]),
        }
        metadata.update(outcome)
        event = SearchEvent(
            event_type=event_type,
            endpoint=ENDPOINT,
            session_id=session_id,
            request_started_ms=started_ms,
            request_completed_ms=completed_ms,
            request_duration_ms=max(completed_ms - started_ms, 0),
            metadata=metadata,
        )

        try:
            await self.event_sink.record(event)
        except Exception as e:
            logger.warning(f"Failed to log {event_type} event: {e}")

    async def close(self) -> None:
        """Clean up resources."""
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
