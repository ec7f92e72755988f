"""
Analytics event storage.

Completion events are appended as JSON lines, one per request:

    ~/.snowball-citation-server/events.jsonl
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import aiofiles

from ..config import Settings
from ..core.models import SearchEvent

logger = logging.getLogger("snowball-citation-server")


class EventStore:
    """
    Append-only store for SearchEvents.

    Implements the EventSink protocol expected by SnowballService.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the event store.

        Args:
            settings: Optional settings instance. If not provided,
                     creates default settings.
        """
        self.settings = settings or Settings()
        self.path = self.settings.events_path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def record(self, event: SearchEvent) -> None:
        """Append one event."""
        line = event.model_dump_json() + "\n"
        async with self._lock:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line)
        logger.debug(f"Recorded {event.event_type} event ({event.request_duration_ms} ms)")

    async def read_events(self, session_id: Optional[str] = None) -> list[SearchEvent]:
        """
        Load stored events, optionally only those of one session.

        Lines that cannot be parsed are skipped with a warning.
        """
        if not self.path.exists():
            return []

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()

        events = []
        for number, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                event = SearchEvent.model_validate(json.loads(line))
            except ValueError as e:
                logger.warning(f"Skipping malformed event on line {number} of {self.path}: {e}")
                continue
            if session_id is None or event.session_id == session_id:
                events.append(event)
        return events
