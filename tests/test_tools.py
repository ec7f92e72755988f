"""
Tests for the MCP tool handlers.
"""

import json
from unittest.mock import patch

import pytest

from snowball_citation_server.config import Settings
from snowball_citation_server.core.service import SnowballService
from snowball_citation_server.resources.events import EventStore
from snowball_citation_server.resources.sessions import SessionLinker, token_checksum
from snowball_citation_server.tools import link_session, session_events, snowball_search
from snowball_citation_server.tools.link_session import handle_link_session
from snowball_citation_server.tools.session_events import handle_session_events
from snowball_citation_server.tools.snowball_search import handle_snowball_search

from conftest import FakeProvider


@pytest.fixture
def service(settings: Settings, fake_provider: FakeProvider) -> SnowballService:
    return SnowballService(settings=settings, client=fake_provider)


def payload(contents) -> dict:
    assert len(contents) == 1
    return json.loads(contents[0].text)


class TestSnowballSearchTool:
    @pytest.mark.asyncio
    async def test_returns_ranked_articles(self, service: SnowballService):
        with patch.object(snowball_search, "_service", service):
            contents = await handle_snowball_search(
                {
                    "input_id_list": ["10.1000/seed.a", "10.1000/seed.b"],
                    "depth": 1,
                    "search_for": "References",
                    "output_max_size": 2,
                }
            )

        data = payload(contents)
        assert data["articles"][0]["paper_id"] == "SHARED"
        assert data["articles"][0]["score"] == 2
        assert len(data["articles"]) == 2
        assert data["summary"]["warning_count"] == 0

    @pytest.mark.asyncio
    async def test_single_string_seed(self, service: SnowballService):
        with patch.object(snowball_search, "_service", service):
            data = payload(await handle_snowball_search({"input_id_list": "10.1000/seed.a", "depth": 0}))

        assert [a["paper_id"] for a in data["articles"]] == ["A"]

    @pytest.mark.asyncio
    async def test_error_response(self, service: SnowballService):
        with patch.object(snowball_search, "_service", service):
            data = payload(await handle_snowball_search({"input_id_list": ["nonsense"]}))

        assert data["kind"] == "invalid_request"
        assert "nonsense" in data["error"]


class TestLinkSessionTool:
    @pytest.mark.asyncio
    async def test_link(self, settings: Settings):
        token = f"BT-A1B2C3D4E5F6-{token_checksum('A1B2C3D4E5F6')}"

        with patch.object(link_session, "_linker", SessionLinker(settings=settings)):
            first = payload(await handle_link_session({"exercise_token": token}))
            second = payload(await handle_link_session({"exercise_token": token}))

        assert first["session_id"] == second["session_id"]

    @pytest.mark.asyncio
    async def test_invalid_token(self, settings: Settings):
        with patch.object(link_session, "_linker", SessionLinker(settings=settings)):
            data = payload(await handle_link_session({"exercise_token": "BT-bad"}))

        assert data["kind"] == "invalid_session_token"


class TestSessionEventsTool:
    """Tests for the list_session_events tool."""

    @pytest.fixture
    def store(self, settings: Settings) -> EventStore:
        return EventStore(settings=settings)

    @pytest.mark.asyncio
    async def test_lists_events_by_token(self, settings: Settings, service: SnowballService, store: EventStore):
        """Test that searches tagged with a linked session are listed by token."""
        token = f"BT-A1B2C3D4E5F6-{token_checksum('A1B2C3D4E5F6')}"
        linker = SessionLinker(settings=settings)
        service.event_sink = store

        with patch.object(link_session, "_linker", linker):
            session_id = payload(await handle_link_session({"exercise_token": token}))["session_id"]
        with patch.object(snowball_search, "_service", service):
            await handle_snowball_search({"input_id_list": ["10.1000/seed.a"], "session_id": session_id})
            await handle_snowball_search({"input_id_list": ["10.1000/seed.b"], "session_id": "other"})

        with patch.object(session_events, "_linker", linker), patch.object(session_events, "_store", store):
            data = payload(await handle_session_events({"exercise_token": token}))

        assert data["session_id"] == session_id
        assert data["event_count"] == 1
        assert data["events"][0]["event_type"] == "search_success"
        assert data["events"][0]["metadata"]["request"]["input_id_list"] == ["10.1000/seed.a"]

    @pytest.mark.asyncio
    async def test_lists_events_by_session_id(self, store: EventStore):
        """Test listing by session_id without a token."""
        with patch.object(session_events, "_store", store):
            data = payload(await handle_session_events({"session_id": "nobody"}))

        assert data == {"session_id": "nobody", "event_count": 0, "events": []}

    @pytest.mark.asyncio
    async def test_unknown_token(self, settings: Settings):
        """Test that a token that was never linked is reported."""
        token = f"BT-ZZZZZZZZZZZZ-{token_checksum('ZZZZZZZZZZZZ')}"

        with patch.object(session_events, "_linker", SessionLinker(settings=settings)):
            data = payload(await handle_session_events({"exercise_token": token}))

        assert data["kind"] == "invalid_session_token"

    @pytest.mark.asyncio
    async def test_requires_an_argument(self):
        """Test that a session_id or exercise_token is required."""
        data = payload(await handle_session_events({}))
        assert data["kind"] == "invalid_session_token"
