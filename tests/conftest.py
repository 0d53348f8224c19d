"""Pytest configuration and shared fixtures."""
from typing import Any, List, Optional
from unittest.mock import MagicMock

import pytest

from config import Settings
from database import DatabaseManager
from shared.models.domain import TextFragment
from shared.models.entities import Step
from shared.repositories import SyllabusRepository
from editor.agents.base_agent import BaseChatAgent


@pytest.fixture(scope="function")
def db_manager():
    """
    Database manager over a fresh in-memory SQLite database.

    The StaticPool keeps one shared connection, so executor threads used by
    the stores see the same database as the test.
    """
    manager = DatabaseManager("sqlite:///:memory:")
    manager.create_all()

    yield manager

    manager.close()


@pytest.fixture
def db_session(db_manager):
    """A session on the test database, closed after the test."""
    session = db_manager.get_session()
    yield session
    session.close()


@pytest.fixture
def syllabus_id(db_manager):
    """
    Seed a Syllabind with two weeks.

    Week 1 has two readings ("Intro to Deep Work", "Attention Residue"),
    week 2 has one exercise.
    """
    with db_manager.session_scope() as session:
        repo = SyllabusRepository(session)
        syllabus = repo.create_syllabus(
            title="Deep Work",
            description="Focus in a distracted world",
            audience_level="Beginner",
            duration_weeks=4,
            creator_id="creator",
        )
        week1 = repo.create_week(syllabus.id, 1, title="Foundations")
        week2 = repo.create_week(syllabus.id, 2, title="Practice")
        repo.add_step(Step(week_id=week1.id, position=1, type="reading", title="Intro to Deep Work",
                           url="https://example.edu/deep-work", media_type="Blog/Article"))
        repo.add_step(Step(week_id=week1.id, position=2, type="reading", title="Attention Residue",
                           url="https://example.edu/residue", media_type="Blog/Article"))
        repo.add_step(Step(week_id=week2.id, position=1, type="exercise", title="Schedule a focus block",
                           prompt_text="<p>Block 90 minutes.</p>"))
        return syllabus.id


@pytest.fixture
def test_settings():
    """Settings isolated from the environment."""
    return Settings(
        database_url="sqlite:///:memory:",
        anthropic_api_key="test-key-fake",
        chat_history_limit=10,
        max_tool_iterations=5,
        confirmation_timeout_seconds=None,
    )


class ScriptedAgent(BaseChatAgent):
    """
    Chat agent that replays scripted model responses.

    Each response is a list of TextFragment / ToolCallRequest events; an
    exception, in place of a response or among its events, is raised there.
    Every call records the history and exchanges it saw.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    @property
    def agent_name(self) -> str:
        return "scripted"

    def add_response(self, *events: Any) -> None:
        self.responses.append(list(events))

    async def _stream(self, history, exchanges, tool_schemas, syllabus):
        self.calls.append({
            "history": [(m.role, m.content) for m in history],
            "exchanges": list(exchanges),
            "tools": [t["name"] for t in tool_schemas],
            "syllabus": syllabus,
        })
        if not self.responses:
            yield TextFragment(text="")
            return
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        for event in response:
            if isinstance(event, Exception):
                raise event
            yield event


@pytest.fixture
def scripted_agent():
    return ScriptedAgent()


@pytest.fixture
def mock_search():
    """WebSearchService stand-in; search is an AsyncMock returning no results."""
    from unittest.mock import AsyncMock

    search = MagicMock()
    search.search = AsyncMock(return_value=[])
    return search
