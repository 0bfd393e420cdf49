"""Pytest configuration for tests directory."""
from typing import Optional, Sequence

import httpx
import pytest

from mentoring.domain.chat.models import Message
from mentoring.domain.chat.services import ConversationService, MessageService
from mentoring.domain.common.events import RealtimeEvent
from mentoring.domain.goals.services import GoalService
from mentoring.domain.mentoring.services import RelationshipService
from mentoring.infra.db.base import Database
from mentoring.infra.db.repositories.conversation_repo import ConversationRepositoryImpl
from mentoring.infra.db.repositories.goal_repo import GoalRepositoryImpl
from mentoring.infra.db.repositories.message_repo import MessageRepositoryImpl
from mentoring.infra.db.repositories.relationship_repo import RelationshipRepositoryImpl
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher
from mentoring.main import create_app


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests that need a real DB or Redis (deselect with '-m \"not integration\"')"
    )


class EventRecorder:
    """Subscriber handler that keeps every event it receives."""

    def __init__(self):
        self.events: list[RealtimeEvent] = []

    async def __call__(self, event: RealtimeEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[RealtimeEvent]:
        return [e for e in self.events if e.event_type.value == event_type]


class FakeTextGenerator:
    """Stands in for the Gemini generator."""

    def __init__(self, reply: Optional[str] = "Keep going, you are doing well.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, list[Message]]] = []

    async def generate(self, prompt: str, history: Sequence[Message]) -> Optional[str]:
        self.calls.append((prompt, list(history)))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
async def database(tmp_path):
    """File-backed sqlite so concurrent sessions see each other's commits."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'mentoring.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
async def dispatcher():
    d = RealtimeDispatcher(queue_size=64)
    yield d
    await d.aclose()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def relationship_service(session, dispatcher):
    return RelationshipService(
        RelationshipRepositoryImpl(session),
        dispatcher,
        goal_counter=GoalRepositoryImpl(session),
    )


@pytest.fixture
def conversation_service(session, dispatcher):
    return ConversationService(
        ConversationRepositoryImpl(session),
        MessageRepositoryImpl(session),
        RelationshipRepositoryImpl(session),
        dispatcher,
    )


@pytest.fixture
def message_service(session, dispatcher, relationship_service):
    return MessageService(
        ConversationRepositoryImpl(session),
        MessageRepositoryImpl(session),
        relationship_service,
        dispatcher,
        default_limit=50,
        max_limit=200,
    )


@pytest.fixture
def goal_service(session, dispatcher):
    return GoalService(GoalRepositoryImpl(session), dispatcher, recent_progress_limit=10)


@pytest.fixture
def text_generator():
    return FakeTextGenerator()


@pytest.fixture
def app(database, dispatcher, text_generator):
    return create_app(database=database, dispatcher=dispatcher, text_generator=text_generator)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
