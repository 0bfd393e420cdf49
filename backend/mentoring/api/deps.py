"""API dependencies."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.assistant.services import AssistantService, TextGenerator
from mentoring.domain.chat.services import ConversationService, MessageService
from mentoring.domain.common.errors import NotConfiguredError
from mentoring.domain.common.events import EventPublisher
from mentoring.domain.goals.services import GoalService
from mentoring.domain.mentoring.services import RelationshipService
from mentoring.infra.db.repositories.conversation_repo import ConversationRepositoryImpl
from mentoring.infra.db.repositories.goal_repo import GoalRepositoryImpl
from mentoring.infra.db.repositories.message_repo import MessageRepositoryImpl
from mentoring.infra.db.repositories.relationship_repo import RelationshipRepositoryImpl
from mentoring.infra.db.session import get_db
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher
from mentoring.services.llm_service import GeminiTextGenerator
from mentoring.settings import get_settings

__all__ = [
    "get_db",
    "get_dispatcher",
    "get_publisher",
    "get_relationship_service",
    "get_conversation_service",
    "get_message_service",
    "get_goal_service",
    "get_text_generator",
    "get_assistant_service",
]


def get_dispatcher(request: Request) -> RealtimeDispatcher:
    """The RealtimeDispatcher wired at startup."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise NotConfiguredError("Realtime dispatcher")
    return dispatcher


def get_publisher(
    request: Request, dispatcher: RealtimeDispatcher = Depends(get_dispatcher)
) -> EventPublisher:
    """Redis fan-out publisher when enabled, otherwise the local dispatcher."""
    return getattr(request.app.state, "publisher", None) or dispatcher


def get_relationship_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> RelationshipService:
    return RelationshipService(
        RelationshipRepositoryImpl(db),
        publisher,
        goal_counter=GoalRepositoryImpl(db),
    )


def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> ConversationService:
    return ConversationService(
        ConversationRepositoryImpl(db),
        MessageRepositoryImpl(db),
        RelationshipRepositoryImpl(db),
        publisher,
    )


def get_message_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> MessageService:
    settings = get_settings()
    return MessageService(
        ConversationRepositoryImpl(db),
        MessageRepositoryImpl(db),
        relationship_service,
        publisher,
        default_limit=settings.message_list_default_limit,
        max_limit=settings.message_list_max_limit,
    )


def get_goal_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> GoalService:
    return GoalService(
        GoalRepositoryImpl(db),
        publisher,
        recent_progress_limit=get_settings().goal_recent_progress_limit,
    )


def get_text_generator(request: Request) -> TextGenerator:
    """Generator wired on app.state, else Gemini built from settings."""
    generator = getattr(request.app.state, "text_generator", None)
    if generator is not None:
        return generator
    settings = get_settings()
    if not settings.gemini_api_key:
        raise NotConfiguredError("Text generator")
    return GeminiTextGenerator(
        gemini_api_key=settings.gemini_api_key,
        default_text_model=settings.llm_default_text_model or None,
        backup_text_model=settings.llm_backup_text_model or None,
        assistant_id=settings.assistant_identity_id,
    )


def get_assistant_service(
    message_service: MessageService = Depends(get_message_service),
    generator: TextGenerator = Depends(get_text_generator),
) -> AssistantService:
    settings = get_settings()
    return AssistantService(
        message_service,
        generator,
        assistant_id=settings.assistant_identity_id,
        history_limit=min(settings.assistant_history_limit, settings.message_list_max_limit),
    )
