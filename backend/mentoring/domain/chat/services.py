"""Conversation registry and message pipeline services."""
import asyncio
import logging
import weakref
from datetime import datetime
from typing import Optional, Protocol

from mentoring.domain.chat.models import (
    Conversation,
    ConversationParties,
    ConversationSummary,
    Message,
    MessageType,
)
from mentoring.domain.common.errors import NotFoundError, PersistenceError, ValidationError
from mentoring.domain.common.events import EventPublisher, EventType, build_event
from mentoring.domain.common.types import conversation_topic, identity_topic, utcnow
from mentoring.domain.mentoring.services import RelationshipRepository, RelationshipService

logger = logging.getLogger(__name__)


class ConversationRepository(Protocol):
    """Conversation repository protocol."""

    async def create(self, conversation: Conversation) -> Conversation:
        """Create a new conversation."""
        ...

    async def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        """Get conversation by ID."""
        ...

    async def list_for_identity(
        self, identity_id: str
    ) -> list[tuple[Conversation, ConversationParties]]:
        """Conversations of every relationship the identity is a party to."""
        ...


class MessageRepository(Protocol):
    """Message repository protocol."""

    async def append(self, message: Message) -> Message:
        """Insert message and bump its conversation's last_message_at atomically."""
        ...

    async def get_by_id(self, message_id: str) -> Optional[Message]:
        """Get message by ID."""
        ...

    async def mark_read(self, message_id: str, read_at: datetime) -> bool:
        """Set read_at if still unset. Returns True when a row changed."""
        ...

    async def mark_conversation_read(
        self, conversation_id: str, reader_id: str, read_at: datetime
    ) -> int:
        """Mark every unread message not sent by reader. Returns rows changed."""
        ...

    async def list_latest(self, conversation_id: str, limit: int) -> list[Message]:
        """Most recent messages, newest first."""
        ...

    async def latest_by_conversation(self, conversation_ids: list[str]) -> dict[str, Message]:
        """Most recent message per conversation."""
        ...

    async def unread_counts(self, conversation_ids: list[str], identity_id: str) -> dict[str, int]:
        """Unread messages not sent by identity, per conversation."""
        ...

    async def count_unread_for_identity(self, identity_id: str) -> int:
        """Unread messages addressed to identity across all its conversations."""
        ...


class _ConversationLocks:
    """Process-local lock per conversation so persisted order equals publish order."""

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock


conversation_send_locks = _ConversationLocks()


class ConversationService:
    """Conversation registry."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        relationship_repo: RelationshipRepository,
        publisher: Optional[EventPublisher] = None,
    ):
        self.conversation_repo = conversation_repo
        self.message_repo = message_repo
        self.relationship_repo = relationship_repo
        self.publisher = publisher

    async def create_conversation(self, relationship_id: str, title: Optional[str] = None) -> Conversation:
        """Open a thread on a relationship. Any relationship status is accepted."""
        relationship = await self.relationship_repo.get_by_id(relationship_id)
        if not relationship:
            raise NotFoundError("Relationship", relationship_id)

        conversation = await self.conversation_repo.create(
            Conversation.create(relationship_id=relationship_id, title=title)
        )
        logger.info(f"✅ [CONVERSATION] Created {conversation.id} on relationship {relationship_id}")
        if self.publisher is not None:
            for identity_id in relationship.party_ids:
                topic = identity_topic(identity_id)
                await self.publisher.publish(
                    topic, build_event(EventType.CONVERSATION_CREATED, topic, conversation)
                )
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Get conversation by ID."""
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def list_conversations(self, identity_id: str) -> list[ConversationSummary]:
        """Inbox for an identity: last message and unread count per conversation."""
        rows = await self.conversation_repo.list_for_identity(identity_id)
        if not rows:
            return []
        ids = [conversation.id for conversation, _ in rows]
        latest = await self.message_repo.latest_by_conversation(ids)
        unread = await self.message_repo.unread_counts(ids, identity_id)

        summaries = [
            ConversationSummary(
                **conversation.model_dump(),
                relationship=parties,
                last_message=latest.get(conversation.id),
                unread_count=unread.get(conversation.id, 0),
            )
            for conversation, parties in rows
        ]
        summaries.sort(key=lambda s: (s.last_message_at, s.id), reverse=True)
        return summaries


class MessageService:
    """Message pipeline: validate, persist, publish."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        relationship_service: RelationshipService,
        publisher: Optional[EventPublisher] = None,
        default_limit: int = 50,
        max_limit: int = 200,
    ):
        self.conversation_repo = conversation_repo
        self.message_repo = message_repo
        self.relationship_service = relationship_service
        self.publisher = publisher
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> Message:
        """Persist a message, then publish MessageCreated on the conversation topic.

        Raises PersistenceError (with the content attached) if the store fails;
        the caller owns any retry. Once the message is stored, a failed
        relationship activation is logged and the message is still returned.
        """
        if not sender_id:
            raise ValidationError("sender_id is required")
        if message_type == MessageType.TEXT and not (content or "").strip():
            raise ValidationError("Text messages cannot be empty")

        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)

        topic = conversation_topic(conversation_id)
        async with conversation_send_locks.get(conversation_id):
            created = await self.message_repo.append(
                Message.create(conversation_id, sender_id, content, message_type)
            )
            logger.info(f"📤 [MESSAGE] {created.id} persisted in conversation {conversation_id} by {sender_id}")
            if self.publisher is not None:
                await self.publisher.publish(topic, build_event(EventType.MESSAGE_CREATED, topic, created))

        try:
            relationship = await self.relationship_service.get_relationship(conversation.relationship_id)
            relationship = await self.relationship_service.activate_if_pending(relationship)
        except PersistenceError as e:
            # The message is stored; the next send retries the activation.
            logger.error(
                f"❌ [MESSAGE] Relationship {conversation.relationship_id} not activated after {created.id}: {e}"
            )
            return created

        if self.publisher is not None:
            bumped = conversation.model_copy(
                update={"last_message_at": created.created_at, "updated_at": created.created_at}
            )
            for identity_id in relationship.party_ids:
                id_topic = identity_topic(identity_id)
                await self.publisher.publish(
                    id_topic, build_event(EventType.CONVERSATION_UPDATED, id_topic, bumped)
                )
        return created

    async def mark_read(self, message_id: str, reader_id: str) -> Message:
        """Set read_at once. Already-read messages and the sender's own messages are left as they are."""
        message = await self.message_repo.get_by_id(message_id)
        if not message:
            raise NotFoundError("Message", message_id)
        if message.read_at is not None or message.sender_id == reader_id:
            return message

        changed = await self.message_repo.mark_read(message_id, utcnow())
        updated = await self.message_repo.get_by_id(message_id)
        if changed and self.publisher is not None:
            topic = conversation_topic(updated.conversation_id)
            await self.publisher.publish(topic, build_event(EventType.MESSAGE_READ, topic, updated))
        return updated

    async def mark_conversation_read(self, conversation_id: str, reader_id: str) -> int:
        """Mark all of the other party's unread messages in a conversation as read."""
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        count = await self.message_repo.mark_conversation_read(conversation_id, reader_id, utcnow())
        logger.debug(f"[MESSAGE] {reader_id} read {count} messages in {conversation_id}")
        return count

    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> list[Message]:
        """Latest `limit` messages in ascending (created_at, id) order."""
        limit = self.default_limit if limit is None else limit
        if limit < 1 or limit > self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}")
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)

        newest_first = await self.message_repo.list_latest(conversation_id, limit)
        return sorted(newest_first, key=lambda m: m.sort_key)

    async def count_unread(self, identity_id: str) -> int:
        """Total unread messages addressed to an identity."""
        return await self.message_repo.count_unread_for_identity(identity_id)
