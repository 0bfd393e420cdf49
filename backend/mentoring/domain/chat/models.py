"""Conversation and message domain models."""
import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from mentoring.domain.common.types import generate_id, utcnow
from mentoring.domain.mentoring.models import RelationshipStatus


class MessageType(str, enum.Enum):
    """Message content type."""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class Conversation(BaseModel):
    """Message thread owned by one mentoring relationship."""

    id: str
    relationship_id: str
    title: Optional[str] = None
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(cls, relationship_id: str, title: Optional[str] = None) -> "Conversation":
        """Create a new conversation."""
        now = utcnow()
        return cls(
            id=generate_id(),
            relationship_id=relationship_id,
            title=title,
            last_message_at=now,
            created_at=now,
            updated_at=now,
        )


class Message(BaseModel):
    """Message domain model. Immutable except read_at."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    message_type: MessageType = MessageType.TEXT
    read_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def create(
        cls,
        conversation_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> "Message":
        """Create a new message."""
        return cls(
            id=generate_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            created_at=utcnow(),
        )

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)


class ConversationParties(BaseModel):
    """Relationship parties embedded in a conversation summary."""

    relationship_id: str
    professional_id: str
    client_id: str
    status: RelationshipStatus


class ConversationSummary(Conversation):
    """Conversation enriched for one identity's inbox."""

    relationship: ConversationParties
    last_message: Optional[Message] = None
    unread_count: int = 0
