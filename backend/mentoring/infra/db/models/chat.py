"""Conversation and message database models."""
from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Index, String, Text

from mentoring.domain.chat.models import (
    Conversation as ConversationEntity,
    Message as MessageEntity,
    MessageType,
)
from mentoring.domain.common.types import utcnow
from mentoring.infra.db.base import Base
from mentoring.infra.db.models.relationship import _enum_values


class ConversationModel(Base):
    """Conversation database model."""

    __tablename__ = "conversations"

    id = Column(String, primary_key=True)
    relationship_id = Column(
        String, ForeignKey("mentoring_relationships.id"), nullable=False, index=True
    )
    title = Column(String, nullable=True)
    last_message_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def to_entity(self) -> ConversationEntity:
        """Convert to domain entity."""
        return ConversationEntity(
            id=self.id,
            relationship_id=self.relationship_id,
            title=self.title,
            last_message_at=self.last_message_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: ConversationEntity) -> "ConversationModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            relationship_id=entity.relationship_id,
            title=entity.title,
            last_message_at=entity.last_message_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class MessageModel(Base):
    """Message database model."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(
        SQLEnum(
            MessageType,
            name="message_type",
            values_callable=_enum_values,
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=MessageType.TEXT,
    )
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at", "id"),
    )

    def to_entity(self) -> MessageEntity:
        """Convert to domain entity."""
        return MessageEntity(
            id=self.id,
            conversation_id=self.conversation_id,
            sender_id=self.sender_id,
            content=self.content,
            message_type=MessageType(self.message_type),
            read_at=self.read_at,
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity: MessageEntity) -> "MessageModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            conversation_id=entity.conversation_id,
            sender_id=entity.sender_id,
            content=entity.content,
            message_type=entity.message_type,
            read_at=entity.read_at,
            created_at=entity.created_at,
        )
