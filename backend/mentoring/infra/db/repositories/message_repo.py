"""Message repository implementation."""
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.chat.models import Message
from mentoring.domain.chat.services import MessageRepository
from mentoring.infra.db.models.chat import ConversationModel, MessageModel
from mentoring.infra.db.models.relationship import MentoringRelationshipModel
from mentoring.infra.db.repositories.errors import store_errors


class MessageRepositoryImpl(MessageRepository):
    """Message repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, message: Message) -> Message:
        """Insert the message and bump the conversation in one transaction."""
        model = MessageModel.from_entity(message)
        async with store_errors(self.session, "Send message", content=message.content):
            self.session.add(model)
            await self.session.execute(
                update(ConversationModel)
                .where(ConversationModel.id == message.conversation_id)
                .values(last_message_at=message.created_at, updated_at=message.created_at)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return model.to_entity()

    async def get_by_id(self, message_id: str) -> Optional[Message]:
        """Get message by ID."""
        async with store_errors(self.session, "Load message"):
            result = await self.session.execute(
                select(MessageModel)
                .where(MessageModel.id == message_id)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def mark_read(self, message_id: str, read_at: datetime) -> bool:
        """Set read_at only while it is still unset."""
        async with store_errors(self.session, "Mark message read"):
            result = await self.session.execute(
                update(MessageModel)
                .where(MessageModel.id == message_id, MessageModel.read_at.is_(None))
                .values(read_at=read_at)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def mark_conversation_read(
        self, conversation_id: str, reader_id: str, read_at: datetime
    ) -> int:
        async with store_errors(self.session, "Mark conversation read"):
            result = await self.session.execute(
                update(MessageModel)
                .where(
                    MessageModel.conversation_id == conversation_id,
                    MessageModel.sender_id != reader_id,
                    MessageModel.read_at.is_(None),
                )
                .values(read_at=read_at)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount or 0

    async def list_latest(self, conversation_id: str, limit: int) -> list[Message]:
        """Most recent messages, newest first."""
        async with store_errors(self.session, "List messages"):
            result = await self.session.execute(
                select(MessageModel)
                .where(MessageModel.conversation_id == conversation_id)
                .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def latest_by_conversation(self, conversation_ids: list[str]) -> dict[str, Message]:
        """Most recent message per conversation (row_number window)."""
        if not conversation_ids:
            return {}
        position = (
            func.row_number()
            .over(
                partition_by=MessageModel.conversation_id,
                order_by=(MessageModel.created_at.desc(), MessageModel.id.desc()),
            )
            .label("position")
        )
        ranked = (
            select(MessageModel.id.label("message_id"), position)
            .where(MessageModel.conversation_id.in_(conversation_ids))
            .subquery()
        )
        async with store_errors(self.session, "Load latest messages"):
            result = await self.session.execute(
                select(MessageModel)
                .join(ranked, ranked.c.message_id == MessageModel.id)
                .where(ranked.c.position == 1)
                .execution_options(populate_existing=True)
            )
            models = result.scalars().all()
        return {m.conversation_id: m.to_entity() for m in models}

    async def unread_counts(self, conversation_ids: list[str], identity_id: str) -> dict[str, int]:
        if not conversation_ids:
            return {}
        async with store_errors(self.session, "Count unread messages"):
            result = await self.session.execute(
                select(MessageModel.conversation_id, func.count(MessageModel.id))
                .where(
                    MessageModel.conversation_id.in_(conversation_ids),
                    MessageModel.sender_id != identity_id,
                    MessageModel.read_at.is_(None),
                )
                .group_by(MessageModel.conversation_id)
            )
            rows = result.all()
        return {conversation_id: int(count) for conversation_id, count in rows}

    async def count_unread_for_identity(self, identity_id: str) -> int:
        """Unread messages from the other party across every conversation the identity is in."""
        async with store_errors(self.session, "Count unread messages"):
            count = await self.session.scalar(
                select(func.count(MessageModel.id))
                .join(ConversationModel, MessageModel.conversation_id == ConversationModel.id)
                .join(
                    MentoringRelationshipModel,
                    ConversationModel.relationship_id == MentoringRelationshipModel.id,
                )
                .where(
                    or_(
                        MentoringRelationshipModel.professional_id == identity_id,
                        MentoringRelationshipModel.client_id == identity_id,
                    ),
                    MessageModel.sender_id != identity_id,
                    MessageModel.read_at.is_(None),
                )
            )
        return int(count or 0)
