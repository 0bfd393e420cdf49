"""Conversation repository implementation."""
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.chat.models import Conversation, ConversationParties
from mentoring.domain.chat.services import ConversationRepository
from mentoring.infra.db.models.chat import ConversationModel
from mentoring.infra.db.models.relationship import MentoringRelationshipModel
from mentoring.infra.db.repositories.errors import store_errors


class ConversationRepositoryImpl(ConversationRepository):
    """Conversation repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, conversation: Conversation) -> Conversation:
        """Create a new conversation."""
        model = ConversationModel.from_entity(conversation)
        async with store_errors(self.session, "Create conversation"):
            self.session.add(model)
            await self.session.commit()
        return model.to_entity()

    async def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        """Get conversation by ID."""
        async with store_errors(self.session, "Load conversation"):
            result = await self.session.execute(
                select(ConversationModel)
                .where(ConversationModel.id == conversation_id)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_for_identity(
        self, identity_id: str
    ) -> list[tuple[Conversation, ConversationParties]]:
        """Conversations of every relationship the identity is a party to, with the parties."""
        async with store_errors(self.session, "List conversations"):
            result = await self.session.execute(
                select(ConversationModel, MentoringRelationshipModel)
                .join(
                    MentoringRelationshipModel,
                    ConversationModel.relationship_id == MentoringRelationshipModel.id,
                )
                .where(
                    or_(
                        MentoringRelationshipModel.professional_id == identity_id,
                        MentoringRelationshipModel.client_id == identity_id,
                    )
                )
                .order_by(ConversationModel.last_message_at.desc(), ConversationModel.id.desc())
                .execution_options(populate_existing=True)
            )
            rows = result.all()
        return [
            (
                conversation.to_entity(),
                ConversationParties(
                    relationship_id=relationship.id,
                    professional_id=relationship.professional_id,
                    client_id=relationship.client_id,
                    status=relationship.status,
                ),
            )
            for conversation, relationship in rows
        ]
