"""Mentoring relationship repository implementation."""
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.common.errors import ConflictError
from mentoring.domain.mentoring.models import (
    OPEN_STATUSES,
    MentoringRelationship,
    RelationshipStatus,
)
from mentoring.domain.mentoring.services import RelationshipRepository
from mentoring.infra.db.models.relationship import MentoringRelationshipModel
from mentoring.infra.db.repositories.errors import store_errors


class RelationshipRepositoryImpl(RelationshipRepository):
    """Relationship repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, relationship: MentoringRelationship) -> MentoringRelationship:
        """Insert a relationship; the open-pair unique index turns a race into ConflictError."""
        model = MentoringRelationshipModel.from_entity(relationship)
        try:
            async with store_errors(
                self.session,
                "Create relationship",
                conflict_message="An open relationship already exists for this pair",
            ):
                self.session.add(model)
                await self.session.commit()
        except ConflictError as e:
            existing = await self.find_open_for_pair(relationship.professional_id, relationship.client_id)
            if existing is not None:
                e.current_status = existing.status.value
            raise
        return model.to_entity()

    async def get_by_id(self, relationship_id: str) -> Optional[MentoringRelationship]:
        """Get relationship by ID (always re-read from the store)."""
        async with store_errors(self.session, "Load relationship"):
            result = await self.session.execute(
                select(MentoringRelationshipModel)
                .where(MentoringRelationshipModel.id == relationship_id)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def find_open_for_pair(
        self, professional_id: str, client_id: str
    ) -> Optional[MentoringRelationship]:
        async with store_errors(self.session, "Find open relationship"):
            result = await self.session.execute(
                select(MentoringRelationshipModel)
                .where(
                    MentoringRelationshipModel.professional_id == professional_id,
                    MentoringRelationshipModel.client_id == client_id,
                    MentoringRelationshipModel.status.in_(OPEN_STATUSES),
                )
                .execution_options(populate_existing=True)
            )
            model = result.scalars().first()
        return model.to_entity() if model else None

    async def list_by_identity(self, identity_id: str) -> list[MentoringRelationship]:
        """List relationships where identity is either party, newest first."""
        async with store_errors(self.session, "List relationships"):
            result = await self.session.execute(
                select(MentoringRelationshipModel)
                .where(
                    or_(
                        MentoringRelationshipModel.professional_id == identity_id,
                        MentoringRelationshipModel.client_id == identity_id,
                    )
                )
                .order_by(MentoringRelationshipModel.created_at.desc(), MentoringRelationshipModel.id.desc())
                .execution_options(populate_existing=True)
            )
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def compare_and_set(
        self,
        relationship_id: str,
        expected_status: RelationshipStatus,
        values: dict[str, Any],
    ) -> Optional[MentoringRelationship]:
        """UPDATE ... WHERE id = :id AND status = :expected."""
        async with store_errors(
            self.session,
            "Update relationship",
            conflict_message="An open relationship already exists for this pair",
        ):
            result = await self.session.execute(
                update(MentoringRelationshipModel)
                .where(
                    MentoringRelationshipModel.id == relationship_id,
                    MentoringRelationshipModel.status == expected_status,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(relationship_id)

    async def count_clients(self, professional_id: str) -> tuple[int, int]:
        """Return (distinct clients, distinct clients with an active relationship)."""
        distinct_clients = func.count(func.distinct(MentoringRelationshipModel.client_id))
        async with store_errors(self.session, "Count clients"):
            total = await self.session.scalar(
                select(distinct_clients).where(MentoringRelationshipModel.professional_id == professional_id)
            )
            active = await self.session.scalar(
                select(distinct_clients).where(
                    MentoringRelationshipModel.professional_id == professional_id,
                    MentoringRelationshipModel.status == RelationshipStatus.ACTIVE,
                )
            )
        return int(total or 0), int(active or 0)
