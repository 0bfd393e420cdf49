"""Mentoring relationship database model."""
from sqlalchemy import Column, DateTime, Enum as SQLEnum, Index, String, Text, text

from mentoring.domain.common.types import utcnow
from mentoring.domain.mentoring.models import (
    MentoringRelationship as MentoringRelationshipEntity,
    RelationshipStatus,
)
from mentoring.infra.db.base import Base

# Partial index predicate: the pair may only have one pending/active row.
OPEN_PAIR_PREDICATE = text("status IN ('pending', 'active')")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class MentoringRelationshipModel(Base):
    """Mentoring relationship database model."""

    __tablename__ = "mentoring_relationships"

    id = Column(String, primary_key=True)
    professional_id = Column(String, nullable=False, index=True)
    client_id = Column(String, nullable=False, index=True)
    status = Column(
        SQLEnum(
            RelationshipStatus,
            name="relationship_status",
            values_callable=_enum_values,
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=RelationshipStatus.PENDING,
    )
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_mentoring_relationships_open_pair",
            "professional_id",
            "client_id",
            unique=True,
            postgresql_where=OPEN_PAIR_PREDICATE,
            sqlite_where=OPEN_PAIR_PREDICATE,
        ),
    )

    def to_entity(self) -> MentoringRelationshipEntity:
        """Convert to domain entity."""
        return MentoringRelationshipEntity(
            id=self.id,
            professional_id=self.professional_id,
            client_id=self.client_id,
            status=RelationshipStatus(self.status),
            started_at=self.started_at,
            ended_at=self.ended_at,
            notes=self.notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: MentoringRelationshipEntity) -> "MentoringRelationshipModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            professional_id=entity.professional_id,
            client_id=entity.client_id,
            status=entity.status,
            started_at=entity.started_at,
            ended_at=entity.ended_at,
            notes=entity.notes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
