"""Client goal and progress database models."""
from sqlalchemy import Column, Date, DateTime, Enum as SQLEnum, Float, ForeignKey, Index, String, Text

from mentoring.domain.common.types import utcnow
from mentoring.domain.goals.models import (
    ClientGoal as ClientGoalEntity,
    GoalPriority,
    GoalProgress as GoalProgressEntity,
    GoalStatus,
    GoalType,
)
from mentoring.infra.db.base import Base
from mentoring.infra.db.models.relationship import _enum_values


def _string_enum(enum_cls, name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=_enum_values,
        native_enum=False,
        validate_strings=True,
    )


class ClientGoalModel(Base):
    """Client goal database model. current_value is derived from goal_progress, never stored."""

    __tablename__ = "client_goals"

    id = Column(String, primary_key=True)
    client_id = Column(String, nullable=False, index=True)
    professional_id = Column(String, nullable=True, index=True)
    goal_type = Column(_string_enum(GoalType, "goal_type"), nullable=False, default=GoalType.CUSTOM)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    target_value = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    target_date = Column(Date, nullable=True)
    status = Column(_string_enum(GoalStatus, "goal_status"), nullable=False, default=GoalStatus.ACTIVE)
    priority = Column(_string_enum(GoalPriority, "goal_priority"), nullable=False, default=GoalPriority.MEDIUM)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def to_entity(self) -> ClientGoalEntity:
        """Convert to domain entity (derived fields left at their defaults)."""
        return ClientGoalEntity(
            id=self.id,
            client_id=self.client_id,
            professional_id=self.professional_id,
            goal_type=GoalType(self.goal_type),
            title=self.title,
            description=self.description,
            target_value=self.target_value,
            unit=self.unit,
            target_date=self.target_date,
            status=GoalStatus(self.status),
            priority=GoalPriority(self.priority),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: ClientGoalEntity) -> "ClientGoalModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            client_id=entity.client_id,
            professional_id=entity.professional_id,
            goal_type=entity.goal_type,
            title=entity.title,
            description=entity.description,
            target_value=entity.target_value,
            unit=entity.unit,
            target_date=entity.target_date,
            status=entity.status,
            priority=entity.priority,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class GoalProgressModel(Base):
    """Append-only goal progress entry."""

    __tablename__ = "goal_progress"

    id = Column(String, primary_key=True)
    goal_id = Column(String, ForeignKey("client_goals.id"), nullable=False)
    recorded_by = Column(String, nullable=False)
    value = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_goal_progress_goal_recorded", "goal_id", "recorded_at", "created_at", "id"),
    )

    def to_entity(self) -> GoalProgressEntity:
        """Convert to domain entity."""
        return GoalProgressEntity(
            id=self.id,
            goal_id=self.goal_id,
            recorded_by=self.recorded_by,
            value=self.value,
            notes=self.notes,
            recorded_at=self.recorded_at,
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity: GoalProgressEntity) -> "GoalProgressModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            goal_id=entity.goal_id,
            recorded_by=entity.recorded_by,
            value=entity.value,
            notes=entity.notes,
            recorded_at=entity.recorded_at,
            created_at=entity.created_at,
        )
