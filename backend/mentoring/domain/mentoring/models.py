"""Mentoring relationship domain models."""
import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from mentoring.domain.common.types import generate_id, utcnow


class RelationshipStatus(str, enum.Enum):
    """Relationship lifecycle status."""
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


# Statuses covered by the one-open-relationship-per-pair rule.
OPEN_STATUSES = (RelationshipStatus.PENDING, RelationshipStatus.ACTIVE)

ALLOWED_TRANSITIONS: dict[RelationshipStatus, frozenset[RelationshipStatus]] = {
    RelationshipStatus.PENDING: frozenset({RelationshipStatus.ACTIVE, RelationshipStatus.ENDED}),
    RelationshipStatus.ACTIVE: frozenset({RelationshipStatus.PAUSED, RelationshipStatus.ENDED}),
    RelationshipStatus.PAUSED: frozenset({RelationshipStatus.ACTIVE, RelationshipStatus.ENDED}),
    RelationshipStatus.ENDED: frozenset(),
}


def can_transition(current: RelationshipStatus, target: RelationshipStatus) -> bool:
    """Return True if the lifecycle table allows current -> target."""
    return target in ALLOWED_TRANSITIONS[current]


class MentoringRelationship(BaseModel):
    """Mentoring relationship between a professional and a client."""

    id: str
    professional_id: str
    client_id: str
    status: RelationshipStatus
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls, professional_id: str, client_id: str, notes: Optional[str] = None
    ) -> "MentoringRelationship":
        """Create a new pending relationship."""
        now = utcnow()
        return cls(
            id=generate_id(),
            professional_id=professional_id,
            client_id=client_id,
            status=RelationshipStatus.PENDING,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

    def involves(self, identity_id: str) -> bool:
        """True if identity_id is either party."""
        return identity_id in (self.professional_id, self.client_id)

    @property
    def party_ids(self) -> tuple[str, str]:
        return (self.professional_id, self.client_id)


class RelationshipPatch(BaseModel):
    """Partial update for a relationship."""

    status: Optional[RelationshipStatus] = None
    notes: Optional[str] = None
    ended_at: Optional[datetime] = None


class ProfessionalStats(BaseModel):
    """Dashboard counters for a professional."""

    professional_id: str
    total_clients: int = 0
    active_clients: int = 0
    completed_goals: int = 0
