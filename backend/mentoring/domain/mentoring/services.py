"""Mentoring relationship domain services."""
import logging
from typing import Any, Optional, Protocol

from mentoring.domain.common.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from mentoring.domain.common.events import EventPublisher, EventType, build_event
from mentoring.domain.common.types import identity_topic, utcnow
from mentoring.domain.mentoring.models import (
    MentoringRelationship,
    ProfessionalStats,
    RelationshipPatch,
    RelationshipStatus,
    can_transition,
)

logger = logging.getLogger(__name__)


class RelationshipRepository(Protocol):
    """Relationship repository protocol."""

    async def create(self, relationship: MentoringRelationship) -> MentoringRelationship:
        """Insert a relationship. Raises ConflictError if the pair already has an open one."""
        ...

    async def get_by_id(self, relationship_id: str) -> Optional[MentoringRelationship]:
        """Get relationship by ID."""
        ...

    async def find_open_for_pair(
        self, professional_id: str, client_id: str
    ) -> Optional[MentoringRelationship]:
        """Return the pending/active relationship for the pair, if any."""
        ...

    async def list_by_identity(self, identity_id: str) -> list[MentoringRelationship]:
        """List relationships where identity is either party, newest first."""
        ...

    async def compare_and_set(
        self,
        relationship_id: str,
        expected_status: RelationshipStatus,
        values: dict[str, Any],
    ) -> Optional[MentoringRelationship]:
        """Apply values only if status still equals expected_status. None when stale or missing."""
        ...

    async def count_clients(self, professional_id: str) -> tuple[int, int]:
        """Return (distinct clients, distinct clients with an active relationship)."""
        ...


class CompletedGoalCounter(Protocol):
    """The slice of the goal repository the stats read model needs."""

    async def count_completed_for_professional(self, professional_id: str) -> int:
        ...


class RelationshipService:
    """Relationship lifecycle service."""

    def __init__(
        self,
        relationship_repo: RelationshipRepository,
        publisher: Optional[EventPublisher] = None,
        goal_counter: Optional[CompletedGoalCounter] = None,
    ):
        self.relationship_repo = relationship_repo
        self.publisher = publisher
        self.goal_counter = goal_counter

    async def create_relationship(
        self, professional_id: str, client_id: str, notes: Optional[str] = None
    ) -> MentoringRelationship:
        """Create a pending relationship; Conflict if the pair already has an open one."""
        if not professional_id or not client_id:
            raise ValidationError("professional_id and client_id are required")
        if professional_id == client_id:
            raise ValidationError("A professional cannot mentor themselves")

        logger.info(f"🔵 [RELATIONSHIP] Creating relationship: professional={professional_id}, client={client_id}")
        existing = await self.relationship_repo.find_open_for_pair(professional_id, client_id)
        if existing:
            raise ConflictError(
                f"Relationship {existing.id} is already {existing.status.value} for this pair",
                current_status=existing.status.value,
            )

        # The store's unique index still decides if two creates race past the check above.
        created = await self.relationship_repo.create(
            MentoringRelationship.create(professional_id, client_id, notes=notes)
        )
        logger.info(f"✅ [RELATIONSHIP] Relationship created: id={created.id}, status={created.status.value}")
        await self._publish(created, EventType.RELATIONSHIP_CREATED)
        return created

    async def get_relationship(self, relationship_id: str) -> MentoringRelationship:
        """Get relationship by ID."""
        relationship = await self.relationship_repo.get_by_id(relationship_id)
        if not relationship:
            raise NotFoundError("Relationship", relationship_id)
        return relationship

    async def list_relationships(self, identity_id: str) -> list[MentoringRelationship]:
        """List relationships where identity is either party, newest first."""
        return await self.relationship_repo.list_by_identity(identity_id)

    async def update_relationship(
        self,
        relationship_id: str,
        patch: RelationshipPatch,
        expected_status: Optional[RelationshipStatus] = None,
    ) -> MentoringRelationship:
        """Apply a patch, enforcing the lifecycle table and compare-and-set on status.

        expected_status lets a caller pin the status it last saw; a mismatch is a Conflict.
        """
        current = await self.get_relationship(relationship_id)
        if expected_status is not None and expected_status != current.status:
            raise ConflictError(
                f"Relationship {relationship_id} is {current.status.value}, not {expected_status.value}",
                current_status=current.status.value,
            )

        values: dict[str, Any] = {"updated_at": utcnow()}
        if patch.notes is not None:
            values["notes"] = patch.notes

        target = patch.status
        if target is not None:
            if not can_transition(current.status, target):
                logger.warning(
                    f"⚠️ [RELATIONSHIP] Rejected transition {current.status.value} -> {target.value} for {relationship_id}"
                )
                raise InvalidTransitionError(current.status.value, target.value)
            values["status"] = target
            if target == RelationshipStatus.ENDED:
                values["ended_at"] = patch.ended_at or current.ended_at or utcnow()
            elif target == RelationshipStatus.ACTIVE and current.started_at is None:
                values["started_at"] = utcnow()
        elif patch.ended_at is not None:
            if current.status != RelationshipStatus.ENDED:
                raise ValidationError("ended_at can only be set when the relationship is ending or ended")
            values["ended_at"] = patch.ended_at

        updated = await self._compare_and_set(current, values)
        if target is not None:
            logger.info(f"✅ [RELATIONSHIP] {relationship_id}: {current.status.value} -> {updated.status.value}")
        await self._publish(updated, EventType.RELATIONSHIP_UPDATED)
        return updated

    async def accept(self, relationship_id: str) -> MentoringRelationship:
        return await self.update_relationship(relationship_id, RelationshipPatch(status=RelationshipStatus.ACTIVE))

    async def pause(self, relationship_id: str) -> MentoringRelationship:
        return await self.update_relationship(relationship_id, RelationshipPatch(status=RelationshipStatus.PAUSED))

    async def resume(self, relationship_id: str) -> MentoringRelationship:
        return await self.update_relationship(relationship_id, RelationshipPatch(status=RelationshipStatus.ACTIVE))

    async def end(self, relationship_id: str) -> MentoringRelationship:
        return await self.update_relationship(relationship_id, RelationshipPatch(status=RelationshipStatus.ENDED))

    async def activate_if_pending(self, relationship: MentoringRelationship) -> MentoringRelationship:
        """First message on a pending relationship makes it active.

        Losing the race to a concurrent activation is fine: the relationship is
        re-read and returned as it is now.
        """
        if relationship.status != RelationshipStatus.PENDING:
            return relationship
        now = utcnow()
        values = {
            "status": RelationshipStatus.ACTIVE,
            "started_at": relationship.started_at or now,
            "updated_at": now,
        }
        updated = await self.relationship_repo.compare_and_set(
            relationship.id, RelationshipStatus.PENDING, values
        )
        if updated is None:
            return await self.get_relationship(relationship.id)
        logger.info(f"✅ [RELATIONSHIP] {relationship.id} activated by first message")
        await self._publish(updated, EventType.RELATIONSHIP_UPDATED)
        return updated

    async def get_professional_stats(self, professional_id: str) -> ProfessionalStats:
        """Client and goal counters for a professional's dashboard."""
        total, active = await self.relationship_repo.count_clients(professional_id)
        completed = 0
        if self.goal_counter is not None:
            completed = await self.goal_counter.count_completed_for_professional(professional_id)
        return ProfessionalStats(
            professional_id=professional_id,
            total_clients=total,
            active_clients=active,
            completed_goals=completed,
        )

    async def _compare_and_set(
        self, current: MentoringRelationship, values: dict[str, Any]
    ) -> MentoringRelationship:
        try:
            updated = await self.relationship_repo.compare_and_set(current.id, current.status, values)
        except ConflictError as e:
            # Open-pair index rejected the move; the row itself is unchanged.
            if e.current_status is None:
                e.current_status = current.status.value
            raise
        if updated is not None:
            return updated
        actual = await self.relationship_repo.get_by_id(current.id)
        if actual is None:
            raise NotFoundError("Relationship", current.id)
        raise ConflictError(
            f"Relationship {current.id} changed concurrently (now {actual.status.value})",
            current_status=actual.status.value,
        )

    async def _publish(self, relationship: MentoringRelationship, event_type: EventType) -> None:
        if self.publisher is None:
            return
        for identity_id in relationship.party_ids:
            topic = identity_topic(identity_id)
            await self.publisher.publish(topic, build_event(event_type, topic, relationship))
