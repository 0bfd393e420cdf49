"""Goal ledger services."""
import logging
import math
from datetime import datetime
from typing import Any, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from mentoring.domain.common.errors import NotFoundError, ValidationError
from mentoring.domain.common.events import EventPublisher, EventType, build_event
from mentoring.domain.common.types import identity_topic, utcnow
from mentoring.domain.goals.models import ClientGoal, GoalAttributes, GoalPatch, GoalProgress

logger = logging.getLogger(__name__)

# Patch fields that map to NOT NULL columns.
REQUIRED_PATCH_FIELDS = ("title", "goal_type", "status", "priority")


class GoalRepository(Protocol):
    """Goal repository protocol."""

    async def create(self, goal: ClientGoal) -> ClientGoal:
        """Create a new goal."""
        ...

    async def get_by_id(self, goal_id: str) -> Optional[ClientGoal]:
        """Get goal by ID (without derived fields)."""
        ...

    async def update(self, goal_id: str, values: dict[str, Any]) -> Optional[ClientGoal]:
        """Update goal columns. None when the goal does not exist."""
        ...

    async def list_for_client(
        self, client_id: str, professional_id: Optional[str] = None
    ) -> list[ClientGoal]:
        """Goals for a client, newest first, optionally narrowed to one professional."""
        ...

    async def append_progress(self, progress: GoalProgress) -> GoalProgress:
        """Append a progress entry."""
        ...

    async def list_recent_progress(self, goal_id: str, limit: int) -> list[GoalProgress]:
        """Most recent progress entries, newest first."""
        ...

    async def count_completed_for_professional(self, professional_id: str) -> int:
        """Completed goals supervised by a professional."""
        ...


class GoalService:
    """Goal ledger."""

    def __init__(
        self,
        goal_repo: GoalRepository,
        publisher: Optional[EventPublisher] = None,
        recent_progress_limit: int = 10,
    ):
        self.goal_repo = goal_repo
        self.publisher = publisher
        self.recent_progress_limit = recent_progress_limit

    async def create_goal(
        self, client_id: str, professional_id: Optional[str] = None, **attrs: Any
    ) -> ClientGoal:
        """Create a goal. Its current value starts at 0 whatever the caller passes."""
        if not client_id:
            raise ValidationError("client_id is required")
        try:
            attributes = GoalAttributes(**attrs)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        goal = await self.goal_repo.create(ClientGoal.create(client_id, professional_id, attributes))
        logger.info(f"✅ [GOAL] Created goal {goal.id} for client {client_id}")
        goal = goal.with_progress([], self.recent_progress_limit)
        await self._publish(goal, EventType.GOAL_CREATED, goal)
        return goal

    async def get_goal(self, goal_id: str) -> ClientGoal:
        """Get a goal with its derived progress fields."""
        goal = await self.goal_repo.get_by_id(goal_id)
        if not goal:
            raise NotFoundError("Goal", goal_id)
        return await self._enrich(goal)

    async def update_goal(self, goal_id: str, patch: GoalPatch) -> ClientGoal:
        """Apply a patch. Status changes are unrestricted."""
        values = patch.model_dump(exclude_unset=True)
        for name in REQUIRED_PATCH_FIELDS:
            if name in values and not values[name]:
                raise ValidationError(f"{name} cannot be empty")
        values["updated_at"] = utcnow()

        goal = await self.goal_repo.update(goal_id, values)
        if not goal:
            raise NotFoundError("Goal", goal_id)
        goal = await self._enrich(goal)
        await self._publish(goal, EventType.GOAL_UPDATED, goal)
        return goal

    async def record_progress(
        self,
        goal_id: str,
        recorded_by: str,
        value: float,
        notes: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> GoalProgress:
        """Append a progress entry. The goal row itself is never touched."""
        if not recorded_by:
            raise ValidationError("recorded_by is required")
        if value is None or not math.isfinite(value):
            raise ValidationError("Progress value must be a finite number")
        goal = await self.goal_repo.get_by_id(goal_id)
        if not goal:
            raise NotFoundError("Goal", goal_id)

        progress = await self.goal_repo.append_progress(
            GoalProgress.create(goal_id, recorded_by, float(value), notes=notes, recorded_at=recorded_at)
        )
        logger.info(f"📈 [GOAL] Progress {progress.value} recorded on {goal_id} by {recorded_by}")
        await self._publish(goal, EventType.GOAL_PROGRESS_RECORDED, progress)
        return progress

    async def list_goals(self, client_id: str, professional_id: Optional[str] = None) -> list[ClientGoal]:
        """Goals for a client, each with current value, percentage and recent history."""
        goals = await self.goal_repo.list_for_client(client_id, professional_id)
        return [await self._enrich(goal) for goal in goals]

    async def _enrich(self, goal: ClientGoal) -> ClientGoal:
        history = await self.goal_repo.list_recent_progress(goal.id, self.recent_progress_limit)
        return goal.with_progress(history, self.recent_progress_limit)

    async def _publish(self, goal: ClientGoal, event_type: EventType, entity) -> None:
        if self.publisher is None:
            return
        identity_ids = [goal.client_id]
        if goal.professional_id:
            identity_ids.append(goal.professional_id)
        for identity_id in identity_ids:
            topic = identity_topic(identity_id)
            await self.publisher.publish(topic, build_event(event_type, topic, entity))
