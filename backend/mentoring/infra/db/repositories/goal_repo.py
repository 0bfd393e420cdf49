"""Client goal repository implementation."""
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentoring.domain.goals.models import ClientGoal, GoalProgress, GoalStatus
from mentoring.domain.goals.services import GoalRepository
from mentoring.infra.db.models.goal import ClientGoalModel, GoalProgressModel
from mentoring.infra.db.repositories.errors import store_errors


class GoalRepositoryImpl(GoalRepository):
    """Goal repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, goal: ClientGoal) -> ClientGoal:
        """Create a new goal."""
        model = ClientGoalModel.from_entity(goal)
        async with store_errors(self.session, "Create goal"):
            self.session.add(model)
            await self.session.commit()
        return model.to_entity()

    async def get_by_id(self, goal_id: str) -> Optional[ClientGoal]:
        async with store_errors(self.session, "Load goal"):
            result = await self.session.execute(
                select(ClientGoalModel)
                .where(ClientGoalModel.id == goal_id)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def update(self, goal_id: str, values: dict[str, Any]) -> Optional[ClientGoal]:
        async with store_errors(self.session, "Update goal"):
            result = await self.session.execute(
                update(ClientGoalModel)
                .where(ClientGoalModel.id == goal_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(goal_id)

    async def list_for_client(
        self, client_id: str, professional_id: Optional[str] = None
    ) -> list[ClientGoal]:
        """Goals for a client, newest first."""
        query = select(ClientGoalModel).where(ClientGoalModel.client_id == client_id)
        if professional_id:
            query = query.where(ClientGoalModel.professional_id == professional_id)
        async with store_errors(self.session, "List goals"):
            result = await self.session.execute(
                query.order_by(ClientGoalModel.created_at.desc(), ClientGoalModel.id.desc())
                .execution_options(populate_existing=True)
            )
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def append_progress(self, progress: GoalProgress) -> GoalProgress:
        """Append a progress entry. Never updates the goal row."""
        model = GoalProgressModel.from_entity(progress)
        async with store_errors(self.session, "Record goal progress"):
            self.session.add(model)
            await self.session.commit()
        return model.to_entity()

    async def list_recent_progress(self, goal_id: str, limit: int) -> list[GoalProgress]:
        """Most recent entries by (recorded_at, created_at, id), newest first."""
        async with store_errors(self.session, "List goal progress"):
            result = await self.session.execute(
                select(GoalProgressModel)
                .where(GoalProgressModel.goal_id == goal_id)
                .order_by(
                    GoalProgressModel.recorded_at.desc(),
                    GoalProgressModel.created_at.desc(),
                    GoalProgressModel.id.desc(),
                )
                .limit(limit)
            )
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def count_completed_for_professional(self, professional_id: str) -> int:
        async with store_errors(self.session, "Count completed goals"):
            count = await self.session.scalar(
                select(func.count(ClientGoalModel.id)).where(
                    ClientGoalModel.professional_id == professional_id,
                    ClientGoalModel.status == GoalStatus.COMPLETED,
                )
            )
        return int(count or 0)
