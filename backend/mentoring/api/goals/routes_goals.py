"""Client goal routes."""
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict

from mentoring.api.deps import get_goal_service
from mentoring.domain.goals.models import (
    ClientGoal,
    GoalPatch,
    GoalPriority,
    GoalProgress,
    GoalStatus,
    GoalType,
)
from mentoring.domain.goals.services import GoalService

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateGoalRequest(BaseModel):
    """Create goal request. A current_value in the body is accepted and ignored."""

    model_config = ConfigDict(extra="ignore")

    client_id: str
    professional_id: Optional[str] = None
    goal_type: GoalType = GoalType.CUSTOM
    title: str
    description: Optional[str] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.ACTIVE
    priority: GoalPriority = GoalPriority.MEDIUM


class RecordProgressRequest(BaseModel):
    recorded_by: str
    value: float
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None


@router.post("", response_model=ClientGoal, status_code=status.HTTP_201_CREATED)
async def create_goal(
    request: CreateGoalRequest,
    service: GoalService = Depends(get_goal_service),
):
    """Create a goal for a client."""
    attrs = request.model_dump(exclude={"client_id", "professional_id"})
    return await service.create_goal(request.client_id, request.professional_id, **attrs)


@router.get("", response_model=list[ClientGoal])
async def list_goals(
    client: str,
    professional: Optional[str] = None,
    service: GoalService = Depends(get_goal_service),
):
    """Goals for a client with current value, percentage and recent progress."""
    return await service.list_goals(client, professional)


@router.get("/{goal_id}", response_model=ClientGoal)
async def get_goal(
    goal_id: str,
    service: GoalService = Depends(get_goal_service),
):
    return await service.get_goal(goal_id)


@router.patch("/{goal_id}", response_model=ClientGoal)
async def update_goal(
    goal_id: str,
    patch: GoalPatch,
    service: GoalService = Depends(get_goal_service),
):
    """Update goal fields. current_value is derived and cannot be set."""
    return await service.update_goal(goal_id, patch)


@router.post("/{goal_id}/progress", response_model=GoalProgress, status_code=status.HTTP_201_CREATED)
async def record_progress(
    goal_id: str,
    request: RecordProgressRequest,
    service: GoalService = Depends(get_goal_service),
):
    """Append a progress measurement."""
    return await service.record_progress(
        goal_id,
        request.recorded_by,
        request.value,
        notes=request.notes,
        recorded_at=request.recorded_at,
    )
