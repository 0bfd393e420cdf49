"""Client goal domain models."""
import enum
import math
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mentoring.domain.common.types import generate_id, utcnow


class GoalType(str, enum.Enum):
    """Goal category."""
    WEIGHT_LOSS = "weight_loss"
    WEIGHT_GAIN = "weight_gain"
    MUSCLE_GAIN = "muscle_gain"
    HEALTH_IMPROVEMENT = "health_improvement"
    NUTRITION_EDUCATION = "nutrition_education"
    CUSTOM = "custom"


class GoalStatus(str, enum.Enum):
    """Goal status. Any status may follow any other."""
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class GoalPriority(str, enum.Enum):
    """Goal priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalAttributes(BaseModel):
    """Caller-supplied fields for a new goal. current_value is never accepted."""

    model_config = ConfigDict(extra="ignore")

    goal_type: GoalType = GoalType.CUSTOM
    title: str = Field(min_length=1)
    description: Optional[str] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.ACTIVE
    priority: GoalPriority = GoalPriority.MEDIUM


class GoalPatch(BaseModel):
    """Partial update for a goal."""

    model_config = ConfigDict(extra="forbid")

    goal_type: Optional[GoalType] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None
    target_date: Optional[date] = None
    status: Optional[GoalStatus] = None
    priority: Optional[GoalPriority] = None


class GoalProgress(BaseModel):
    """One append-only progress measurement."""

    id: str
    goal_id: str
    recorded_by: str
    value: float
    notes: Optional[str] = None
    recorded_at: datetime
    created_at: datetime

    @classmethod
    def create(
        cls,
        goal_id: str,
        recorded_by: str,
        value: float,
        notes: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> "GoalProgress":
        now = utcnow()
        return cls(
            id=generate_id(),
            goal_id=goal_id,
            recorded_by=recorded_by,
            value=value,
            notes=notes,
            recorded_at=recorded_at or now,
            created_at=now,
        )

    @property
    def order_key(self) -> tuple[datetime, datetime, str]:
        # recorded_at first, then insertion order
        return (self.recorded_at, self.created_at, self.id)


class ClientGoal(BaseModel):
    """Client goal. current_value and progress_percentage are derived from the progress log."""

    id: str
    client_id: str
    professional_id: Optional[str] = None
    goal_type: GoalType
    title: str
    description: Optional[str] = None
    target_value: Optional[float] = None
    current_value: float = 0.0
    unit: Optional[str] = None
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.ACTIVE
    priority: GoalPriority = GoalPriority.MEDIUM
    created_at: datetime
    updated_at: datetime
    progress_percentage: float = 0.0
    recent_progress: list[GoalProgress] = Field(default_factory=list)

    @classmethod
    def create(
        cls, client_id: str, professional_id: Optional[str], attrs: GoalAttributes
    ) -> "ClientGoal":
        """Create a new goal with no progress."""
        now = utcnow()
        return cls(
            id=generate_id(),
            client_id=client_id,
            professional_id=professional_id,
            created_at=now,
            updated_at=now,
            **attrs.model_dump(),
        )

    def with_progress(self, history: list[GoalProgress], recent_limit: int = 10) -> "ClientGoal":
        """Fold the progress log into current_value / progress_percentage (latest wins)."""
        ordered = sorted(history, key=lambda p: p.order_key, reverse=True)
        current = ordered[0].value if ordered else 0.0
        return self.model_copy(
            update={
                "current_value": current,
                "progress_percentage": progress_percentage(current, self.target_value),
                "recent_progress": ordered[:recent_limit],
            }
        )


def progress_percentage(current_value: float, target_value: Optional[float]) -> float:
    """100 * current / target clamped to [0, 100]; 0 when there is no usable target."""
    if not target_value or not math.isfinite(target_value):
        return 0.0
    pct = 100.0 * current_value / target_value
    if not math.isfinite(pct):
        return 0.0
    return max(0.0, min(100.0, pct))
