"""Realtime event envelope and publisher protocol."""
import enum
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field

from mentoring.domain.common.types import utcnow


class EventType(str, enum.Enum):
    """Events published to realtime topics."""
    RELATIONSHIP_CREATED = "RelationshipCreated"
    RELATIONSHIP_UPDATED = "RelationshipUpdated"
    CONVERSATION_CREATED = "ConversationCreated"
    CONVERSATION_UPDATED = "ConversationUpdated"
    MESSAGE_CREATED = "MessageCreated"
    MESSAGE_READ = "MessageRead"
    GOAL_CREATED = "GoalCreated"
    GOAL_UPDATED = "GoalUpdated"
    GOAL_PROGRESS_RECORDED = "GoalProgressRecorded"


class RealtimeEvent(BaseModel):
    """A single event delivered to topic subscribers."""

    event_type: EventType
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utcnow)

    def to_message(self) -> dict[str, Any]:
        """Wire shape sent to WebSocket clients and over the Redis channel."""
        return {
            "eventType": self.event_type.value,
            "topic": self.topic,
            "payload": self.payload,
            "occurredAt": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> "RealtimeEvent":
        return cls(
            event_type=EventType(data["eventType"]),
            topic=data["topic"],
            payload=data.get("payload") or {},
            occurred_at=datetime.fromisoformat(data["occurredAt"]) if data.get("occurredAt") else utcnow(),
        )


class EventPublisher(Protocol):
    """Anything services can publish realtime events through."""

    async def publish(self, topic: str, event: RealtimeEvent) -> None:
        """Fire-and-forget publish; must not raise on subscriber failure."""
        ...


def build_event(event_type: EventType, topic: str, entity: BaseModel) -> RealtimeEvent:
    """Wrap a domain entity as an event payload (JSON-safe)."""
    return RealtimeEvent(
        event_type=event_type,
        topic=topic,
        payload=entity.model_dump(mode="json"),
    )
