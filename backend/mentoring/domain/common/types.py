"""Common domain types."""
from datetime import datetime, timezone
from uuid import uuid4


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def conversation_topic(conversation_id: str) -> str:
    """Realtime topic for a conversation's message stream."""
    return f"conversation:{conversation_id}"


def identity_topic(identity_id: str) -> str:
    """Realtime topic for an identity's relationship/conversation list changes."""
    return f"identity:{identity_id}"
