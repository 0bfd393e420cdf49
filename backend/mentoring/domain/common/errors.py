"""Domain error types."""
from typing import Optional


class DomainError(Exception):
    """Base domain error."""
    pass


class NotFoundError(DomainError):
    """Resource not found."""
    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Malformed input (e.g. empty message content)."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictError(DomainError):
    """Uniqueness or stale-state compare-and-set violation."""
    def __init__(self, message: str, current_status: Optional[str] = None):
        self.message = message
        self.current_status = current_status
        super().__init__(message)


class InvalidTransitionError(DomainError):
    """Relationship status change not allowed by the lifecycle table."""
    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        self.message = f"Cannot move relationship from {current_status} to {requested_status}"
        super().__init__(self.message)


class PersistenceError(DomainError):
    """Durable store unavailable or failed. Never retried by the core.

    `content` carries the caller's original message text when a send failed,
    so it can be offered back for resubmission.
    """
    def __init__(self, message: str, content: Optional[str] = None):
        self.message = message
        self.content = content
        super().__init__(message)


class DispatchError(DomainError):
    """An event could not reach a subscriber. Logged only, never raised to publishers."""
    def __init__(self, topic: str, reason: str):
        self.topic = topic
        self.reason = reason
        super().__init__(f"Dispatch to {topic} failed: {reason}")


class NotConfiguredError(DomainError):
    """A required collaborator (store, dispatcher) was not wired at startup."""
    def __init__(self, component: str):
        self.component = component
        self.message = f"{component} is not configured"
        super().__init__(self.message)


class GenerationError(DomainError):
    """Text generation collaborator returned nothing usable."""
    def __init__(self, message: str = "Text generation failed"):
        self.message = message
        super().__init__(message)
