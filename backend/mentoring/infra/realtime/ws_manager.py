"""WebSocket bridge: forwards dispatcher events on subscribed topics to one connection."""
import logging
from typing import List

from fastapi import WebSocket

from mentoring.domain.common.events import RealtimeEvent
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher, SubscriptionHandle

logger = logging.getLogger(__name__)

TOPIC_PREFIXES = ("conversation:", "identity:")


def is_valid_topic(topic: str) -> bool:
    """Only conversation:{id} and identity:{id} topics can be subscribed to."""
    return any(topic.startswith(prefix) and len(topic) > len(prefix) for prefix in TOPIC_PREFIXES)


class WebSocketConnection:
    """One client connection and its topic subscriptions."""

    def __init__(self, websocket: WebSocket, dispatcher: RealtimeDispatcher):
        self.websocket = websocket
        self.dispatcher = dispatcher
        self.handles: List[SubscriptionHandle] = []

    async def subscribe(self, topics: List[str]) -> None:
        for topic in topics:
            handle = await self.dispatcher.subscribe(topic, self._forward)
            self.handles.append(handle)
        logger.info(f"🔵 [WEBSOCKET] Connection subscribed to {topics}")

    async def _forward(self, event: RealtimeEvent) -> None:
        message = {"eventType": event.event_type.value, "topic": event.topic, "payload": event.payload}
        try:
            await self.websocket.send_json(message)
        except (RuntimeError, ConnectionError) as e:
            # Connection closed; the route's finally block unsubscribes.
            logger.warning(f"⚠️ [WEBSOCKET] Connection closed while sending {event.event_type.value}: {e}")

    async def close(self) -> None:
        """Unsubscribe every topic. Idempotent."""
        handles, self.handles = self.handles, []
        for handle in handles:
            await self.dispatcher.unsubscribe(handle)
        if handles:
            logger.info(f"🔌 [WEBSOCKET] Connection unsubscribed from {len(handles)} topics")
