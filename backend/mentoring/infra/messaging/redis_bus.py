"""Redis message bus used for cross-process realtime fan-out."""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from mentoring.domain.common.events import RealtimeEvent
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher

logger = logging.getLogger(__name__)


class RedisBus:
    """Redis message bus for pub/sub."""

    def __init__(self, url: str):
        self.url = url
        self._redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis."""
        self._redis = redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        if not self._redis:
            await self.connect()
        return bool(await self._redis.ping())

    async def publish(self, channel: str, message: dict):
        """Publish a message to a channel."""
        if not self._redis:
            await self.connect()
        await self._redis.publish(channel, json.dumps(message))

    async def subscribe_forever(
        self, channel: str, handler: Callable[[dict], Awaitable[None]]
    ) -> None:
        """Subscribe to a channel and call handler for each message. Runs until cancelled."""
        if not self._redis:
            await self.connect()
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        logger.info(f"✅ [REDIS] Subscribed to {channel}")
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg.get("type") == "message" and msg.get("data"):
                    try:
                        data = json.loads(msg["data"])
                        await handler(data)
                    except Exception as e:
                        logger.warning(f"⚠️ [REDIS] Dropped malformed message on {channel}: {e}")
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


class RedisFanoutPublisher:
    """Publishes through a Redis channel so every process's dispatcher sees the event.

    If Redis publishing fails the event is delivered to the local dispatcher only.
    """

    def __init__(self, bus: RedisBus, dispatcher: RealtimeDispatcher, channel: str):
        self.bus = bus
        self.dispatcher = dispatcher
        self.channel = channel

    async def publish(self, topic: str, event: RealtimeEvent) -> None:
        try:
            await self.bus.publish(self.channel, event.to_message())
        except Exception as e:
            logger.warning(f"⚠️ [REALTIME] Redis publish failed, delivering locally: {e}")
            await self.dispatcher.publish(topic, event)

    async def forward(self, data: dict) -> None:
        """Redis subscriber handler: hand a received event to the local dispatcher."""
        event = RealtimeEvent.from_message(data)
        await self.dispatcher.publish(event.topic, event)
