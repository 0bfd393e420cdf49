"""Topic-based realtime dispatcher: one bounded queue and delivery task per subscription."""
import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from mentoring.domain.common.errors import DispatchError
from mentoring.domain.common.events import RealtimeEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[RealtimeEvent], Awaitable[None]]


@dataclass(eq=False)
class SubscriptionHandle:
    """Returned by subscribe(); pass back to unsubscribe()."""

    topic: str
    handler: EventHandler
    queue: "asyncio.Queue[RealtimeEvent]"
    task: Optional["asyncio.Task[None]"] = None
    active: bool = True
    dropped: int = field(default=0)


class RealtimeDispatcher:
    """In-process pub/sub keyed by topic.

    publish() only enqueues; handlers run on each subscription's own task, so a
    slow or failing subscriber never blocks the publisher or its neighbours.
    Events on one topic reach each subscriber in publish order.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscriptions: Dict[str, List[SubscriptionHandle]] = {}
        # Locks live only while a subscribe/unsubscribe holds them.
        self._topic_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._closed = False

    def _lock_for(self, topic: str) -> asyncio.Lock:
        lock = self._topic_locks.get(topic)
        if lock is None:
            lock = asyncio.Lock()
            self._topic_locks[topic] = lock
        return lock

    async def subscribe(self, topic: str, handler: EventHandler) -> SubscriptionHandle:
        """Register handler for topic and start its delivery loop."""
        if self._closed:
            raise RuntimeError("Dispatcher is closed")
        handle = SubscriptionHandle(topic=topic, handler=handler, queue=asyncio.Queue(maxsize=self.queue_size))
        async with self._lock_for(topic):
            self._subscriptions.setdefault(topic, []).append(handle)
            handle.task = asyncio.create_task(self._deliver(handle), name=f"realtime:{topic}")
        logger.debug(f"[REALTIME] Subscribed to {topic} ({self.subscriber_count(topic)} subscribers)")
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Remove a subscription. Safe to call twice or after the connection dropped."""
        if not handle.active:
            return
        handle.active = False
        async with self._lock_for(handle.topic):
            subscribers = self._subscriptions.get(handle.topic)
            if subscribers and handle in subscribers:
                subscribers.remove(handle)
                if not subscribers:
                    del self._subscriptions[handle.topic]
        if handle.task is not None and handle.task is not asyncio.current_task():
            handle.task.cancel()
            try:
                await handle.task
            except asyncio.CancelledError:
                pass
        logger.debug(f"[REALTIME] Unsubscribed from {handle.topic}")

    async def publish(self, topic: str, event: RealtimeEvent) -> None:
        """Enqueue event for every current subscriber of topic. Never raises for subscriber failures."""
        subscribers = list(self._subscriptions.get(topic, ()))
        if not subscribers:
            return
        for handle in subscribers:
            if not handle.active:
                continue
            try:
                handle.queue.put_nowait(event)
            except asyncio.QueueFull:
                handle.dropped += 1
                error = DispatchError(topic, f"subscriber queue full, dropped {event.event_type.value}")
                logger.warning(f"⚠️ [REALTIME] {error}")
        logger.debug(f"[REALTIME] {event.event_type.value} -> {topic} ({len(subscribers)} subscribers)")

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    async def wait_idle(self) -> None:
        """Wait until every queued event has been handled."""
        handles = [h for subscribers in list(self._subscriptions.values()) for h in subscribers]
        await asyncio.gather(*(h.queue.join() for h in handles))

    async def aclose(self) -> None:
        """Cancel every delivery loop."""
        self._closed = True
        handles = [h for subscribers in list(self._subscriptions.values()) for h in subscribers]
        for handle in handles:
            await self.unsubscribe(handle)
        logger.info("🔌 [REALTIME] Dispatcher closed")

    async def _deliver(self, handle: SubscriptionHandle) -> None:
        while True:
            event = await handle.queue.get()
            try:
                await handle.handler(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = DispatchError(handle.topic, f"handler raised {type(e).__name__}: {e}")
                logger.error(f"❌ [REALTIME] {error}", exc_info=True)
            finally:
                handle.queue.task_done()
