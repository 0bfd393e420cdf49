"""Tests for the realtime dispatcher and its WebSocket bridge."""
import asyncio
import logging

import pytest

from mentoring.domain.common.events import EventType, RealtimeEvent
from mentoring.infra.realtime.dispatcher import RealtimeDispatcher
from mentoring.infra.realtime.ws_manager import WebSocketConnection, is_valid_topic


def make_event(topic: str, n: int = 0) -> RealtimeEvent:
    return RealtimeEvent(event_type=EventType.MESSAGE_CREATED, topic=topic, payload={"n": n})


async def test_events_delivered_in_publish_order(dispatcher, recorder):
    await dispatcher.subscribe("conversation:1", recorder)

    for i in range(20):
        await dispatcher.publish("conversation:1", make_event("conversation:1", i))
    await dispatcher.wait_idle()

    assert [e.payload["n"] for e in recorder.events] == list(range(20))


async def test_publish_only_reaches_matching_topic(dispatcher, recorder):
    await dispatcher.subscribe("conversation:1", recorder)

    await dispatcher.publish("conversation:2", make_event("conversation:2"))
    await dispatcher.wait_idle()

    assert recorder.events == []


async def test_publish_without_subscribers_is_noop(dispatcher):
    await dispatcher.publish("identity:nobody", make_event("identity:nobody"))
    assert dispatcher.subscriber_count("identity:nobody") == 0


async def test_failing_handler_does_not_affect_others(dispatcher, recorder, caplog):
    async def broken(event):
        raise RuntimeError("boom")

    await dispatcher.subscribe("conversation:1", broken)
    await dispatcher.subscribe("conversation:1", recorder)

    with caplog.at_level(logging.ERROR):
        await dispatcher.publish("conversation:1", make_event("conversation:1", 1))
        await dispatcher.publish("conversation:1", make_event("conversation:1", 2))
        await dispatcher.wait_idle()

    assert [e.payload["n"] for e in recorder.events] == [1, 2]
    assert "Dispatch to conversation:1 failed" in caplog.text


async def test_slow_subscriber_does_not_block_publisher(recorder):
    dispatcher = RealtimeDispatcher(queue_size=2)
    gate = asyncio.Event()

    async def slow(event):
        await gate.wait()

    await dispatcher.subscribe("conversation:1", slow)
    await dispatcher.subscribe("conversation:1", recorder)

    for i in range(5):
        await asyncio.wait_for(dispatcher.publish("conversation:1", make_event("conversation:1", i)), timeout=1)
        await asyncio.sleep(0)

    gate.set()
    await dispatcher.wait_idle()
    # the slow subscriber's queue overflowed; the fast one still got everything
    assert [e.payload["n"] for e in recorder.events] == list(range(5))
    await dispatcher.aclose()


async def test_full_queue_drops_for_that_subscriber_only():
    dispatcher = RealtimeDispatcher(queue_size=1)
    gate = asyncio.Event()
    received = []

    async def slow(event):
        await gate.wait()
        received.append(event.payload["n"])

    handle = await dispatcher.subscribe("conversation:1", slow)
    await dispatcher.publish("conversation:1", make_event("conversation:1", 0))
    await asyncio.sleep(0)  # delivery task takes event 0
    await dispatcher.publish("conversation:1", make_event("conversation:1", 1))
    await dispatcher.publish("conversation:1", make_event("conversation:1", 2))

    gate.set()
    await dispatcher.wait_idle()

    assert received == [0, 1]
    assert handle.dropped == 1
    await dispatcher.aclose()


async def test_unsubscribe_is_idempotent(dispatcher, recorder):
    handle = await dispatcher.subscribe("identity:C1", recorder)

    await dispatcher.unsubscribe(handle)
    await dispatcher.unsubscribe(handle)
    await dispatcher.publish("identity:C1", make_event("identity:C1"))

    assert dispatcher.subscriber_count("identity:C1") == 0
    assert recorder.events == []


async def test_subscribe_after_close_fails():
    dispatcher = RealtimeDispatcher()
    await dispatcher.aclose()

    async def handler(event):
        pass

    with pytest.raises(RuntimeError):
        await dispatcher.subscribe("identity:C1", handler)


def test_event_wire_shape():
    event = make_event("conversation:7", 3)

    message = event.to_message()
    restored = RealtimeEvent.from_message(message)

    assert message["eventType"] == "MessageCreated"
    assert message["topic"] == "conversation:7"
    assert message["payload"] == {"n": 3}
    assert restored.event_type == EventType.MESSAGE_CREATED
    assert restored.occurred_at == event.occurred_at


@pytest.mark.parametrize(
    "topic,valid",
    [
        ("conversation:abc", True),
        ("identity:C1", True),
        ("conversation:", False),
        ("room:1", False),
        ("", False),
    ],
)
def test_topic_validation(topic, valid):
    assert is_valid_topic(topic) is valid


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("WebSocket is not connected")
        self.sent.append(message)


async def test_websocket_connection_forwards_and_unsubscribes(dispatcher):
    ws = FakeWebSocket()
    connection = WebSocketConnection(ws, dispatcher)
    await connection.subscribe(["conversation:1", "identity:C1"])

    await dispatcher.publish("identity:C1", make_event("identity:C1", 5))
    await dispatcher.wait_idle()
    await connection.close()
    await connection.close()
    await dispatcher.publish("identity:C1", make_event("identity:C1", 6))

    assert ws.sent == [{"eventType": "MessageCreated", "topic": "identity:C1", "payload": {"n": 5}}]
    assert dispatcher.subscriber_count("conversation:1") == 0
    assert dispatcher.subscriber_count("identity:C1") == 0


async def test_websocket_send_failure_is_contained(dispatcher):
    connection = WebSocketConnection(FakeWebSocket(fail=True), dispatcher)
    await connection.subscribe(["conversation:1"])

    await dispatcher.publish("conversation:1", make_event("conversation:1"))
    await dispatcher.wait_idle()

    await connection.close()


async def test_topic_locks_released_after_unsubscribe(dispatcher, recorder):
    for i in range(100):
        handle = await dispatcher.subscribe(f"conversation:{i}", recorder)
        await dispatcher.unsubscribe(handle)

    assert dispatcher._subscriptions == {}
    assert len(dispatcher._topic_locks) == 0


async def test_cancelled_subscribe_leaves_no_delivery_task(dispatcher, recorder):
    lock = dispatcher._lock_for("identity:C1")
    async with lock:
        pending = asyncio.create_task(dispatcher.subscribe("identity:C1", recorder))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

    leaked = [t for t in asyncio.all_tasks() if t.get_name() == "realtime:identity:C1"]
    assert leaked == []
    assert dispatcher.subscriber_count("identity:C1") == 0
