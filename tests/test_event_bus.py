"""
事件总线测试
"""
import pytest

from flow_runtime.integrations import EventBus


@pytest.mark.asyncio
async def test_publish_notifies_in_subscription_order():
    bus = EventBus()
    calls = []

    async def async_handler(event):
        calls.append(("async", event.payload))

    bus.subscribe("topic", lambda event: calls.append(("sync", event.payload)))
    bus.subscribe("topic", async_handler)

    await bus.publish("topic", 1)

    assert calls == [("sync", 1), ("async", 1)]


@pytest.mark.asyncio
async def test_subscriber_errors_are_isolated():
    bus = EventBus()
    calls = []

    def failing(event):
        raise RuntimeError("boom")

    bus.subscribe("topic", failing)
    bus.subscribe("topic", lambda event: calls.append(event.payload))

    await bus.publish("topic", "ok")

    assert calls == ["ok"]


@pytest.mark.asyncio
async def test_publish_nowait_preserves_order():
    bus = EventBus()
    received = []
    bus.subscribe("a", lambda event: received.append(event.payload))
    bus.subscribe("b", lambda event: received.append(event.payload))

    for i in range(5):
        bus.publish_nowait("a" if i % 2 else "b", i)
    await bus.drain()

    assert received == [0, 1, 2, 3, 4]
    await bus.close()


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    received = []

    def handler(event):
        received.append(event.payload)

    bus.subscribe("topic", handler)
    bus.unsubscribe("topic", handler)
    await bus.publish("topic", 1)

    assert received == []
    assert "topic" not in bus.subscribers
