"""
事件总线集成

执行状态通过事件总线广播：
    execution.step_update   步骤快照
    execution.complete      执行最终状态（每次执行最后一条）
"""
import asyncio
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass, field
from datetime import datetime
import logging

from ..models.flow import utcnow


logger = logging.getLogger(__name__)


STEP_UPDATE_TOPIC = "execution.step_update"
EXECUTION_COMPLETE_TOPIC = "execution.complete"


@dataclass
class Event:
    """事件对象"""
    topic: str
    payload: Any
    timestamp: datetime = field(default_factory=utcnow)
    headers: Dict[str, str] = field(default_factory=dict)


class EventBus:
    """进程内事件总线

    publish 按订阅顺序依次通知；publish_nowait 将事件放入队列，由后台任务按入队顺序分发。
    """

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None

    def subscribe(self, topic: str, handler: Callable):
        """订阅事件"""
        self.subscribers.setdefault(topic, []).append(handler)
        logger.debug(f"Subscribed to topic '{topic}'")

    def unsubscribe(self, topic: str, handler: Callable):
        """取消订阅"""
        handlers = self.subscribers.get(topic)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self.subscribers[topic]
        logger.debug(f"Unsubscribed from topic '{topic}'")

    async def publish(self, topic: str, payload: Any, headers: Dict[str, str] = None):
        """发布事件并等待所有订阅者处理完成"""
        event = Event(topic=topic, payload=payload, headers=headers or {})
        subscribers = list(self.subscribers.get(topic, []))

        for subscriber in subscribers:
            await self._notify_subscriber(subscriber, event)

        logger.debug(f"Published event to topic '{topic}' with {len(subscribers)} subscribers")

    def publish_nowait(self, topic: str, payload: Any, headers: Dict[str, str] = None):
        """发布事件但不等待（需在事件循环中调用）"""
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())
        self._queue.put_nowait((topic, payload, headers))

    async def drain(self):
        """等待队列中的事件全部分发完毕"""
        if self._queue is not None:
            await self._queue.join()

    async def close(self):
        """分发剩余事件并停止后台任务"""
        await self.drain()
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

    async def _dispatch_loop(self):
        while True:
            topic, payload, headers = await self._queue.get()
            try:
                await self.publish(topic, payload, headers)
            finally:
                self._queue.task_done()

    async def _notify_subscriber(self, subscriber: Callable, event: Event):
        """通知订阅者，订阅者异常只记录不抛出"""
        try:
            result = subscriber(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error notifying subscriber for topic '{event.topic}': {e}", exc_info=True)
