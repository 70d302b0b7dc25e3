"""
Asynchronous event bus and a keyed, ordered dispatcher for ledger changes.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from models.events import InventoryEvent

logger = logging.getLogger(__name__)

Callback = Callable[[InventoryEvent], Coroutine[Any, Any, None]]


def _callback_name(callback: Any) -> str:
    return getattr(callback, "__name__", type(callback).__name__)


class EventBus:
    """Simple in-process pub/sub keyed by ``event_type``."""

    def __init__(self):
        self.subscribers: dict[str, list[Callback]] = {}

    def subscribe(self, event_type: str, callback: Callback) -> None:
        """Subscribe to an event type."""
        if not callable(callback):
            raise TypeError("Callback must be a callable async function.")
        callbacks = self.subscribers.setdefault(event_type, [])
        if callback in callbacks:
            logger.warning(f"Callback {_callback_name(callback)} already subscribed to {event_type}")
            return
        callbacks.append(callback)
        logger.debug(f"Callback {_callback_name(callback)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, callback: Callback) -> None:
        """Unsubscribe a specific callback from an event type."""
        callbacks = self.subscribers.get(event_type)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            logger.warning(f"Callback {_callback_name(callback)} not found for event type {event_type}")
            return
        if not callbacks:
            del self.subscribers[event_type]

    async def publish(self, event: InventoryEvent) -> None:
        """Deliver an event to every subscriber; one failing subscriber never affects another."""
        if not isinstance(event, InventoryEvent):
            logger.error(f"Attempted to publish invalid event type: {type(event)}")
            return

        callbacks = list(self.subscribers.get(event.event_type, []))
        logger.debug(f"Event published: {event.event_type} from {event.source.value}")
        if not callbacks:
            return
        results = await asyncio.gather(*(cb(event) for cb in callbacks), return_exceptions=True)
        for callback, result in zip(callbacks, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Error in subscriber callback '{_callback_name(callback)}' for event {event.event_type}: {result}"
                )


class KeyedDispatcher:
    """
    Fire-and-forget delivery of events to an EventBus, ordered per key.

    Events submitted under the same key are published one at a time in
    submission order; different keys are published concurrently. ``submit``
    never awaits, so a slow subscriber cannot hold up the producer.
    """

    def __init__(self, event_bus: EventBus, queue_size: int = 1000):
        self.event_bus = event_bus
        self.queue_size = queue_size
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self.dropped = 0

    @property
    def pending(self) -> int:
        return sum(q.qsize() for q in self._queues.values())

    def submit(self, key: str, event: InventoryEvent) -> None:
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue(maxsize=self.queue_size)
            self._queues[key] = queue
            self._workers[key] = asyncio.create_task(self._run(key, queue), name=f"dispatch-{key}")
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.error(f"Dispatch queue for {key} is full; dropping event {event.event_id}")

    async def _run(self, key: str, queue: asyncio.Queue) -> None:
        while True:
            try:
                event = queue.get_nowait()
            except asyncio.QueueEmpty:
                # No await between the empty check and removal, so submit() cannot race us.
                self._queues.pop(key, None)
                self._workers.pop(key, None)
                return
            try:
                await self.event_bus.publish(event)
            except Exception as e:
                logger.error(f"Failed to dispatch event {event.event_id} for {key}: {e}")
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every submitted event has been published."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
