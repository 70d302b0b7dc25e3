"""
Module: connectors.activity_log

Sinks for notification events: an in-memory activity log and a Redis Streams
publisher for deployments where the notification collaborator reads a stream.
"""

import asyncio
import json
import logging
from typing import Protocol

from models.events import NotificationEvent

logger = logging.getLogger(__name__)


class ActivityLog(Protocol):
    async def record(self, notification: NotificationEvent) -> None: ...


class InMemoryActivityLog:
    """Dummy activity log that keeps every notification in a list."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.entries: list[NotificationEvent] = []

    async def record(self, notification: NotificationEvent) -> None:
        await asyncio.sleep(self.latency)
        self.entries.append(notification)

    def for_organization(self, organization_id: str) -> list[NotificationEvent]:
        return [n for n in self.entries if n.organization_id == organization_id]


class RedisStreamActivityLog:
    """
    Appends notifications to a Redis stream, one stream per organization plus
    an all-organizations stream. Errors propagate so callers can record them.
    """

    def __init__(self, redis_client, stream_prefix: str = "activity-log", maxlen: int = 10000):
        self.redis = redis_client
        self.stream_prefix = stream_prefix
        self.maxlen = maxlen

    def stream_key(self, organization_id: str | None = None) -> str:
        return f"{self.stream_prefix}:{organization_id or 'all'}"

    async def record(self, notification: NotificationEvent) -> None:
        payload = {"data": json.dumps(notification.model_dump(mode="json"))}
        await self.redis.xadd(self.stream_key(notification.organization_id), payload, maxlen=self.maxlen)
        await self.redis.xadd(self.stream_key(), payload, maxlen=self.maxlen)
        logger.debug(f"Published {notification.activity_type.value} notification {notification.event_id} to Redis")
