"""
Base class for reconciliation agents.
"""

import asyncio
import logging
from typing import Any

from config.config import ReconciliationConfig
from connectors.activity_log import ActivityLog
from models.enums import ActivityType, AgentType
from models.errors import PersistenceFailure
from models.events import NotificationEvent
from utils.event_bus import EventBus

logger = logging.getLogger(__name__)


class BaseAgent:
    """Shared identity, event publication and notification emission for agents."""

    def __init__(
        self,
        agent_id: str,
        agent_type: AgentType,
        event_bus: EventBus,
        activity_log: ActivityLog | None = None,
        config: ReconciliationConfig | None = None,
    ):
        self.agent_id = agent_id
        self.agent_type = agent_type
        self.event_bus = event_bus
        self.activity_log = activity_log
        self.config = config or ReconciliationConfig()

    # Subclasses override this to register for specific events
    def register_event_handlers(self) -> None:
        """Register for events this agent cares about"""
        pass

    async def notify(
        self,
        organization_id: str,
        activity_type: ActivityType,
        description: str,
        details: dict[str, Any],
        user_id: str | None = None,
    ) -> NotificationEvent:
        """
        Write a notification to the activity log, then publish it on the bus.

        Raises PersistenceFailure if the activity log write fails or times out.
        """
        notification = NotificationEvent(
            source=self.agent_type,
            organization_id=organization_id,
            activity_type=activity_type,
            description=description,
            details=details,
            user_id=user_id,
        )
        if self.activity_log is not None:
            try:
                await asyncio.wait_for(
                    self.activity_log.record(notification),
                    timeout=self.config.persistence_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise PersistenceFailure("Timed out writing notification", stage="notification") from e
            except PersistenceFailure:
                raise
            except Exception as e:
                raise PersistenceFailure(f"Failed to write notification: {e}", stage="notification") from e
        await self.event_bus.publish(notification)
        logger.debug(f"{self.agent_id} emitted {activity_type.value} notification {notification.event_id}")
        return notification
