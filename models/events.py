"""
Data models for events published on the event bus.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import ActivityType, AgentType, LedgerEventType
from .inventory import InventoryItem

LEDGER_CHANGED = "inventory.changed"
NOTIFICATION_CREATED = "notification.created"


class InventoryEvent(BaseModel):
    """Base event for everything routed through the event bus."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    source: AgentType
    timestamp: datetime = Field(default_factory=datetime.now)


class LedgerChangeEvent(InventoryEvent):
    """
    Published once per committed ledger write with the before/after snapshots.
    ``old`` is None for inserts. ``sequence`` is the item version after the write,
    so consumers can verify per-item ordering.
    """

    event_type: str = LEDGER_CHANGED
    source: AgentType = AgentType.LEDGER
    item_id: str
    organization_id: str
    change_type: LedgerEventType
    old: InventoryItem | None = None
    new: InventoryItem
    sequence: int

    @property
    def ordering_key(self) -> str:
        return self.item_id


class NotificationEvent(InventoryEvent):
    """Activity-log entry handed to the external notification collaborator."""

    event_type: str = NOTIFICATION_CREATED
    organization_id: str
    activity_type: ActivityType
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
