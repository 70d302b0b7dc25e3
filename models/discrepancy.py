"""
Discrepancy data models: the durable record of a cycle-count mismatch and the
request/response shapes used by the reconciler.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import DiscrepancyStatus, LocationType


class DiscrepancyRecord(BaseModel):
    """
    A recorded mismatch between system and counted quantity.

    Immutable once created; only ``status`` moves from pending to resolved,
    and that is done by replacing the stored record with ``mark_resolved()``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    item_id: str
    location_string: str
    location_type: LocationType
    original_quantity: int
    counted_quantity: int
    difference: int
    reason: str
    reported_by: str
    status: DiscrepancyStatus = DiscrepancyStatus.PENDING
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def is_pending(self) -> bool:
        return self.status == DiscrepancyStatus.PENDING

    def mark_resolved(self) -> "DiscrepancyRecord":
        return self.model_copy(update={"status": DiscrepancyStatus.RESOLVED})


class DiscrepancyRequest(BaseModel):
    """Physical count submitted by a cycle-count tool."""

    item_id: str
    location_string: str
    location_type: str
    counted_quantity: int
    reason: str = ""


class DiscrepancyResponse(BaseModel):
    created: bool
    message: str
    discrepancy: DiscrepancyRecord | None = None
    inventory_updated: bool = False
    notification: str | None = None
