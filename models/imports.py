"""
Bulk import models: one ``ImportBatchLine`` per CSV row, the prepared plan
awaiting location confirmation, and the aggregate result.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import DuplicatePolicy
from .inventory import UNASSIGNED_LOCATION, InventoryItem


class ImportBatchLine(BaseModel):
    """Proposed item values parsed from one import row. Never persisted on its own."""

    row_number: int
    sku: str
    name: str
    description: str = ""
    category: str = "Uncategorized"
    picking_bin_quantity: int = 0
    overstock_quantity: int = 0
    reorder_level: int = 0
    picking_reorder_level: int = 0
    committed_stock: int = 0
    incoming_stock: int = 0
    unit_cost: float = 0.0
    retail_price: float = 0.0
    location: str = UNASSIGNED_LOCATION
    picking_bin_location: str = UNASSIGNED_LOCATION
    vendor_id: str | None = None
    barcode_url: str | None = None
    image_url: str | None = None
    auto_reorder_enabled: bool = False
    auto_reorder_quantity: int = 0

    @property
    def sku_key(self) -> str:
        return self.sku.strip().lower()

    @property
    def total_quantity(self) -> int:
        return self.picking_bin_quantity + self.overstock_quantity

    def item_fields(self) -> dict[str, Any]:
        """Every InventoryItem field this line carries, excluding identity."""
        return self.model_dump(exclude={"row_number"})

    def to_new_item(self, organization_id: str) -> InventoryItem:
        return InventoryItem(organization_id=organization_id, **self.item_fields())


class ClassifiedLine(BaseModel):
    """A batch line and, for duplicates, the existing item it matched."""

    line: ImportBatchLine
    existing: InventoryItem | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.existing is not None


class ImportPlan(BaseModel):
    """
    Output of the side-effect-free phases: classification and location discovery.
    When ``new_locations`` is non-empty the plan waits for operator confirmation.
    """

    plan_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    user_id: str | None = None
    policy: DuplicatePolicy
    new_lines: list[ClassifiedLine] = Field(default_factory=list)
    duplicate_lines: list[ClassifiedLine] = Field(default_factory=list)
    new_locations: list[str] = Field(default_factory=list)
    parse_errors: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.new_locations)

    def ordered_lines(self) -> list[ClassifiedLine]:
        """New and duplicate lines merged back into batch order."""
        return sorted(self.new_lines + self.duplicate_lines, key=lambda c: c.line.row_number)


class LocationConfirmationRequest(BaseModel):
    """Returned to the caller when the batch references unknown locations."""

    plan_id: str
    new_location_strings: list[str]


class ImportResult(BaseModel):
    inserted_count: int = 0
    updated_count: int = 0
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.errors and not self.cancelled

    @property
    def message(self) -> str:
        outcome = "cancelled" if self.cancelled else "complete"
        return (
            f"Bulk import {outcome}. Inserted {self.inserted_count} items, "
            f"updated {self.updated_count} items."
        )
