"""
Inventory data models: items with dual-location stock, storage locations,
and stock movement audit entries.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .enums import LocationType, MovementType, StockStatus

UNASSIGNED_LOCATION = "Unassigned"


class InventoryItem(BaseModel):
    """
    Immutable snapshot of an inventory item.

    Stock is tracked in two independent sub-quantities (picking bin and
    overstock); ``total_quantity`` and ``status`` are always derived from them.
    New snapshots are produced with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    sku: str
    name: str
    description: str = ""
    category: str = "Uncategorized"
    picking_bin_quantity: int = Field(default=0, ge=0)
    overstock_quantity: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    picking_reorder_level: int = Field(default=0, ge=0)
    committed_stock: int = Field(default=0, ge=0)
    incoming_stock: int = Field(default=0, ge=0)
    unit_cost: float = Field(default=0.0, ge=0)
    retail_price: float = Field(default=0.0, ge=0)
    location: str = UNASSIGNED_LOCATION
    picking_bin_location: str = UNASSIGNED_LOCATION
    vendor_id: str | None = None
    barcode_url: str | None = None
    image_url: str | None = None
    auto_reorder_enabled: bool = False
    auto_reorder_quantity: int = Field(default=0, ge=0)
    version: int = 0  # Incremented by the ledger on every committed write
    last_updated: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_auto_reorder(self) -> "InventoryItem":
        if self.auto_reorder_enabled and self.auto_reorder_quantity <= 0:
            raise ValueError("auto_reorder_quantity must be positive when auto reorder is enabled")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_quantity(self) -> int:
        return self.picking_bin_quantity + self.overstock_quantity

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> StockStatus:
        total = self.total_quantity
        if total == 0:
            return StockStatus.OUT_OF_STOCK
        if total <= self.reorder_level:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    @property
    def sku_key(self) -> str:
        return self.sku.strip().lower()

    def quantity_at(self, location_type: LocationType) -> int:
        """Return the sub-quantity tracked for the given location type."""
        if location_type == LocationType.PICKING_BIN:
            return self.picking_bin_quantity
        return self.overstock_quantity

    def location_for(self, location_type: LocationType) -> str:
        if location_type == LocationType.PICKING_BIN:
            return self.picking_bin_location
        return self.location

    def with_quantity(self, location_type: LocationType, quantity: int) -> "InventoryItem":
        """Return a copy with one sub-quantity replaced; everything else unchanged."""
        if location_type == LocationType.PICKING_BIN:
            return self.model_copy(update={"picking_bin_quantity": quantity})
        return self.model_copy(update={"overstock_quantity": quantity})


class Location(BaseModel):
    """A storage location keyed by its full location string (case-insensitive)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    full_location_string: str
    display_name: str
    area: str
    row: str
    bay: str
    level: str
    pos: str
    color: str = "#CCCCCC"
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> str:
        return self.full_location_string.strip().lower()


class Category(BaseModel):
    """Item category, unique per organization on the lower-cased name."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    name: str
    user_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> str:
        return self.name.strip().lower()


class StockMovement(BaseModel):
    """Append-only audit entry describing a change of an item's total quantity."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    item_id: str
    item_name: str
    type: MovementType
    amount: int
    old_quantity: int
    new_quantity: int
    reason: str
    user_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
