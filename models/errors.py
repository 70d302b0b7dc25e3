"""
Typed exception hierarchy for stock reconciliation.

Callers catch by type and read ``code`` for machine-readable handling:

    ReconciliationError
    +-- InvalidArgumentError     INVALID_ARGUMENT
    +-- NotFoundError            NOT_FOUND
    +-- InsufficientStockError   INSUFFICIENT_STOCK
    +-- DuplicateSkuError        DUPLICATE_SKU
    +-- PersistenceFailure       PERSISTENCE_FAILURE
    +-- ImportCancelledError     IMPORT_CANCELLED
"""

from typing import Any


class ReconciliationError(Exception):
    """Base class for all reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidArgumentError(ReconciliationError):
    """Malformed input, rejected before any write."""

    code = "INVALID_ARGUMENT"


class NotFoundError(ReconciliationError):
    """Unknown item, discrepancy, rule or organization."""

    code = "NOT_FOUND"


class InsufficientStockError(ReconciliationError):
    """A mutation would drive a sub-quantity below zero."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, picking_bin_quantity: int, overstock_quantity: int):
        super().__init__(
            f"Mutation of item {item_id} would leave picking bin={picking_bin_quantity}, "
            f"overstock={overstock_quantity}",
            item_id=item_id,
            picking_bin_quantity=picking_bin_quantity,
            overstock_quantity=overstock_quantity,
        )
        self.item_id = item_id


class DuplicateSkuError(ReconciliationError):
    code = "DUPLICATE_SKU"

    def __init__(self, sku: str, organization_id: str):
        super().__init__(
            f"SKU '{sku}' already exists in organization {organization_id}",
            sku=sku,
            organization_id=organization_id,
        )
        self.sku = sku


class PersistenceFailure(ReconciliationError):
    """Storage was unavailable or timed out. ``stage`` names the failing write."""

    code = "PERSISTENCE_FAILURE"

    def __init__(self, message: str, stage: str, **details: Any):
        super().__init__(message, stage=stage, **details)
        self.stage = stage


class ImportCancelledError(ReconciliationError):
    code = "IMPORT_CANCELLED"
