"""
Request and response bodies for the reconciliation HTTP surface.
"""

from typing import Any

from pydantic import BaseModel, Field

from .enums import DuplicatePolicy


class DiscrepancyCountRequest(BaseModel):
    """Body of ``POST /discrepancies``; field names follow the cycle-count client."""

    itemId: str
    locationString: str
    locationType: str
    countedQuantity: int
    reason: str = ""
    organizationId: str
    reportedBy: str


class BulkImportRequest(BaseModel):
    """Body of ``POST /imports``: raw CSV rows keyed by column header."""

    organizationId: str
    userId: str | None = None
    duplicatePolicy: str = DuplicatePolicy.SKIP.value
    rows: list[dict[str, Any]] = Field(default_factory=list)


class ImportResponse(BaseModel):
    """Either a finished import or a request to confirm new locations."""

    success: bool
    message: str
    insertedCount: int = 0
    updatedCount: int = 0
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
    requiresLocationConfirmation: bool = False
    planId: str | None = None
    newLocations: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
