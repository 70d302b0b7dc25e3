"""
Discrepancy Reconciler for cycle counts.

Compares a physical count against the ledger and, when they differ, records
the discrepancy first, then corrects the ledger, then notifies. If the ledger
write fails after the record was stored, the record stays ``pending`` as the
durable signal that the ledger is wrong.
"""

import asyncio
import logging

from agents.base import BaseAgent
from agents.stock_ledger import StockLedger
from config.config import ReconciliationConfig
from connectors.activity_log import ActivityLog
from connectors.discrepancy_store import InMemoryDiscrepancyStore
from models.discrepancy import DiscrepancyRecord, DiscrepancyRequest, DiscrepancyResponse
from models.enums import ActivityType, AgentType, DiscrepancyStatus, LocationType
from models.errors import InvalidArgumentError, NotFoundError, PersistenceFailure
from models.inventory import InventoryItem
from utils.event_bus import EventBus

logger = logging.getLogger(__name__)


class DiscrepancyReconciler(BaseAgent):
    """Reconciles physical counts against recorded picking-bin / overstock quantities."""

    def __init__(
        self,
        agent_id: str,
        event_bus: EventBus,
        ledger: StockLedger,
        discrepancies: InMemoryDiscrepancyStore,
        activity_log: ActivityLog | None = None,
        config: ReconciliationConfig | None = None,
    ):
        super().__init__(agent_id, AgentType.DISCREPANCY, event_bus, activity_log, config)
        self.ledger = ledger
        self.discrepancies = discrepancies

    async def reconcile(
        self,
        request: DiscrepancyRequest,
        organization_id: str,
        reported_by: str,
    ) -> DiscrepancyResponse:
        """
        Reconcile one physical count.

        Raises InvalidArgumentError or NotFoundError before any write, and
        PersistenceFailure if the discrepancy record itself could not be stored.
        A ledger failure after the record was stored is reported in the response
        (``created=True, inventory_updated=False``) rather than raised.
        """
        location_type = self._validate(request)
        reason = request.reason.strip() or self.config.default_discrepancy_reason

        item = await self.ledger.get(request.item_id)
        if item.organization_id != organization_id:
            raise NotFoundError(f"Inventory item {request.item_id} not found", item_id=request.item_id)

        stored: list[DiscrepancyRecord] = []

        def set_counted(current: InventoryItem) -> InventoryItem | None:
            if current.quantity_at(location_type) == request.counted_quantity:
                return None
            return current.with_quantity(location_type, request.counted_quantity)

        async def record_first(old: InventoryItem, new: InventoryItem) -> None:
            original = old.quantity_at(location_type)
            record = DiscrepancyRecord(
                organization_id=organization_id,
                item_id=old.id,
                location_string=request.location_string,
                location_type=location_type,
                original_quantity=original,
                counted_quantity=request.counted_quantity,
                difference=request.counted_quantity - original,
                reason=reason,
                reported_by=reported_by,
            )
            try:
                await asyncio.wait_for(
                    self.discrepancies.add(record), timeout=self.config.persistence_timeout_seconds
                )
            except asyncio.TimeoutError as e:
                raise PersistenceFailure("Timed out recording discrepancy", stage="discrepancy_write") from e
            except Exception as e:
                raise PersistenceFailure(f"Failed to record discrepancy: {e}", stage="discrepancy_write") from e
            stored.append(record)

        try:
            old, new = await self.ledger.apply(request.item_id, set_counted, before_commit=record_first)
        except PersistenceFailure as e:
            if not stored:
                raise
            record = stored[0]
            logger.error(
                f"Discrepancy {record.id} recorded but ledger update for {record.item_id} failed: {e}. "
                f"Record left pending."
            )
            return DiscrepancyResponse(
                created=True,
                discrepancy=record,
                inventory_updated=False,
                message="Discrepancy recorded but inventory quantity could not be updated.",
            )

        if not stored:
            logger.info(f"No discrepancy for {request.item_id} ({location_type.value}): quantities match")
            return DiscrepancyResponse(created=False, message="No discrepancy detected. Quantities match.")

        record = stored[0]
        notification = self._notification_text(new, record)
        try:
            await self.notify(
                organization_id,
                ActivityType.STOCK_DISCREPANCY,
                notification,
                details={
                    "discrepancy_id": record.id,
                    "item_id": record.item_id,
                    "item_name": new.name,
                    "sku": new.sku,
                    "location_string": record.location_string,
                    "location_type": record.location_type.value,
                    "original_quantity": record.original_quantity,
                    "counted_quantity": record.counted_quantity,
                    "difference": record.difference,
                    "reason": record.reason,
                    "reported_by": reported_by,
                },
                user_id=reported_by,
            )
        except PersistenceFailure as e:
            logger.warning(f"Discrepancy {record.id} applied but notification failed: {e}")
            notification = None

        return DiscrepancyResponse(
            created=True,
            discrepancy=record,
            inventory_updated=True,
            notification=notification,
            message="Discrepancy recorded and inventory updated.",
        )

    async def resolve(self, discrepancy_id: str, organization_id: str | None = None) -> DiscrepancyRecord:
        """Mark a discrepancy resolved. Never touches the ledger; resolving twice is a no-op."""
        record = await self.discrepancies.get(discrepancy_id)
        if record is None or (organization_id is not None and record.organization_id != organization_id):
            raise NotFoundError(f"Discrepancy {discrepancy_id} not found", discrepancy_id=discrepancy_id)
        if not record.is_pending:
            return record
        resolved = record.mark_resolved()
        await self.discrepancies.save(resolved)
        logger.info(f"Discrepancy {discrepancy_id} marked as resolved")
        return resolved

    async def list_pending(self, organization_id: str) -> list[DiscrepancyRecord]:
        """Pending discrepancies, including any whose ledger correction did not land."""
        return await self.discrepancies.list_records(organization_id, DiscrepancyStatus.PENDING)

    def _validate(self, request: DiscrepancyRequest) -> LocationType:
        if request.counted_quantity < 0:
            raise InvalidArgumentError(
                "counted_quantity must be >= 0", counted_quantity=request.counted_quantity
            )
        if not request.item_id or not request.location_string.strip():
            raise InvalidArgumentError("item_id and location_string are required")
        try:
            return LocationType(request.location_type)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid location_type: {request.location_type!r}") from e

    @staticmethod
    def _notification_text(item: InventoryItem, record: DiscrepancyRecord) -> str:
        return (
            f"Stock Discrepancy: {item.name} ({item.sku}) at {record.location_string} "
            f"({record.location_type.value}). Counted: {record.counted_quantity}, "
            f"System: {record.original_quantity}. Difference: {record.difference}. "
            f"Reported by {record.reported_by}."
        )
