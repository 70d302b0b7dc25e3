"""
Bulk Import Reconciler.

Runs an import batch in three phases:

1. Classification (no writes): each line is matched by case-insensitive SKU
   against the organization's items and split into new and duplicate lines.
2. Location discovery (no writes): every location referenced by the batch is
   diffed against known locations. Unknown ones halt the run until the operator
   confirms (default locations are created) or cancels (nothing is written).
3. Commit, line by line, through the StockLedger. Unknown categories are
   created first. New lines are inserted; duplicates follow the operator's
   DuplicatePolicy. A failing line is recorded in ``errors`` and the batch
   continues.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from agents.base import BaseAgent
from agents.stock_ledger import StockLedger
from config.config import ReconciliationConfig
from connectors.activity_log import ActivityLog
from connectors.category_store import InMemoryCategoryStore
from connectors.location_store import InMemoryLocationStore
from connectors.movement_log import InMemoryMovementLog
from models.enums import ActivityType, AgentType, DuplicatePolicy, MovementType
from models.errors import (
    DuplicateSkuError,
    ImportCancelledError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceFailure,
)
from models.imports import (
    ClassifiedLine,
    ImportBatchLine,
    ImportPlan,
    ImportResult,
    LocationConfirmationRequest,
)
from models.inventory import Category, InventoryItem, Location, StockMovement
from utils.event_bus import EventBus
from utils.locations import location_key, parse_location_string

logger = logging.getLogger(__name__)

ADD_TO_STOCK_REASON = "bulk import — added to stock"


class BulkImportReconciler(BaseAgent):
    """Reconciles an import batch against existing inventory under a duplicate policy."""

    def __init__(
        self,
        agent_id: str,
        event_bus: EventBus,
        ledger: StockLedger,
        locations: InMemoryLocationStore,
        movements: InMemoryMovementLog,
        categories: InMemoryCategoryStore,
        activity_log: ActivityLog | None = None,
        config: ReconciliationConfig | None = None,
    ):
        super().__init__(agent_id, AgentType.BULK_IMPORT, event_bus, activity_log, config)
        self.ledger = ledger
        self.locations = locations
        self.movements = movements
        self.categories = categories
        self._awaiting_confirmation: dict[str, ImportPlan] = {}
        self._committing: set[str] = set()
        self._stop_requested: set[str] = set()

    async def run(
        self,
        lines: list[ImportBatchLine],
        policy: DuplicatePolicy | str,
        organization_id: str,
        user_id: str | None = None,
        parse_errors: list[str] | None = None,
    ) -> ImportResult | LocationConfirmationRequest:
        """Prepare the batch and commit it at once unless new locations need confirmation."""
        plan = await self.prepare(lines, policy, organization_id, user_id, parse_errors)
        if plan.requires_confirmation:
            return LocationConfirmationRequest(plan_id=plan.plan_id, new_location_strings=plan.new_locations)
        return await self.commit(plan)

    async def prepare(
        self,
        lines: list[ImportBatchLine],
        policy: DuplicatePolicy | str,
        organization_id: str,
        user_id: str | None = None,
        parse_errors: list[str] | None = None,
    ) -> ImportPlan:
        """Phases 1 and 2. Never writes; failures here abort the whole batch."""
        try:
            policy = DuplicatePolicy(policy)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid duplicate policy: {policy!r}") from e

        existing = {item.sku_key: item for item in await self.ledger.list_items(organization_id)}
        plan = ImportPlan(
            organization_id=organization_id,
            user_id=user_id,
            policy=policy,
            parse_errors=list(parse_errors or []),
        )
        for line in lines:
            match = existing.get(line.sku_key)
            if match is None:
                plan.new_lines.append(ClassifiedLine(line=line))
            else:
                plan.duplicate_lines.append(ClassifiedLine(line=line, existing=match))

        plan.new_locations = await self._discover_new_locations(lines, organization_id)
        logger.info(
            f"Prepared import {plan.plan_id}: {len(plan.new_lines)} new, "
            f"{len(plan.duplicate_lines)} duplicate, {len(plan.new_locations)} new locations"
        )
        if plan.requires_confirmation:
            self.expire_stale_plans()
            self._awaiting_confirmation[plan.plan_id] = plan
        return plan

    def expire_stale_plans(self, now: datetime | None = None) -> list[str]:
        """Drop plans left awaiting confirmation longer than the configured TTL."""
        cutoff = (now or datetime.now()) - timedelta(seconds=self.config.import_plan_ttl_seconds)
        expired = [pid for pid, plan in self._awaiting_confirmation.items() if plan.created_at < cutoff]
        for plan_id in expired:
            del self._awaiting_confirmation[plan_id]
            logger.info(f"Import {plan_id} expired while awaiting confirmation")
        return expired

    def pending_confirmation(self, plan_id: str) -> ImportPlan:
        self.expire_stale_plans()
        plan = self._awaiting_confirmation.get(plan_id)
        if plan is None:
            raise NotFoundError(f"No import awaiting confirmation with id {plan_id}", plan_id=plan_id)
        return plan

    async def confirm(self, plan_id: str) -> ImportResult:
        """Operator confirmed the new locations: create them, then commit the batch."""
        plan = self.pending_confirmation(plan_id)
        del self._awaiting_confirmation[plan_id]
        # Cancellable from here on, including while locations are created.
        self._committing.add(plan_id)
        try:
            failed_locations = await self._create_locations(plan)
        except BaseException:
            self._committing.discard(plan_id)
            self._stop_requested.discard(plan_id)
            raise
        return await self.commit(plan, failed_locations)

    def cancel(self, plan_id: str) -> bool:
        """
        Abandon a batch. Before commit this discards the plan with no writes;
        once confirmed it stops before the next location or line. Lines
        already committed stay committed.
        """
        if self._awaiting_confirmation.pop(plan_id, None) is not None:
            logger.info(f"Import {plan_id} cancelled before commit")
            return True
        if plan_id in self._committing:
            logger.info(f"Stop requested for import {plan_id}")
            self._stop_requested.add(plan_id)
            return False
        raise NotFoundError(f"No import in progress with id {plan_id}", plan_id=plan_id)

    async def commit(self, plan: ImportPlan, failed_locations: set[str] | None = None) -> ImportResult:
        """Phase 3: commit every line, containing per-line failures."""
        failed_locations = failed_locations or set()
        result = ImportResult(errors=list(plan.parse_errors))
        self._committing.add(plan.plan_id)
        try:
            known_categories = await self._load_categories(plan.organization_id)
            for classified in plan.ordered_lines():
                if plan.plan_id in self._stop_requested:
                    raise ImportCancelledError(f"Import {plan.plan_id} cancelled by operator")
                line = classified.line
                blocked = [
                    loc for loc in (line.location, line.picking_bin_location) if location_key(loc) in failed_locations
                ]
                if blocked:
                    result.errors.append(
                        f"SKU '{line.sku}': Location '{blocked[0]}' could not be created. Item skipped."
                    )
                    continue
                if not await self._ensure_category(plan, line, known_categories, result):
                    continue
                try:
                    await self._commit_line(plan, classified, result)
                except Exception as e:
                    logger.error(f"Import {plan.plan_id}: line {line.row_number} (SKU {line.sku}) failed: {e}")
                    result.errors.append(f"SKU '{line.sku}': {e}")
        except ImportCancelledError as e:
            logger.warning(str(e))
            result.cancelled = True
        finally:
            self._committing.discard(plan.plan_id)
            self._stop_requested.discard(plan.plan_id)

        logger.info(f"Import {plan.plan_id}: {result.message} ({len(result.errors)} errors)")
        await self._notify_summary(plan, result)
        return result

    async def _load_categories(self, organization_id: str) -> set[str]:
        try:
            return await asyncio.wait_for(
                self.categories.known_keys(organization_id), timeout=self.config.persistence_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise PersistenceFailure("Timed out loading categories", stage="category_read") from e

    async def _ensure_category(
        self, plan: ImportPlan, line: ImportBatchLine, known: set[str], result: ImportResult
    ) -> bool:
        """Create the line's category if the organization lacks it. False means skip the line."""
        name = line.category.strip() or self.config.default_category
        if name.lower() in known:
            return True
        category = Category(organization_id=plan.organization_id, name=name, user_id=plan.user_id)
        try:
            await asyncio.wait_for(
                self.categories.add_category(category), timeout=self.config.persistence_timeout_seconds
            )
        except Exception as e:
            logger.error(f"Import {plan.plan_id}: failed to create category '{name}': {e}")
            result.errors.append(f"SKU '{line.sku}': Failed to create category '{name}': {e}")
            return False
        known.add(name.lower())
        return True

    async def _commit_line(self, plan: ImportPlan, classified: ClassifiedLine, result: ImportResult) -> None:
        line = classified.line
        if not classified.is_duplicate:
            try:
                await self.ledger.insert(line.to_new_item(plan.organization_id))
                result.inserted_count += 1
                return
            except DuplicateSkuError:
                # The SKU appeared earlier in this batch; treat it like any other duplicate.
                existing = await self.ledger.find_by_sku(plan.organization_id, line.sku)
                if existing is None:
                    raise
                classified = ClassifiedLine(line=line, existing=existing)

        if plan.policy == DuplicatePolicy.SKIP:
            result.errors.append(f"SKU '{line.sku}': Skipped due to duplicate entry.")
        elif plan.policy == DuplicatePolicy.ADD_TO_STOCK:
            await self._add_to_stock(plan, classified, result)
        else:
            await self._overwrite(classified)
            result.updated_count += 1

    async def _add_to_stock(self, plan: ImportPlan, classified: ClassifiedLine, result: ImportResult) -> None:
        line = classified.line

        def add_quantities(item: InventoryItem) -> InventoryItem:
            return item.model_copy(
                update={
                    "picking_bin_quantity": item.picking_bin_quantity + line.picking_bin_quantity,
                    "overstock_quantity": item.overstock_quantity + line.overstock_quantity,
                }
            )

        old, new = await self.ledger.apply(classified.existing.id, add_quantities)
        result.updated_count += 1
        movement = StockMovement(
            organization_id=plan.organization_id,
            item_id=new.id,
            item_name=new.name,
            type=MovementType.ADD,
            amount=line.total_quantity,
            old_quantity=old.total_quantity,
            new_quantity=new.total_quantity,
            reason=ADD_TO_STOCK_REASON,
            user_id=plan.user_id,
        )
        try:
            await asyncio.wait_for(self.movements.record(movement), timeout=self.config.persistence_timeout_seconds)
        except Exception as e:
            logger.error(f"Stock updated for {new.id} but movement audit entry failed: {e}")
            result.errors.append(f"SKU '{line.sku}': Stock updated but audit entry could not be recorded: {e}")

    async def _overwrite(self, classified: ClassifiedLine) -> None:
        values = classified.line.item_fields()
        values.pop("sku")

        def replace_fields(item: InventoryItem) -> InventoryItem:
            return item.model_copy(update=values)

        await self.ledger.apply(classified.existing.id, replace_fields)

    async def _discover_new_locations(self, lines: list[ImportBatchLine], organization_id: str) -> list[str]:
        try:
            known = await asyncio.wait_for(
                self.locations.known_keys(organization_id), timeout=self.config.persistence_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise PersistenceFailure("Timed out loading locations", stage="location_read") from e
        known.add(location_key(self.config.unassigned_location))

        discovered: dict[str, str] = {}
        for line in lines:
            for value in (line.location, line.picking_bin_location):
                key = location_key(value)
                if key and key not in known and key not in discovered:
                    discovered[key] = value.strip()
        return list(discovered.values())

    async def _create_locations(self, plan: ImportPlan) -> set[str]:
        """Create default records for confirmed locations; returns the keys of those that failed."""
        failed: set[str] = set()
        for location_string in plan.new_locations:
            if plan.plan_id in self._stop_requested:
                break
            parts = parse_location_string(location_string).with_placeholder(self.config.location_placeholder)
            location = Location(
                organization_id=plan.organization_id,
                full_location_string=location_string,
                display_name=location_string,
                area=parts.area,
                row=parts.row,
                bay=parts.bay,
                level=parts.level,
                pos=parts.pos,
                color=self.config.default_location_color,
            )
            try:
                await asyncio.wait_for(
                    self.locations.add_location(location), timeout=self.config.persistence_timeout_seconds
                )
            except Exception as e:
                logger.error(f"Failed to create location '{location_string}': {e}")
                failed.add(location_key(location_string))
        return failed

    async def _notify_summary(self, plan: ImportPlan, result: ImportResult) -> None:
        try:
            await self.notify(
                plan.organization_id,
                ActivityType.BULK_IMPORT,
                result.message,
                details={
                    "plan_id": plan.plan_id,
                    "policy": plan.policy.value,
                    "inserted_count": result.inserted_count,
                    "updated_count": result.updated_count,
                    "error_count": len(result.errors),
                    "cancelled": result.cancelled,
                },
                user_id=plan.user_id,
            )
        except PersistenceFailure as e:
            logger.warning(f"Import {plan.plan_id} finished but summary notification failed: {e}")
