"""
Stock Ledger: the only sanctioned write path for inventory items.

Every write is a read-modify-write serialized per item id, validated against
the non-negativity invariants, and followed by exactly one LedgerChangeEvent
handed to the dispatcher (fire-and-forget, ordered per item).
"""

import asyncio
import logging
from collections import Counter, defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime

from pydantic import ValidationError

from config.config import ReconciliationConfig
from connectors.inventory_store import InMemoryInventoryStore
from models.enums import LedgerEventType
from models.errors import (
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceFailure,
    ReconciliationError,
)
from models.events import LedgerChangeEvent
from models.inventory import InventoryItem
from utils.event_bus import KeyedDispatcher

logger = logging.getLogger(__name__)

# Returns the new snapshot, or None to leave the item untouched.
Mutation = Callable[[InventoryItem], InventoryItem | None]
BeforeCommit = Callable[[InventoryItem, InventoryItem], Awaitable[None]]


class StockLedger:
    """Authoritative per-item quantities with atomic per-item read-modify-write."""

    def __init__(
        self,
        store: InMemoryInventoryStore,
        dispatcher: KeyedDispatcher,
        config: ReconciliationConfig | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.config = config or ReconciliationConfig()
        # One lock per item id; there is deliberately no global lock.
        self._item_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sku_locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sku_lock_users: Counter[tuple[str, str]] = Counter()

    async def get(self, item_id: str) -> InventoryItem:
        item = await self._storage_call(self.store.get(item_id), stage="ledger_read")
        if item is None:
            raise NotFoundError(f"Inventory item {item_id} not found", item_id=item_id)
        return item

    async def find_by_sku(self, organization_id: str, sku: str) -> InventoryItem | None:
        return await self._storage_call(self.store.find_by_sku(organization_id, sku), stage="ledger_read")

    async def list_items(self, organization_id: str) -> list[InventoryItem]:
        return await self._storage_call(self.store.list_items(organization_id), stage="ledger_read")

    async def insert(self, item: InventoryItem) -> InventoryItem:
        """
        Create a new item and emit an ``insert`` change event.
        Raises DuplicateSkuError if the SKU already exists in the organization.
        """
        key = (item.organization_id, item.sku_key)
        self._sku_lock_users[key] += 1
        try:
            async with self._sku_locks[key]:
                new = item.model_copy(update={"version": 1, "last_updated": datetime.now()})
                await self._storage_call(self.store.insert(new), stage="ledger_write")
                self._emit(LedgerEventType.INSERT, None, new)
        finally:
            # Drop the lock once no insert holds or waits on it.
            self._sku_lock_users[key] -= 1
            if not self._sku_lock_users[key]:
                del self._sku_lock_users[key]
                del self._sku_locks[key]
        logger.info(f"Inserted item {new.id} (sku={new.sku}) total={new.total_quantity}")
        return new

    async def apply(
        self,
        item_id: str,
        mutation: Mutation,
        before_commit: BeforeCommit | None = None,
    ) -> tuple[InventoryItem, InventoryItem]:
        """
        Atomically apply ``mutation`` to the current snapshot of ``item_id``.

        Returns ``(old, new)``. If the mutation returns None nothing is written,
        no event is emitted, and ``(old, old)`` is returned. ``before_commit`` is
        awaited under the item lock after validation and before the write; if it
        raises, nothing is written.

        Raises:
            NotFoundError: unknown item.
            InsufficientStockError: a sub-quantity would become negative.
            InvalidArgumentError: the new snapshot breaks another item invariant
                or changes the item's identity.
            PersistenceFailure: storage read/write failed or timed out.
        """
        async with self._item_locks[item_id]:
            old = await self.get(item_id)
            candidate = mutation(old)
            if candidate is None:
                return old, old

            if (
                candidate.id != old.id
                or candidate.organization_id != old.organization_id
                or candidate.sku_key != old.sku_key
            ):
                raise InvalidArgumentError(f"Mutation may not change the identity of item {item_id}")
            if candidate.picking_bin_quantity < 0 or candidate.overstock_quantity < 0:
                raise InsufficientStockError(
                    item_id, candidate.picking_bin_quantity, candidate.overstock_quantity
                )

            new = self._validated(
                candidate.model_copy(update={"version": old.version + 1, "last_updated": datetime.now()})
            )
            if before_commit is not None:
                await before_commit(old, new)

            await self._storage_call(self.store.save(new), stage="ledger_write")
            self._emit(LedgerEventType.UPDATE, old, new)

        logger.info(
            f"Applied change to {item_id}: picking {old.picking_bin_quantity}->{new.picking_bin_quantity}, "
            f"overstock {old.overstock_quantity}->{new.overstock_quantity}, "
            f"total {old.total_quantity}->{new.total_quantity} (v{new.version})"
        )
        return old, new

    def _validated(self, snapshot: InventoryItem) -> InventoryItem:
        # model_copy skips validation, so re-run the model validators on the result.
        try:
            return InventoryItem.model_validate(snapshot.model_dump())
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid item state for {snapshot.id}: {e}") from e

    def _emit(self, change_type: LedgerEventType, old: InventoryItem | None, new: InventoryItem) -> None:
        event = LedgerChangeEvent(
            item_id=new.id,
            organization_id=new.organization_id,
            change_type=change_type,
            old=old,
            new=new,
            sequence=new.version,
        )
        self.dispatcher.submit(event.ordering_key, event)

    async def _storage_call(self, awaitable: Awaitable, stage: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.ledger_write_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise PersistenceFailure(f"Storage timed out during {stage}", stage=stage) from e
        except ReconciliationError:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Storage failure during {stage}: {e}", stage=stage) from e
