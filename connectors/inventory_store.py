"""
Module: connectors.inventory_store

In-memory stand-in for the hosted ``inventory_items`` table. Only the
StockLedger writes through it.
"""

import asyncio

from models.errors import DuplicateSkuError
from models.inventory import InventoryItem


class InMemoryInventoryStore:
    """
    Dummy inventory table keyed by item id, with a per-organization
    case-insensitive SKU index.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._items: dict[str, InventoryItem] = {}
        self._sku_index: dict[tuple[str, str], str] = {}

    async def get(self, item_id: str) -> InventoryItem | None:
        await asyncio.sleep(self.latency)
        return self._items.get(item_id)

    async def find_by_sku(self, organization_id: str, sku: str) -> InventoryItem | None:
        await asyncio.sleep(self.latency)
        item_id = self._sku_index.get((organization_id, sku.strip().lower()))
        return self._items.get(item_id) if item_id else None

    async def list_items(self, organization_id: str) -> list[InventoryItem]:
        await asyncio.sleep(self.latency)
        return [i for i in self._items.values() if i.organization_id == organization_id]

    async def insert(self, item: InventoryItem) -> InventoryItem:
        """Insert a new item; the SKU must be unused within its organization."""
        await asyncio.sleep(self.latency)
        key = (item.organization_id, item.sku_key)
        if key in self._sku_index or item.id in self._items:
            raise DuplicateSkuError(item.sku, item.organization_id)
        self._items[item.id] = item
        self._sku_index[key] = item.id
        return item

    async def save(self, item: InventoryItem) -> InventoryItem:
        """Replace an existing item snapshot."""
        await asyncio.sleep(self.latency)
        self._items[item.id] = item
        return item
