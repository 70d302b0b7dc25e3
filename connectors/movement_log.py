"""
Module: connectors.movement_log

In-memory stand-in for the append-only ``stock_movements`` table.
"""

import asyncio

from models.inventory import StockMovement


class InMemoryMovementLog:
    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.movements: list[StockMovement] = []

    async def record(self, movement: StockMovement) -> StockMovement:
        await asyncio.sleep(self.latency)
        self.movements.append(movement)
        return movement

    async def list_movements(self, organization_id: str, item_id: str | None = None) -> list[StockMovement]:
        await asyncio.sleep(self.latency)
        return [
            m
            for m in self.movements
            if m.organization_id == organization_id and (item_id is None or m.item_id == item_id)
        ]
