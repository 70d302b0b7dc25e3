"""
Module: connectors.discrepancy_store

In-memory stand-in for the ``discrepancies`` table.
"""

import asyncio

from models.discrepancy import DiscrepancyRecord
from models.enums import DiscrepancyStatus


class InMemoryDiscrepancyStore:
    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._records: dict[str, DiscrepancyRecord] = {}

    async def add(self, record: DiscrepancyRecord) -> DiscrepancyRecord:
        await asyncio.sleep(self.latency)
        self._records[record.id] = record
        return record

    async def get(self, discrepancy_id: str) -> DiscrepancyRecord | None:
        await asyncio.sleep(self.latency)
        return self._records.get(discrepancy_id)

    async def save(self, record: DiscrepancyRecord) -> DiscrepancyRecord:
        await asyncio.sleep(self.latency)
        self._records[record.id] = record
        return record

    async def list_records(
        self, organization_id: str, status: DiscrepancyStatus | None = None
    ) -> list[DiscrepancyRecord]:
        """Records for an organization, newest first, optionally filtered by status."""
        await asyncio.sleep(self.latency)
        records = [
            r
            for r in self._records.values()
            if r.organization_id == organization_id and (status is None or r.status == status)
        ]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)
