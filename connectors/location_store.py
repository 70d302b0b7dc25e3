"""
Module: connectors.location_store

In-memory stand-in for the ``locations`` table.
"""

import asyncio

from models.inventory import Location


class InMemoryLocationStore:
    """Dummy location table, unique per organization on the lower-cased location string."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._locations: dict[tuple[str, str], Location] = {}

    async def list_locations(self, organization_id: str) -> list[Location]:
        await asyncio.sleep(self.latency)
        return [loc for (org, _), loc in self._locations.items() if org == organization_id]

    async def known_keys(self, organization_id: str) -> set[str]:
        return {loc.key for loc in await self.list_locations(organization_id)}

    async def add_location(self, location: Location) -> Location:
        """Add a location, returning the existing record if the string is already known."""
        await asyncio.sleep(self.latency)
        key = (location.organization_id, location.key)
        existing = self._locations.get(key)
        if existing is not None:
            return existing
        self._locations[key] = location
        return location
