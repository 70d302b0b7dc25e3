"""
Module: connectors.category_store

In-memory stand-in for the ``categories`` table.
"""

import asyncio

from models.inventory import Category


class InMemoryCategoryStore:
    """Dummy category table, unique per organization on the lower-cased name."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._categories: dict[tuple[str, str], Category] = {}

    async def list_categories(self, organization_id: str) -> list[Category]:
        await asyncio.sleep(self.latency)
        return [cat for (org, _), cat in self._categories.items() if org == organization_id]

    async def known_keys(self, organization_id: str) -> set[str]:
        return {cat.key for cat in await self.list_categories(organization_id)}

    async def add_category(self, category: Category) -> Category:
        """Add a category, returning the existing record if the name is already known."""
        await asyncio.sleep(self.latency)
        key = (category.organization_id, category.key)
        existing = self._categories.get(key)
        if existing is not None:
            return existing
        self._categories[key] = category
        return category
