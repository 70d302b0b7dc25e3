"""
Module: connectors.rule_store

In-memory stand-in for the ``automation_rules`` table. Rules are created and
edited elsewhere; the engine only reads them.
"""

import asyncio
from typing import Any

from models.automation import AutomationRule


class InMemoryRuleStore:
    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._rules: dict[str, AutomationRule] = {}

    async def add(self, rule: AutomationRule) -> AutomationRule:
        await asyncio.sleep(self.latency)
        self._rules[rule.id] = rule
        return rule

    async def add_definition(self, definition: dict[str, Any]) -> AutomationRule:
        """Store a rule given in its external JSON shape."""
        return await self.add(AutomationRule.from_definition(definition))

    async def list_active(self, organization_id: str) -> list[AutomationRule]:
        """Active rules owned by the organization; everything else is never a candidate."""
        await asyncio.sleep(self.latency)
        return [r for r in self._rules.values() if r.is_active and r.organization_id == organization_id]
