"""
Composition root for the reconciliation engine.

Wires the event bus, ordered dispatcher, stores, ledger and the three
reconcilers so that every ledger change reaches the rule engine.
"""

import logging

from agents.automation import AutomationRuleEngine
from agents.bulk_import import BulkImportReconciler
from agents.discrepancy import DiscrepancyReconciler
from agents.stock_ledger import StockLedger
from config.config import ReconciliationConfig
from connectors.activity_log import ActivityLog, InMemoryActivityLog
from connectors.category_store import InMemoryCategoryStore
from connectors.discrepancy_store import InMemoryDiscrepancyStore
from connectors.inventory_store import InMemoryInventoryStore
from connectors.location_store import InMemoryLocationStore
from connectors.movement_log import InMemoryMovementLog
from connectors.rule_store import InMemoryRuleStore
from utils.event_bus import EventBus, KeyedDispatcher

logger = logging.getLogger(__name__)


class ReconciliationOrchestrator:
    """Owns one instance of every component and exposes them as attributes."""

    def __init__(
        self,
        config: ReconciliationConfig | None = None,
        activity_log: ActivityLog | None = None,
        inventory_store: InMemoryInventoryStore | None = None,
        location_store: InMemoryLocationStore | None = None,
        discrepancy_store: InMemoryDiscrepancyStore | None = None,
        rule_store: InMemoryRuleStore | None = None,
        movement_log: InMemoryMovementLog | None = None,
        category_store: InMemoryCategoryStore | None = None,
    ):
        self.config = config or ReconciliationConfig()
        self.event_bus = EventBus()
        self.dispatcher = KeyedDispatcher(self.event_bus, queue_size=self.config.dispatch_queue_size)

        self.inventory_store = inventory_store or InMemoryInventoryStore()
        self.location_store = location_store or InMemoryLocationStore()
        self.discrepancy_store = discrepancy_store or InMemoryDiscrepancyStore()
        self.rule_store = rule_store or InMemoryRuleStore()
        self.movement_log = movement_log or InMemoryMovementLog()
        self.category_store = category_store or InMemoryCategoryStore()
        self.activity_log = activity_log if activity_log is not None else InMemoryActivityLog()

        self.ledger = StockLedger(self.inventory_store, self.dispatcher, self.config)
        self.discrepancy_reconciler = DiscrepancyReconciler(
            "discrepancy-reconciler",
            self.event_bus,
            self.ledger,
            self.discrepancy_store,
            self.activity_log,
            self.config,
        )
        self.rule_engine = AutomationRuleEngine(
            "automation-engine", self.event_bus, self.rule_store, self.activity_log, self.config
        )
        self.bulk_importer = BulkImportReconciler(
            "bulk-importer",
            self.event_bus,
            self.ledger,
            self.location_store,
            self.movement_log,
            self.category_store,
            self.activity_log,
            self.config,
        )
        logger.info("Reconciliation orchestrator initialised")

    async def drain(self) -> None:
        """Wait for every dispatched ledger change to be handled by its subscribers."""
        await self.dispatcher.drain()
