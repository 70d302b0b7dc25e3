"""
Centralized Enum definitions for the project.
"""

from enum import Enum


class AgentType(str, Enum):
    """Components that publish events or notifications"""

    LEDGER = "stock_ledger"
    DISCREPANCY = "discrepancy_reconciler"
    AUTOMATION = "automation_engine"
    BULK_IMPORT = "bulk_import"


class LocationType(str, Enum):
    """Which sub-quantity of an item a count refers to"""

    PICKING_BIN = "picking_bin"
    OVERSTOCK = "overstock"


class StockStatus(str, Enum):
    """Derived stock status of an inventory item"""

    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


class LedgerEventType(str, Enum):
    """Kinds of committed ledger writes"""

    INSERT = "insert"
    UPDATE = "update"


class DiscrepancyStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class TriggerType(str, Enum):
    """Wire names of supported rule triggers"""

    ON_STOCK_LEVEL_CHANGE = "ON_STOCK_LEVEL_CHANGE"


class ActionType(str, Enum):
    """Wire names of supported rule actions"""

    SEND_NOTIFICATION = "SEND_NOTIFICATION"


class RuleOutcomeStatus(str, Enum):
    """Result of evaluating one rule against one ledger change"""

    SUCCESS = "success"
    TRIGGER_NOT_MATCHED = "trigger_not_matched"
    CONDITION_NOT_MET = "condition_not_met"
    FAILED = "failed"


class DuplicatePolicy(str, Enum):
    """How an import treats lines whose SKU already exists"""

    SKIP = "skip"
    ADD_TO_STOCK = "add_to_stock"
    UPDATE = "update"

    @classmethod
    def _missing_(cls, value):
        # Accept the client spelling, e.g. "addToStock"
        if isinstance(value, str):
            normalized = "".join("_" + c.lower() if c.isupper() else c for c in value).lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class MovementType(str, Enum):
    ADD = "add"


class ActivityType(str, Enum):
    """Activity-log categories written by the core"""

    STOCK_DISCREPANCY = "Stock Discrepancy"
    AUTOMATION_NOTIFICATION = "Automation Notification"
    BULK_IMPORT = "Bulk Import"
