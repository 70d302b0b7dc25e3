import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import agents`, `import utils`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from agents.orchestrator import ReconciliationOrchestrator  # noqa: E402
from config.config import ReconciliationConfig  # noqa: E402
from models.inventory import InventoryItem  # noqa: E402

ORG_ID = "org-1"


@pytest.fixture
def config() -> ReconciliationConfig:
    """Config with short timeouts so failure paths finish quickly."""
    return ReconciliationConfig(
        ledger_write_timeout_seconds=0.5,
        persistence_timeout_seconds=0.5,
        rule_retry_delay_seconds=0.0,
    )


@pytest.fixture
def orchestrator(config: ReconciliationConfig) -> ReconciliationOrchestrator:
    return ReconciliationOrchestrator(config=config)


@pytest.fixture
def make_item():
    """Factory for inventory items in the test organization."""

    def _make(sku: str = "SKU-1", picking: int = 5, overstock: int = 10, **overrides) -> InventoryItem:
        fields = {
            "organization_id": ORG_ID,
            "sku": sku,
            "name": f"Item {sku}",
            "picking_bin_quantity": picking,
            "overstock_quantity": overstock,
            "location": "A-01-02-03-04",
            "picking_bin_location": "A-01-02-03-05",
        }
        fields.update(overrides)
        return InventoryItem(**fields)

    return _make
