import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from agents.orchestrator import ReconciliationOrchestrator
from connectors.inventory_store import InMemoryInventoryStore
from models.discrepancy import DiscrepancyRequest
from models.enums import ActivityType, DiscrepancyStatus, LocationType
from models.errors import InvalidArgumentError, NotFoundError, PersistenceFailure

ORG_ID = "org-1"


def count(item_id: str, location_type: str, counted: int, reason: str = "") -> DiscrepancyRequest:
    return DiscrepancyRequest(
        item_id=item_id,
        location_string="A-01-02-03-05",
        location_type=location_type,
        counted_quantity=counted,
        reason=reason,
    )


@pytest.fixture
def reconciler(orchestrator):
    return orchestrator.discrepancy_reconciler


# --- Happy path --- #


@pytest.mark.asyncio
async def test_mismatch_records_discrepancy_and_updates_ledger(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))

    response = await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")

    assert response.created is True
    assert response.inventory_updated is True
    record = response.discrepancy
    assert record.original_quantity == 5
    assert record.counted_quantity == 3
    assert record.difference == -2
    assert record.status == DiscrepancyStatus.PENDING
    assert record.reason == "Cycle Count Adjustment"

    updated = await orchestrator.ledger.get(item.id)
    assert updated.picking_bin_quantity == 3
    assert updated.overstock_quantity == 10
    assert updated.total_quantity == 13


@pytest.mark.asyncio
async def test_notification_text_and_activity_log(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(sku="BOLT-7", picking=5, overstock=10))

    response = await reconciler.reconcile(count(item.id, "overstock", 12, "Damaged"), ORG_ID, "alice")

    assert response.notification == (
        "Stock Discrepancy: Item BOLT-7 (BOLT-7) at A-01-02-03-05 (overstock). "
        "Counted: 12, System: 10. Difference: 2. Reported by alice."
    )
    entries = orchestrator.activity_log.for_organization(ORG_ID)
    assert len(entries) == 1
    assert entries[0].activity_type == ActivityType.STOCK_DISCREPANCY
    assert entries[0].details["reason"] == "Damaged"
    assert entries[0].details["difference"] == 2


@pytest.mark.asyncio
async def test_matching_count_is_a_noop(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))

    response = await reconciler.reconcile(count(item.id, "picking_bin", 5), ORG_ID, "alice")

    assert response.created is False
    assert response.message == "No discrepancy detected. Quantities match."
    assert await reconciler.list_pending(ORG_ID) == []
    assert (await orchestrator.ledger.get(item.id)).version == 1
    assert orchestrator.activity_log.entries == []


@pytest.mark.asyncio
async def test_repeating_a_count_is_idempotent(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))

    first = await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")
    second = await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")

    assert first.created is True
    assert second.created is False
    assert len(await reconciler.list_pending(ORG_ID)) == 1


# --- Validation --- #


@pytest.mark.asyncio
async def test_negative_count_rejected_before_any_write(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item())

    with pytest.raises(InvalidArgumentError):
        await reconciler.reconcile(count(item.id, "picking_bin", -1), ORG_ID, "alice")

    assert await reconciler.list_pending(ORG_ID) == []


@pytest.mark.asyncio
async def test_unknown_location_type_rejected(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item())

    with pytest.raises(InvalidArgumentError, match="location_type"):
        await reconciler.reconcile(count(item.id, "shelf", 1), ORG_ID, "alice")


@pytest.mark.asyncio
async def test_unknown_item_raises_not_found(reconciler):
    with pytest.raises(NotFoundError):
        await reconciler.reconcile(count("missing", "picking_bin", 1), ORG_ID, "alice")


@pytest.mark.asyncio
async def test_item_of_other_organization_is_not_found(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(organization_id="org-2"))

    with pytest.raises(NotFoundError):
        await reconciler.reconcile(count(item.id, "picking_bin", 1), ORG_ID, "alice")


# --- Failure handling --- #


@pytest.mark.asyncio
async def test_ledger_failure_after_record_leaves_pending_record(orchestrator, reconciler, make_item, caplog):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))
    orchestrator.inventory_store.save = AsyncMock(side_effect=ConnectionError("db offline"))

    with caplog.at_level(logging.ERROR):
        response = await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")

    assert response.created is True
    assert response.inventory_updated is False
    assert response.notification is None
    pending = await reconciler.list_pending(ORG_ID)
    assert [r.id for r in pending] == [response.discrepancy.id]
    assert (await orchestrator.ledger.get(item.id)).picking_bin_quantity == 5
    assert "Record left pending" in caplog.text
    assert orchestrator.activity_log.entries == []


@pytest.mark.asyncio
async def test_record_failure_aborts_without_ledger_write(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))
    orchestrator.discrepancy_store.add = AsyncMock(side_effect=ConnectionError("db offline"))

    with pytest.raises(PersistenceFailure) as exc_info:
        await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")

    assert exc_info.value.stage == "discrepancy_write"
    assert (await orchestrator.ledger.get(item.id)).picking_bin_quantity == 5


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_correction(orchestrator, reconciler, make_item, caplog):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))
    orchestrator.activity_log.record = AsyncMock(side_effect=ConnectionError("log offline"))

    with caplog.at_level(logging.WARNING):
        response = await reconciler.reconcile(count(item.id, "overstock", 4), ORG_ID, "alice")

    assert response.created is True
    assert response.inventory_updated is True
    assert response.notification is None
    assert (await orchestrator.ledger.get(item.id)).overstock_quantity == 4
    assert "notification failed" in caplog.text


# --- Concurrency --- #


@pytest.mark.asyncio
async def test_concurrent_counts_on_both_locations_keep_both_updates(config, make_item):
    orchestrator = ReconciliationOrchestrator(config=config, inventory_store=InMemoryInventoryStore(latency=0.01))
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))
    reconciler = orchestrator.discrepancy_reconciler

    picking, overstock = await asyncio.gather(
        reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice"),
        reconciler.reconcile(count(item.id, "overstock", 12), ORG_ID, "bob"),
    )

    final = await orchestrator.ledger.get(item.id)
    assert final.picking_bin_quantity == 3
    assert final.overstock_quantity == 12
    assert final.total_quantity == 15
    assert picking.discrepancy.location_type == LocationType.PICKING_BIN
    assert overstock.discrepancy.location_type == LocationType.OVERSTOCK


# --- Resolve --- #


@pytest.mark.asyncio
async def test_resolve_marks_record_and_leaves_ledger_untouched(orchestrator, reconciler, make_item):
    item = await orchestrator.ledger.insert(make_item(picking=5, overstock=10))
    response = await reconciler.reconcile(count(item.id, "picking_bin", 3), ORG_ID, "alice")
    version_before = (await orchestrator.ledger.get(item.id)).version

    resolved = await reconciler.resolve(response.discrepancy.id)
    again = await reconciler.resolve(response.discrepancy.id)

    assert resolved.status == DiscrepancyStatus.RESOLVED
    assert again.status == DiscrepancyStatus.RESOLVED
    assert await reconciler.list_pending(ORG_ID) == []
    assert (await orchestrator.ledger.get(item.id)).version == version_before


@pytest.mark.asyncio
async def test_resolve_unknown_id_raises_not_found(reconciler):
    with pytest.raises(NotFoundError):
        await reconciler.resolve("missing")
