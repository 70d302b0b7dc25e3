import pytest
from fastapi.testclient import TestClient

from demos.reconciliation_api import create_app, status_for
from models.errors import (
    DuplicateSkuError,
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceFailure,
)

ORG_ID = "org-1"

ROWS = [
    {
        "name": "Bolt",
        "sku": "BOLT-1",
        "pickingBinQuantity": "5",
        "overstockQuantity": "10",
        "location": "A-01-01-01-01",
    },
    {"name": "", "sku": "NO-NAME"},
]


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


def import_and_confirm(client) -> dict:
    started = client.post("/imports", json={"organizationId": ORG_ID, "userId": "u1", "rows": ROWS})
    assert started.status_code == 200
    body = started.json()
    assert body["requiresLocationConfirmation"] is True
    assert body["newLocations"] == ["A-01-01-01-01"]

    confirmed = client.post(f"/imports/{body['planId']}/confirm")
    assert confirmed.status_code == 200
    return confirmed.json()


@pytest.mark.parametrize(
    "error, expected",
    [
        (InvalidArgumentError("bad"), 400),
        (NotFoundError("missing"), 404),
        (InsufficientStockError("i", -1, 0), 409),
        (DuplicateSkuError("S", ORG_ID), 409),
        (PersistenceFailure("down", stage="ledger_write"), 503),
    ],
)
def test_status_for_error_types(error, expected):
    assert status_for(error) == expected


def test_import_requires_location_confirmation_then_commits(client):
    result = import_and_confirm(client)

    assert result["insertedCount"] == 1
    assert result["success"] is False
    assert result["errors"] == ["Row 2: Missing required fields (name, sku). Skipping item."]


def test_discrepancy_flow_over_http(client, orchestrator):
    import_and_confirm(client)
    item = next(iter(orchestrator.inventory_store._items.values()))

    response = client.post(
        "/discrepancies",
        json={
            "itemId": item.id,
            "locationString": "A-01-01-01-01",
            "locationType": "picking_bin",
            "countedQuantity": 3,
            "organizationId": ORG_ID,
            "reportedBy": "alice",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["created"] is True
    assert body["discrepancy"]["difference"] == -2

    fetched = client.get(f"/inventory/{item.id}").json()
    assert fetched["picking_bin_quantity"] == 3
    assert fetched["total_quantity"] == 13

    pending = client.get("/discrepancies/pending", params={"organization_id": ORG_ID}).json()
    assert [p["id"] for p in pending] == [body["discrepancy"]["id"]]

    resolved = client.post(f"/discrepancies/{body['discrepancy']['id']}/resolve")
    assert resolved.json()["status"] == "resolved"


def test_invalid_location_type_maps_to_400(client, orchestrator):
    import_and_confirm(client)
    item = next(iter(orchestrator.inventory_store._items.values()))

    response = client.post(
        "/discrepancies",
        json={
            "itemId": item.id,
            "locationString": "A-01-01-01-01",
            "locationType": "shelf",
            "countedQuantity": 3,
            "organizationId": ORG_ID,
            "reportedBy": "alice",
        },
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_unknown_item_maps_to_404(client):
    response = client.get("/inventory/missing")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_rule_definition_maps_to_400(client):
    response = client.post("/rules", json={"organizationId": ORG_ID, "triggerType": "ON_PRICE_CHANGE"})

    assert response.status_code == 400


def test_rule_with_non_object_condition_maps_to_400(client):
    response = client.post(
        "/rules",
        json={
            "organizationId": ORG_ID,
            "triggerType": "ON_STOCK_LEVEL_CHANGE",
            "condition": ["quantity", "lt", 10],
            "action": {"type": "SEND_NOTIFICATION", "message": "low"},
        },
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_cancel_pending_import(client, orchestrator):
    started = client.post("/imports", json={"organizationId": ORG_ID, "rows": ROWS}).json()

    response = client.post(f"/imports/{started['planId']}/cancel")

    assert response.json() == {"planId": started["planId"], "discarded": True}
    assert orchestrator.inventory_store._items == {}


def test_csv_upload_imports_rows(client, orchestrator):
    csv_text = (
        "name,sku,category,pickingBinQuantity,overstockQuantity,location\n"
        "Bolt,BOLT-1,Fasteners,5,10,Unassigned\n"
        ",NO-NAME,,,,\n"
    )

    response = client.post(
        "/imports/csv",
        files={"file": ("inventory.csv", csv_text.encode("utf-8"), "text/csv")},
        data={"organizationId": ORG_ID, "userId": "u1", "duplicatePolicy": "addToStock"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["insertedCount"] == 1
    assert body["errors"] == ["Row 2: Missing required fields (name, sku). Skipping item."]
    item = next(iter(orchestrator.inventory_store._items.values()))
    assert (item.sku, item.total_quantity, item.category) == ("BOLT-1", 15, "Fasteners")


def test_csv_upload_with_unknown_location_requires_confirmation(client):
    csv_text = "name,sku,location\nBolt,BOLT-1,B-02-01-01-01\n"

    response = client.post(
        "/imports/csv",
        files={"file": ("inventory.csv", csv_text.encode("utf-8"), "text/csv")},
        data={"organizationId": ORG_ID},
    )

    body = response.json()
    assert body["requiresLocationConfirmation"] is True
    assert body["newLocations"] == ["B-02-01-01-01"]


def test_empty_csv_upload_returns_400(client):
    response = client.post(
        "/imports/csv",
        files={"file": ("empty.csv", b"", "text/csv")},
        data={"organizationId": ORG_ID},
    )

    assert response.status_code == 400
