"""
FastAPI application exposing the reconciliation engine.

Notifications go to Redis streams when RECON_REDIS_URL is set, otherwise to
the in-memory activity log.
CSV files can be uploaded directly to ``POST /imports/csv``.
Run with: uvicorn demos.reconciliation_api:app --reload
"""

import io
import logging
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from agents.orchestrator import ReconciliationOrchestrator
from config.config import ReconciliationConfig
from connectors.activity_log import RedisStreamActivityLog
from models.api import BulkImportRequest, DiscrepancyCountRequest, ErrorResponse, ImportResponse
from models.automation import AutomationRule
from models.discrepancy import DiscrepancyRecord, DiscrepancyRequest, DiscrepancyResponse
from models.enums import DuplicatePolicy
from models.errors import (
    DuplicateSkuError,
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceFailure,
    ReconciliationError,
)
from models.imports import ImportResult, LocationConfirmationRequest
from models.inventory import InventoryItem
from utils.csv_import import parse_rows, read_import_rows
from utils.logger import get_logger

logger = logging.getLogger("reconciliation-api")

STATUS_BY_ERROR: dict[type[ReconciliationError], int] = {
    InvalidArgumentError: 400,
    NotFoundError: 404,
    InsufficientStockError: 409,
    DuplicateSkuError: 409,
    PersistenceFailure: 503,
}


def status_for(error: ReconciliationError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def to_import_response(outcome: ImportResult | LocationConfirmationRequest) -> ImportResponse:
    if isinstance(outcome, LocationConfirmationRequest):
        return ImportResponse(
            success=False,
            message="New locations found. Confirm to create them and continue the import.",
            requiresLocationConfirmation=True,
            planId=outcome.plan_id,
            newLocations=outcome.new_location_strings,
        )
    return ImportResponse(
        success=outcome.success,
        message=outcome.message,
        insertedCount=outcome.inserted_count,
        updatedCount=outcome.updated_count,
        errors=outcome.errors,
        cancelled=outcome.cancelled,
    )


def create_app(
    orchestrator: ReconciliationOrchestrator | None = None,
    config: ReconciliationConfig | None = None,
) -> FastAPI:
    """Build the app around an orchestrator; a new one is created from config if omitted."""
    config = config or (orchestrator.config if orchestrator else ReconciliationConfig.from_env())
    get_logger(level=config.log_level)

    redis_client: redis.Redis | None = None
    if orchestrator is None:
        activity_log = None
        if config.redis_url:
            redis_client = redis.from_url(config.redis_url, decode_responses=True)
            activity_log = RedisStreamActivityLog(redis_client)
        orchestrator = ReconciliationOrchestrator(config=config, activity_log=activity_log)

    app = FastAPI(title="Stock Reconciliation Service")
    app.state.orchestrator = orchestrator

    @app.on_event("startup")
    async def startup_event():
        if redis_client is None:
            return
        try:
            await redis_client.ping()
            logger.info("Connected to Redis successfully.")
        except Exception as e:
            logger.error(f"Failed to reach Redis at startup: {e}. Notifications will fail until it is available.")

    @app.on_event("shutdown")
    async def shutdown_event():
        await orchestrator.drain()
        if redis_client is not None:
            await redis_client.aclose()
            logger.info("Redis connection closed.")

    @app.exception_handler(ReconciliationError)
    async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
        status_code = status_for(exc)
        logger.warning(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
        body = ErrorResponse(**exc.to_dict())
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.get("/inventory/{item_id}", response_model=InventoryItem)
    async def get_item(item_id: str):
        return await orchestrator.ledger.get(item_id)

    @app.post("/discrepancies", response_model=DiscrepancyResponse)
    async def report_discrepancy(body: DiscrepancyCountRequest):
        request = DiscrepancyRequest(
            item_id=body.itemId,
            location_string=body.locationString,
            location_type=body.locationType,
            counted_quantity=body.countedQuantity,
            reason=body.reason,
        )
        return await orchestrator.discrepancy_reconciler.reconcile(
            request, organization_id=body.organizationId, reported_by=body.reportedBy
        )

    @app.get("/discrepancies/pending", response_model=list[DiscrepancyRecord])
    async def list_pending(organization_id: str):
        return await orchestrator.discrepancy_reconciler.list_pending(organization_id)

    @app.post("/discrepancies/{discrepancy_id}/resolve", response_model=DiscrepancyRecord)
    async def resolve_discrepancy(discrepancy_id: str, organization_id: str | None = None):
        return await orchestrator.discrepancy_reconciler.resolve(discrepancy_id, organization_id)

    @app.post("/rules", response_model=AutomationRule, status_code=201)
    async def create_rule(definition: dict[str, Any]):
        return await orchestrator.rule_store.add_definition(definition)

    @app.post("/imports", response_model=ImportResponse)
    async def start_import(body: BulkImportRequest):
        if not body.rows:
            raise HTTPException(400, "Import contains no rows")
        lines, parse_errors = parse_rows(body.rows, config)
        outcome = await orchestrator.bulk_importer.run(
            lines,
            body.duplicatePolicy,
            organization_id=body.organizationId,
            user_id=body.userId,
            parse_errors=parse_errors,
        )
        return to_import_response(outcome)

    @app.post("/imports/csv", response_model=ImportResponse)
    async def upload_import(
        file: UploadFile = File(...),
        organizationId: str = Form(...),
        userId: str | None = Form(None),
        duplicatePolicy: str = Form(DuplicatePolicy.SKIP.value),
    ):
        try:
            text = (await file.read()).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise HTTPException(400, "CSV file must be UTF-8 encoded") from e
        rows = read_import_rows(io.StringIO(text))
        if not rows:
            raise HTTPException(400, "The CSV file is empty or contains no data rows.")
        lines, parse_errors = parse_rows(rows, config)
        logger.info(f"Read {len(rows)} rows from uploaded file {file.filename!r}")
        outcome = await orchestrator.bulk_importer.run(
            lines,
            duplicatePolicy,
            organization_id=organizationId,
            user_id=userId,
            parse_errors=parse_errors,
        )
        return to_import_response(outcome)

    @app.post("/imports/{plan_id}/confirm", response_model=ImportResponse)
    async def confirm_import(plan_id: str):
        return to_import_response(await orchestrator.bulk_importer.confirm(plan_id))

    @app.post("/imports/{plan_id}/cancel")
    async def cancel_import(plan_id: str):
        discarded = orchestrator.bulk_importer.cancel(plan_id)
        return {"planId": plan_id, "discarded": discarded}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
