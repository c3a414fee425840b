"""Operator endpoints: manual catalog sync and evaluation."""

from fastapi import APIRouter, Depends, Query, Request

from ...config.logging import get_logger
from ...services.catalog import CatalogService
from ...services.monitor import RuleEvaluationEngine
from ..deps import get_catalog_service, get_evaluation_engine
from ..models.requests import EvaluateRequest
from ..models.responses import StatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/admin")


@router.post(
    "/catalog/sync",
    response_model=StatusResponse,
    summary="Sync Instrument Catalog",
    description="Reconcile the catalog with the upstream listing now",
)
async def sync_catalog(
    request: Request,
    strict: bool = Query(False, description="Fail with 207 if any record was rejected"),
    catalog: CatalogService = Depends(get_catalog_service),
):
    request_id = getattr(request.state, "request_id", None)
    logger.info("Manual catalog sync requested", strict=strict, request_id=request_id)

    result = await catalog.sync(strict=strict)
    return StatusResponse.create(
        data=result.to_dict(), message="Catalog sync completed", request_id=request_id
    )


@router.post(
    "/evaluate",
    response_model=StatusResponse,
    summary="Evaluate Rules",
    description="Evaluate armed rules against the supplied price snapshot",
)
async def evaluate_rules(
    body: EvaluateRequest,
    request: Request,
    engine: RuleEvaluationEngine = Depends(get_evaluation_engine),
):
    request_id = getattr(request.state, "request_id", None)
    logger.info(
        "Manual evaluation requested", instruments=len(body.prices), request_id=request_id
    )

    result = await engine.evaluate(body.prices, body.previous_close)
    return StatusResponse.create(
        data=result.to_dict(), message="Evaluation completed", request_id=request_id
    )
