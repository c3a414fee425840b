"""Instrument catalog search endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query, Request

from ...config.logging import get_logger
from ...services.catalog import CatalogService, InstrumentView
from ..deps import get_catalog_service
from ..exceptions import ValidationException
from ..models.responses import SuccessResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/instruments/search",
    response_model=SuccessResponse[List[InstrumentView]],
    summary="Search Instruments",
    description="Search active instruments by code, symbol or name",
)
def search_instruments(
    request: Request,
    keyword: str = Query(..., min_length=1, description="Substring to match"),
    limit: int = Query(20, description="Maximum results (1-50)"),
    catalog: CatalogService = Depends(get_catalog_service),
):
    try:
        results = catalog.search(keyword, limit)
    except ValueError as e:
        raise ValidationException(str(e))

    return SuccessResponse[List[InstrumentView]](
        data=results, request_id=getattr(request.state, "request_id", None)
    )
