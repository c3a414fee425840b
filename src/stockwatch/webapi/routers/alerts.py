"""Alert history endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...config.logging import get_logger
from ...services.monitor import AlertHistoryService, AlertPage, AlertView
from ...services.monitor.history import DEFAULT_PAGE_SIZE
from ..deps import get_alert_history_service, get_current_user_id
from ..exceptions import ValidationException
from ..models.responses import StatusResponse, SuccessResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/alerts")


@router.get("", response_model=SuccessResponse[AlertPage])
def list_alerts(
    request: Request,
    read: Optional[bool] = Query(None, description="true for read, false for unread"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Page size (1-200)"),
    offset: int = Query(0, description="Alerts to skip"),
    user_id: str = Depends(get_current_user_id),
    service: AlertHistoryService = Depends(get_alert_history_service),
):
    """List the caller's fired alerts, newest first."""
    try:
        page = service.list_alerts(user_id, read=read, limit=limit, offset=offset)
    except ValueError as e:
        raise ValidationException(str(e))

    return SuccessResponse[AlertPage](
        data=page, request_id=getattr(request.state, "request_id", None)
    )


@router.post("/read-all", response_model=StatusResponse)
def mark_all_alerts_read(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: AlertHistoryService = Depends(get_alert_history_service),
):
    changed = service.mark_all_read(user_id)
    return StatusResponse.create(
        data={"marked_read": changed},
        message="All alerts marked as read",
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("/{alert_id}/read", response_model=SuccessResponse[AlertView])
def mark_alert_read(
    alert_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: AlertHistoryService = Depends(get_alert_history_service),
):
    return SuccessResponse[AlertView](
        data=service.mark_read(user_id, alert_id),
        request_id=getattr(request.state, "request_id", None),
    )
