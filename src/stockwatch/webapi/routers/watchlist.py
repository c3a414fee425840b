"""Watchlist group and membership endpoints."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...config.logging import get_logger
from ...services.watchlist import (
    ANY_GROUP,
    MembershipView,
    WatchGroupView,
    WatchlistService,
)
from ..deps import get_current_user_id, get_watchlist_service
from ..exceptions import ValidationException
from ..models.requests import (
    AddMembershipRequest,
    GroupNameRequest,
    MoveMembershipRequest,
    UpdatePositionRequest,
)
from ..models.responses import StatusResponse, SuccessResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/watchlist")


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def parse_group_filter(group: str) -> Any:
    """Map the ?group= query value to a store filter: all, ungrouped or an id."""
    value = group.strip().lower()
    if value == "all":
        return ANY_GROUP
    if value == "ungrouped":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationException(
            "group must be 'all', 'ungrouped' or a group id",
            field_errors={"group": group},
        )


# Groups


@router.get("/groups", response_model=SuccessResponse[List[WatchGroupView]])
def list_groups(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """List the caller's watch groups in display order."""
    return SuccessResponse[List[WatchGroupView]](
        data=service.list_groups(user_id), request_id=_request_id(request)
    )


@router.post(
    "/groups", response_model=SuccessResponse[WatchGroupView], status_code=201
)
def create_group(
    body: GroupNameRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    try:
        group = service.create_group(user_id, body.name)
    except ValueError as e:
        raise ValidationException(str(e), field_errors={"name": str(e)})

    return SuccessResponse[WatchGroupView](data=group, request_id=_request_id(request))


@router.patch("/groups/{group_id}", response_model=SuccessResponse[WatchGroupView])
def rename_group(
    group_id: int,
    body: GroupNameRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    try:
        group = service.rename_group(user_id, group_id, body.name)
    except ValueError as e:
        raise ValidationException(str(e), field_errors={"name": str(e)})

    return SuccessResponse[WatchGroupView](data=group, request_id=_request_id(request))


@router.delete("/groups/{group_id}", response_model=StatusResponse)
def delete_group(
    group_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Delete a group. Its memberships are kept and become ungrouped."""
    reassigned = service.delete_group(user_id, group_id)
    return StatusResponse.create(
        data={"group_id": group_id, "reassigned": reassigned},
        message="Group deleted",
        request_id=_request_id(request),
    )


# Memberships


@router.get("/memberships", response_model=SuccessResponse[List[MembershipView]])
def list_memberships(
    request: Request,
    group: str = Query("all", description="'all', 'ungrouped' or a group id"),
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """List watched instruments with catalog details, newest first."""
    memberships = service.list_memberships(user_id, parse_group_filter(group))
    return SuccessResponse[List[MembershipView]](
        data=memberships, request_id=_request_id(request)
    )


@router.post(
    "/memberships", response_model=SuccessResponse[MembershipView], status_code=201
)
def add_membership(
    body: AddMembershipRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    membership = service.add_membership(
        user_id,
        body.instrument_code,
        group_id=body.group_id,
        cost_price=body.cost_price,
        quantity=body.quantity,
    )
    return SuccessResponse[MembershipView](
        data=membership, request_id=_request_id(request)
    )


@router.delete("/memberships/{instrument_code}", response_model=StatusResponse)
def remove_membership(
    instrument_code: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    service.remove_membership(user_id, instrument_code)
    return StatusResponse.create(
        data={"instrument_code": instrument_code.upper()},
        message="Instrument removed from watchlist",
        request_id=_request_id(request),
    )


@router.patch(
    "/memberships/{instrument_code}/group",
    response_model=SuccessResponse[MembershipView],
)
def move_membership(
    instrument_code: str,
    body: MoveMembershipRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    membership = service.move_membership(user_id, instrument_code, body.group_id)
    return SuccessResponse[MembershipView](
        data=membership, request_id=_request_id(request)
    )


@router.patch(
    "/memberships/{instrument_code}/position",
    response_model=SuccessResponse[MembershipView],
)
def update_position(
    instrument_code: str,
    body: UpdatePositionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: WatchlistService = Depends(get_watchlist_service),
):
    membership = service.update_position(
        user_id, instrument_code, body.cost_price, body.quantity
    )
    return SuccessResponse[MembershipView](
        data=membership, request_id=_request_id(request)
    )
