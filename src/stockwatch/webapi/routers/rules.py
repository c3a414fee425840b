"""Monitor rule endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Request

from ...config.logging import get_logger
from ...services.monitor import MonitorRuleService, RuleView
from ..deps import get_current_user_id, get_rule_service
from ..models.requests import CreateRuleRequest, UpdateRuleRequest
from ..models.responses import StatusResponse, SuccessResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/rules")


@router.get("", response_model=SuccessResponse[List[RuleView]])
def list_rules(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    """List the caller's monitor rules, newest first."""
    return SuccessResponse[List[RuleView]](
        data=service.list_rules(user_id),
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("", response_model=SuccessResponse[RuleView], status_code=201)
def create_rule(
    body: CreateRuleRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    """
    Create an armed rule.

    - **comparator**: price_above, price_below, percent_change_above, percent_change_below
    - **threshold**: price (> 0) or percent (> -100)
    - **recurrence**: one_shot fires once then stops; recurring re-fires on each new crossing
    """
    rule = service.create_rule(
        user_id,
        body.instrument_code,
        body.comparator,
        body.threshold,
        body.recurrence,
    )
    return SuccessResponse[RuleView](
        data=rule, request_id=getattr(request.state, "request_id", None)
    )


@router.patch("/{rule_id}", response_model=SuccessResponse[RuleView])
def update_rule(
    rule_id: int,
    body: UpdateRuleRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    rule = service.update_rule(
        user_id,
        rule_id,
        comparator=body.comparator,
        threshold=body.threshold,
        recurrence=body.recurrence,
    )
    return SuccessResponse[RuleView](
        data=rule, request_id=getattr(request.state, "request_id", None)
    )


@router.delete("/{rule_id}", response_model=StatusResponse)
def delete_rule(
    rule_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    service.delete_rule(user_id, rule_id)
    return StatusResponse.create(
        data={"rule_id": rule_id},
        message="Rule deleted",
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("/{rule_id}/arm", response_model=SuccessResponse[RuleView])
def arm_rule(
    rule_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    return SuccessResponse[RuleView](
        data=service.arm_rule(user_id, rule_id),
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("/{rule_id}/disarm", response_model=SuccessResponse[RuleView])
def disarm_rule(
    rule_id: int,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: MonitorRuleService = Depends(get_rule_service),
):
    return SuccessResponse[RuleView](
        data=service.disarm_rule(user_id, rule_id),
        request_id=getattr(request.state, "request_id", None),
    )
