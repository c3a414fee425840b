"""API request and response models."""

from .requests import (
    AddMembershipRequest,
    CreateRuleRequest,
    EvaluateRequest,
    GroupNameRequest,
    MoveMembershipRequest,
    UpdatePositionRequest,
    UpdateRuleRequest,
)
from .responses import (
    BaseResponse,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    StatusResponse,
    SuccessResponse,
)

__all__ = [
    "AddMembershipRequest",
    "BaseResponse",
    "CreateRuleRequest",
    "ErrorDetail",
    "ErrorResponse",
    "EvaluateRequest",
    "GroupNameRequest",
    "HealthResponse",
    "HealthStatus",
    "MoveMembershipRequest",
    "StatusResponse",
    "SuccessResponse",
    "UpdatePositionRequest",
    "UpdateRuleRequest",
]
