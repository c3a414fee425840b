"""Response envelopes for the stockwatch API."""

from datetime import datetime
from typing import Any, Dict, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ...utils.clock import utcnow

T = TypeVar("T")


class BaseResponse(BaseModel):
    """Fields every response carries."""

    success: bool = Field(..., description="Whether the request was successful")
    timestamp: datetime = Field(default_factory=utcnow, description="Response time (UTC)")
    request_id: Optional[str] = Field(None, description="Request id, echoed in X-Request-ID")

    model_config = ConfigDict(use_enum_values=True)

    @field_serializer("timestamp")
    def serialize_timestamp(self, dt: datetime) -> str:
        return dt.isoformat() + "Z"


class SuccessResponse(BaseResponse, Generic[T]):
    """Successful response wrapping typed data."""

    success: bool = Field(True, description="Always true for success responses")
    data: T = Field(..., description="Response data")
    message: Optional[str] = Field(None, description="Optional success message")


class ErrorDetail(BaseModel):
    """Machine-readable error body."""

    type: str = Field(..., description="Error class, e.g. AlreadyWatched")
    message: str = Field(..., description="Human-readable explanation")
    status_code: int
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseResponse):
    """Error envelope returned by every exception handler."""

    success: bool = Field(False, description="Always false for error responses")
    error: ErrorDetail

    @classmethod
    def build(
        cls,
        error_type: str,
        message: str,
        status_code: int,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> "ErrorResponse":
        return cls(
            error=ErrorDetail(
                type=error_type,
                message=message,
                status_code=status_code,
                details=details or {},
            ),
            request_id=request_id,
        )


class HealthStatus(BaseModel):
    status: Literal["healthy", "unhealthy"]
    services: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Per-dependency status, currently the database"
    )
    uptime_seconds: float
    version: Optional[str] = None


class HealthResponse(BaseResponse):
    success: bool = True
    health: HealthStatus


class StatusResponse(SuccessResponse[Dict[str, Any]]):
    """Untyped data response for deletes and operator actions."""

    @classmethod
    def create(
        cls,
        data: Dict[str, Any],
        message: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> "StatusResponse":
        return cls(data=data, message=message, request_id=request_id)
