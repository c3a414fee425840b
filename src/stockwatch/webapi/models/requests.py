"""Request models for the stockwatch API.

Bodies never carry a user id; the acting user comes from the request headers.
"""

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GroupNameRequest(_Request):
    """Request model for creating or renaming a watch group."""

    name: str = Field(..., description="Group name", min_length=1, max_length=50)


class AddMembershipRequest(_Request):
    """Request model for watching an instrument."""

    instrument_code: str = Field(
        ..., description="Tushare code, e.g. 600000.SH", min_length=1, max_length=16
    )
    group_id: Optional[int] = Field(None, description="Group to file it under")
    cost_price: Optional[Decimal] = Field(None, description="Cost basis per share")
    quantity: Optional[int] = Field(None, description="Number of shares held")

    @field_validator("instrument_code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.strip().upper()


class MoveMembershipRequest(_Request):
    """Request model for moving a membership between groups."""

    group_id: Optional[int] = Field(None, description="Target group, null for ungrouped")


class UpdatePositionRequest(_Request):
    """Request model for setting or clearing a position."""

    cost_price: Optional[Decimal] = Field(None, description="Cost basis per share")
    quantity: Optional[int] = Field(None, description="Number of shares held")


class CreateRuleRequest(_Request):
    """Request model for creating a monitor rule."""

    instrument_code: str = Field(..., min_length=1, max_length=16)
    comparator: str = Field(
        ...,
        description="price_above, price_below, percent_change_above or percent_change_below",
    )
    threshold: float = Field(..., description="Price, or percent for percent-change rules")
    recurrence: str = Field("one_shot", description="one_shot or recurring")


class UpdateRuleRequest(_Request):
    """Request model for changing a monitor rule. Omitted fields are kept."""

    comparator: Optional[str] = None
    threshold: Optional[float] = None
    recurrence: Optional[str] = None


class EvaluateRequest(_Request):
    """Request model for a manual evaluation against a supplied snapshot."""

    prices: Dict[str, float] = Field(..., description="Current price per instrument code")
    previous_close: Optional[Dict[str, float]] = Field(
        None, description="Previous close per instrument code"
    )
