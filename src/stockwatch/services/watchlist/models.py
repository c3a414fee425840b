"""Data models for watchlist groups and memberships."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer


class WatchGroupView(BaseModel):
    """A user's watchlist group."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str
    sort_order: int
    created_at: datetime


class MembershipView(BaseModel):
    """A watched instrument with catalog details and group name."""

    id: int
    user_id: str
    instrument_code: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    cost_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    added_at: datetime

    # Joined from the catalog
    symbol: Optional[str] = None
    name: Optional[str] = None
    area: Optional[str] = None
    industry: Optional[str] = None
    market: Optional[str] = None
    is_active: bool = True

    @field_serializer("cost_price")
    def serialize_cost_price(self, value: Optional[Decimal]) -> Optional[str]:
        """Keep cost price exact on the wire."""
        return None if value is None else str(value)

    @classmethod
    def from_row(cls, membership, instrument=None, group_name=None) -> "MembershipView":
        """Build a view from a membership and its joined catalog row."""
        data = {
            "id": membership.id,
            "user_id": membership.user_id,
            "instrument_code": membership.instrument_code,
            "group_id": membership.group_id,
            "group_name": group_name,
            "cost_price": membership.cost_price,
            "quantity": membership.quantity,
            "added_at": membership.added_at,
        }
        if instrument is not None:
            data.update(
                symbol=instrument.symbol,
                name=instrument.name,
                area=instrument.area,
                industry=instrument.industry,
                market=instrument.market,
                is_active=instrument.is_active,
            )
        return cls(**data)
