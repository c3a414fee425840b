"""Data models for instrument catalog synchronisation."""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...utils.clock import utcnow

TS_CODE_PATTERN = re.compile(r"^[0-9A-Z]+\.[A-Z]{2,4}$")

# Fields compared to decide whether an upstream record changed
MUTABLE_FIELDS = ("symbol", "name", "area", "industry", "market", "list_date")


class InstrumentRecord(BaseModel):
    """One row of the upstream instrument listing."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ts_code: str = Field(..., min_length=1)
    symbol: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    area: Optional[str] = None
    industry: Optional[str] = None
    market: Optional[str] = None
    list_date: Optional[str] = None

    @field_validator("ts_code")
    @classmethod
    def validate_ts_code(cls, v):
        """Exchange-qualified code such as 600000.SH."""
        v = v.upper()
        if not TS_CODE_PATTERN.match(v):
            raise ValueError(f"Malformed instrument code: {v}")
        return v

    @field_validator("area", "industry", "market", "list_date", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("list_date")
    @classmethod
    def validate_list_date(cls, v):
        """Listing date is YYYYMMDD or unknown."""
        if v is None:
            return v
        try:
            datetime.strptime(v, "%Y%m%d")
        except ValueError:
            raise ValueError(f"list_date must be YYYYMMDD, got {v!r}")
        return v

    def fingerprint(self) -> str:
        """Content hash over the mutable fields."""
        payload = "|".join(getattr(self, name) or "" for name in MUTABLE_FIELDS)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def to_columns(self) -> Dict[str, Any]:
        """Column values for the instruments table."""
        return {"ts_code": self.ts_code, **{name: getattr(self, name) for name in MUTABLE_FIELDS}}


@dataclass
class CatalogSyncResult:
    """Outcome of one catalog synchronisation run."""

    total: int = 0
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    failed: List[str] = field(default_factory=list)
    synced_at: datetime = field(default_factory=utcnow)

    @property
    def partial(self) -> bool:
        """True when some upstream records could not be applied."""
        return bool(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "new": self.new,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deactivated": self.deactivated,
            "failed": list(self.failed),
            "partial": self.partial,
            "synced_at": self.synced_at.isoformat(),
        }


class InstrumentView(BaseModel):
    """Read-only catalog entry returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    ts_code: str
    symbol: str
    name: str
    area: Optional[str] = None
    industry: Optional[str] = None
    market: Optional[str] = None
    list_date: Optional[str] = None
    is_active: bool = True
