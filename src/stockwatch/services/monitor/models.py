"""Data models for monitor rules and evaluation runs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...utils.clock import utcnow
from ..notification.models import AlertEvent


class RuleView(BaseModel):
    """A user's monitor rule."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    instrument_code: str
    comparator: str
    threshold: float
    recurrence: str
    state: str
    condition_met: Optional[bool] = None
    last_fired_at: Optional[datetime] = None
    revision: int
    created_at: datetime
    updated_at: datetime


class AlertView(BaseModel):
    """One entry of a user's alert history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    rule_id: Optional[int] = None
    instrument_code: str
    instrument_name: Optional[str] = None
    comparator: str
    threshold: float
    observed: float
    recurrence: str
    fired_at: datetime
    read: bool
    notified: Optional[bool] = None

    @classmethod
    def from_row(cls, alert, instrument_name: Optional[str] = None) -> "AlertView":
        view = cls.model_validate(alert)
        view.instrument_name = instrument_name
        return view


class AlertPage(BaseModel):
    """A page of alerts plus the totals needed to page further."""

    alerts: List[AlertView] = Field(default_factory=list)
    total: int
    unread: int
    limit: int
    offset: int


@dataclass
class EvaluationResult:
    """Outcome of one evaluation cycle."""

    evaluated: int = 0
    fired: List[AlertEvent] = field(default_factory=list)
    skipped_missing: List[int] = field(default_factory=list)
    skipped_stale: List[int] = field(default_factory=list)
    missing_baseline: List[int] = field(default_factory=list)
    suppressed: List[int] = field(default_factory=list)
    dispatch_failures: List[int] = field(default_factory=list)
    # Rules whose state could not be read or written this cycle
    errors: List[int] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluated": self.evaluated,
            "fired": [event.to_dict() for event in self.fired],
            "skipped_missing": sorted(self.skipped_missing),
            "skipped_stale": sorted(self.skipped_stale),
            "missing_baseline": sorted(self.missing_baseline),
            "suppressed": sorted(self.suppressed),
            "dispatch_failures": sorted(self.dispatch_failures),
            "errors": sorted(self.errors),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def summary(self) -> Dict[str, Any]:
        """Counts only, for log lines."""
        return {
            "evaluated": self.evaluated,
            "fired": len(self.fired),
            "skipped_missing": len(self.skipped_missing),
            "skipped_stale": len(self.skipped_stale),
            "missing_baseline": len(self.missing_baseline),
            "suppressed": len(self.suppressed),
            "dispatch_failures": len(self.dispatch_failures),
            "errors": len(self.errors),
        }
