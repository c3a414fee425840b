"""Data models for fired alerts."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass
class AlertEvent:
    """One fired rule transition, handed to the dispatcher."""

    rule_id: int
    user_id: str
    instrument_code: str
    comparator: str
    threshold: float
    observed: float
    timestamp: datetime
    recurrence: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "rule_id": self.rule_id,
            "user_id": self.user_id,
            "instrument_code": self.instrument_code,
            "comparator": self.comparator,
            "threshold": self.threshold,
            "observed": self.observed,
            "recurrence": self.recurrence,
            "timestamp": self.timestamp.isoformat(),
        }

    def format_message(self) -> str:
        """Human-readable summary used by chat-style webhooks."""
        if self.comparator.startswith("percent_change"):
            observed = f"{self.observed:+.2f}%"
            threshold = f"{self.threshold:+.2f}%"
        else:
            observed = f"{self.observed:.2f}"
            threshold = f"{self.threshold:.2f}"

        direction = "above" if self.comparator.endswith("above") else "below"
        return (
            f"Stock alert: {self.instrument_code}\n"
            f"Rule: {self.comparator} {threshold}\n"
            f"Observed: {observed} ({direction} threshold)\n"
            f"Time: {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC"
        )
