"""Data models for live quotes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from ...utils.clock import utcnow


@dataclass
class PriceSnapshot:
    """Current prices and previous closes for a set of instruments."""

    prices: Dict[str, float] = field(default_factory=dict)
    previous_close: Dict[str, float] = field(default_factory=dict)
    as_of: datetime = field(default_factory=utcnow)
    failed: List[str] = field(default_factory=list)
