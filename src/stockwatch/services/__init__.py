"""Domain services."""

from .catalog import CatalogService, CatalogSyncResult
from .monitor import (
    EvaluationResult,
    MonitorRuleService,
    PriceEvaluationJob,
    RuleEvaluationEngine,
)
from .notification import AlertDispatcher, AlertEvent
from .pricing import PriceSnapshot, SinaQuoteProvider
from .watchlist import WatchlistService

__all__ = [
    "AlertDispatcher",
    "AlertEvent",
    "CatalogService",
    "CatalogSyncResult",
    "EvaluationResult",
    "MonitorRuleService",
    "PriceEvaluationJob",
    "PriceSnapshot",
    "RuleEvaluationEngine",
    "SinaQuoteProvider",
    "WatchlistService",
]
