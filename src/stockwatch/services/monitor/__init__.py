"""Monitor rules and their evaluation."""

from .conditions import (
    PercentChangeAbove,
    PercentChangeBelow,
    PriceAbove,
    PriceBelow,
    RuleCondition,
    parse_condition,
)
from .engine import RuleEvaluationEngine
from .history import AlertHistoryService
from .job import PriceEvaluationJob
from .models import AlertPage, AlertView, EvaluationResult, RuleView
from .store import MonitorRuleService

__all__ = [
    "AlertHistoryService",
    "AlertPage",
    "AlertView",
    "EvaluationResult",
    "MonitorRuleService",
    "PercentChangeAbove",
    "PercentChangeBelow",
    "PriceAbove",
    "PriceBelow",
    "PriceEvaluationJob",
    "RuleCondition",
    "RuleEvaluationEngine",
    "RuleView",
    "parse_condition",
]
