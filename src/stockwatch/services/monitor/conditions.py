"""Rule conditions: a closed set of price and percent-change comparators."""

import math
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ...exceptions import InvalidThreshold, UnknownComparator
from ...ormdb.models import Comparator


class _PriceCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float

    @field_validator("threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("threshold must be a finite number")
        if v <= 0:
            raise ValueError("price threshold must be greater than 0")
        return v

    def observe(self, current: float, previous_close: Optional[float]) -> Optional[float]:
        """The value compared against the threshold: the current price."""
        return current


class _PercentChangeCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float

    @field_validator("threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("threshold must be a finite number")
        if v <= -100:
            raise ValueError("percent threshold must be greater than -100")
        return v

    def observe(self, current: float, previous_close: Optional[float]) -> Optional[float]:
        """
        Percent change against the previous close.

        Returns:
            The change in percent, or None without a usable previous close
        """
        if previous_close is None or previous_close == 0 or not math.isfinite(previous_close):
            return None
        return (current - previous_close) / previous_close * 100


class PriceAbove(_PriceCondition):
    comparator: Literal["price_above"] = Comparator.PRICE_ABOVE.value

    def is_met(self, observed: float) -> bool:
        return observed > self.threshold


class PriceBelow(_PriceCondition):
    comparator: Literal["price_below"] = Comparator.PRICE_BELOW.value

    def is_met(self, observed: float) -> bool:
        return observed < self.threshold


class PercentChangeAbove(_PercentChangeCondition):
    comparator: Literal["percent_change_above"] = Comparator.PERCENT_CHANGE_ABOVE.value

    def is_met(self, observed: float) -> bool:
        return observed > self.threshold


class PercentChangeBelow(_PercentChangeCondition):
    comparator: Literal["percent_change_below"] = Comparator.PERCENT_CHANGE_BELOW.value

    def is_met(self, observed: float) -> bool:
        return observed < self.threshold


RuleCondition = Annotated[
    Union[PriceAbove, PriceBelow, PercentChangeAbove, PercentChangeBelow],
    Field(discriminator="comparator"),
]

_condition_adapter = TypeAdapter(RuleCondition)

COMPARATORS = frozenset(c.value for c in Comparator)


def parse_condition(comparator: Any, threshold: Any) -> RuleCondition:
    """
    Build a validated condition from a comparator tag and threshold.

    Args:
        comparator: One of the Comparator values
        threshold: Numeric threshold in the comparator's domain

    Returns:
        The matching condition model

    Raises:
        UnknownComparator: If the tag is outside the closed set
        InvalidThreshold: If the threshold is missing, non-numeric or out of range
    """
    if isinstance(comparator, Comparator):
        comparator = comparator.value
    if comparator not in COMPARATORS:
        raise UnknownComparator(comparator)

    if isinstance(threshold, bool):
        raise InvalidThreshold(comparator, threshold, "threshold must be a number")

    try:
        return _condition_adapter.validate_python(
            {"comparator": comparator, "threshold": threshold}
        )
    except ValidationError as e:
        reason = e.errors()[0].get("msg", "invalid threshold")
        raise InvalidThreshold(comparator, threshold, reason)
