"""Domain exception hierarchy for the watchlist and alert-rule core."""

from typing import Any, Dict, Optional


class StockWatchError(Exception):
    """Base exception for stockwatch domain errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class UpstreamUnavailable(StockWatchError):
    """The upstream data provider could not be reached or answered badly."""

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"{provider} unavailable: {message}",
            status_code=503,
            details={"provider": provider},
        )


class PartialSync(StockWatchError):
    """Some upstream records failed to parse; the rest were applied."""

    def __init__(self, result: Any):
        failed = list(getattr(result, "failed", []))
        super().__init__(
            message=f"Catalog sync completed with {len(failed)} unparseable records",
            status_code=207,
            details={"failed": failed},
        )
        self.result = result


class UnknownInstrument(StockWatchError):
    """The instrument code is not present in the active catalog."""

    def __init__(self, instrument_code: str):
        super().__init__(
            message=f"Instrument '{instrument_code}' is not in the active catalog",
            status_code=404,
            details={"instrument_code": instrument_code},
        )


class AlreadyWatched(StockWatchError):
    """The user already watches this instrument."""

    def __init__(self, user_id: str, instrument_code: str):
        super().__init__(
            message=f"Instrument '{instrument_code}' is already watched",
            status_code=409,
            details={"user_id": user_id, "instrument_code": instrument_code},
        )


class InvalidThreshold(StockWatchError):
    """Threshold outside the comparator's domain."""

    def __init__(self, comparator: str, threshold: Any, reason: str):
        super().__init__(
            message=f"Invalid threshold {threshold!r} for {comparator}: {reason}",
            status_code=422,
            details={"comparator": comparator, "threshold": threshold},
        )


class UnknownComparator(StockWatchError):
    """Comparator tag outside the closed set."""

    def __init__(self, comparator: Any):
        super().__init__(
            message=f"Unknown comparator '{comparator}'",
            status_code=422,
            details={"comparator": comparator},
        )


class InvalidRecurrence(StockWatchError):
    """Recurrence mode outside one_shot / recurring."""

    def __init__(self, recurrence: Any):
        super().__init__(
            message=f"Unknown recurrence mode '{recurrence}'",
            status_code=422,
            details={"recurrence": recurrence},
        )


class InvalidPosition(StockWatchError):
    """Cost price and quantity must be both positive or both empty."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=422)


class MissingBaseline(StockWatchError):
    """Percent-change rule evaluated without a usable previous close."""

    def __init__(self, rule_id: int, instrument_code: str):
        super().__init__(
            message=f"No previous close for {instrument_code} (rule {rule_id})",
            status_code=422,
            details={"rule_id": rule_id, "instrument_code": instrument_code},
        )


class NotFoundError(StockWatchError):
    """Resource missing, or owned by another user."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)},
        )


class GroupNotFound(NotFoundError):
    def __init__(self, group_id: Any):
        super().__init__("WatchGroup", group_id)


class MembershipNotFound(NotFoundError):
    def __init__(self, instrument_code: str):
        super().__init__("WatchMembership", instrument_code)


class RuleNotFound(NotFoundError):
    def __init__(self, rule_id: Any):
        super().__init__("MonitorRule", rule_id)


class DuplicateGroupName(StockWatchError):
    """The user already owns a group with this name."""

    def __init__(self, name: str):
        super().__init__(
            message=f"Group name '{name}' already exists",
            status_code=409,
            details={"name": name},
        )


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: Any):
        super().__init__("Alert", alert_id)
