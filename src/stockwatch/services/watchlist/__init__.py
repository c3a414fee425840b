"""Per-user watchlist groups and memberships."""

from ...ormdb.repositories import ANY_GROUP
from .models import MembershipView, WatchGroupView
from .service import WatchlistService, validate_position

__all__ = [
    "ANY_GROUP",
    "MembershipView",
    "WatchGroupView",
    "WatchlistService",
    "validate_position",
]
