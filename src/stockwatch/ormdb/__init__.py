"""Database module for SQLAlchemy ORM integration."""

from .database import (
    Base,
    check_database_health,
    create_tables,
    get_engine,
    get_session_factory,
    get_session_sync,
)
from .models import (
    AlertRecord,
    Comparator,
    Instrument,
    MonitorRule,
    Recurrence,
    RuleState,
    WatchGroup,
    WatchMembership,
)
from .repositories import (
    ANY_GROUP,
    AlertRecordRepository,
    InstrumentRepository,
    MonitorRuleRepository,
    WatchGroupRepository,
    WatchMembershipRepository,
)

__all__ = [
    # Database components
    "Base",
    "check_database_health",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "get_session_sync",
    # Models
    "AlertRecord",
    "Comparator",
    "Instrument",
    "MonitorRule",
    "Recurrence",
    "RuleState",
    "WatchGroup",
    "WatchMembership",
    # Repositories
    "ANY_GROUP",
    "AlertRecordRepository",
    "InstrumentRepository",
    "MonitorRuleRepository",
    "WatchGroupRepository",
    "WatchMembershipRepository",
]
