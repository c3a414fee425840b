"""Repository classes for database operations using SQLAlchemy ORM."""

from .alert_record import AlertRecordRepository
from .base import BaseRepository
from .instrument import InstrumentRepository
from .monitor_rule import MonitorRuleRepository
from .watch_group import WatchGroupRepository
from .watch_membership import ANY_GROUP, WatchMembershipRepository

__all__ = [
    "ANY_GROUP",
    "AlertRecordRepository",
    "BaseRepository",
    "InstrumentRepository",
    "MonitorRuleRepository",
    "WatchGroupRepository",
    "WatchMembershipRepository",
]
