"""SQLAlchemy ORM models for the watchlist and alert-rule core."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..utils.clock import utcnow
from .database import Base


class Comparator(str, Enum):
    """Closed set of rule comparators."""

    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PERCENT_CHANGE_ABOVE = "percent_change_above"
    PERCENT_CHANGE_BELOW = "percent_change_below"


class Recurrence(str, Enum):
    """Whether a rule stays armed after it fires."""

    ONE_SHOT = "one_shot"
    RECURRING = "recurring"


class RuleState(str, Enum):
    """Lifecycle states of a monitor rule."""

    ARMED = "armed"
    FIRED = "fired"
    DISARMED = "disarmed"


class Instrument(Base):
    """Tradable instrument in the shared catalog."""

    __tablename__ = "instruments"

    id = Column(Integer, primary_key=True, index=True)
    ts_code = Column(String(16), unique=True, nullable=False, index=True)
    symbol = Column(String(16), nullable=False)
    name = Column(String(100), nullable=False)
    area = Column(String(50), nullable=True)
    industry = Column(String(100), nullable=True)
    market = Column(String(50), nullable=True)
    list_date = Column(String(8), nullable=True)  # YYYYMMDD
    fingerprint = Column(String(64), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_instruments_name", "name"),)

    def __repr__(self):
        return f"<Instrument(ts_code='{self.ts_code}', name='{self.name}', active={self.is_active})>"


class WatchGroup(Base):
    """User-defined watchlist group."""

    __tablename__ = "watch_groups"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    memberships = relationship("WatchMembership", back_populates="group")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_watch_groups_user_name"),
    )

    def __repr__(self):
        return f"<WatchGroup(id={self.id}, user_id='{self.user_id}', name='{self.name}')>"


class WatchMembership(Base):
    """A user's watch on one instrument; group_id NULL means ungrouped."""

    __tablename__ = "watch_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    instrument_code = Column(
        String(16), ForeignKey("instruments.ts_code"), nullable=False, index=True
    )
    group_id = Column(
        Integer,
        ForeignKey("watch_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    cost_price = Column(Numeric(18, 4), nullable=True)
    quantity = Column(Integer, nullable=True)
    added_at = Column(DateTime, default=utcnow, nullable=False)

    group = relationship("WatchGroup", back_populates="memberships")
    instrument = relationship("Instrument")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "instrument_code", name="uq_watch_memberships_user_instrument"
        ),
    )

    def __repr__(self):
        return f"<WatchMembership(user_id='{self.user_id}', instrument='{self.instrument_code}', group_id={self.group_id})>"


class MonitorRule(Base):
    """Alert rule bound to one instrument."""

    __tablename__ = "monitor_rules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    # No foreign key: rules outlive delisting and are reported as stale
    instrument_code = Column(String(16), nullable=False, index=True)
    comparator = Column(String(32), nullable=False)
    threshold = Column(Float, nullable=False)
    recurrence = Column(String(16), default=Recurrence.ONE_SHOT.value, nullable=False)
    state = Column(String(16), default=RuleState.ARMED.value, nullable=False)
    # Predicate value from the previous evaluation cycle; NULL is unknown
    condition_met = Column(Boolean, nullable=True)
    last_fired_at = Column(DateTime, nullable=True)
    # Bumped on every user edit; fire claims only match the revision they read
    revision = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_monitor_rules_state_instrument", "state", "instrument_code"),
    )

    def __repr__(self):
        return f"<MonitorRule(id={self.id}, {self.instrument_code} {self.comparator} {self.threshold}, state='{self.state}')>"


class AlertRecord(Base):
    """A fired alert kept in the owner's alert history."""

    __tablename__ = "alert_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(36), unique=True, nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    # Kept after the rule is deleted
    rule_id = Column(Integer, nullable=True, index=True)
    instrument_code = Column(String(16), nullable=False)
    comparator = Column(String(32), nullable=False)
    threshold = Column(Float, nullable=False)
    observed = Column(Float, nullable=False)
    recurrence = Column(String(16), nullable=False)
    fired_at = Column(DateTime, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    # NULL until the dispatch outcome is known
    notified = Column(Boolean, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_alert_events_user_read_fired", "user_id", "read", "fired_at"),
    )

    def __repr__(self):
        return f"<AlertRecord(id={self.id}, rule_id={self.rule_id}, {self.instrument_code} read={self.read})>"
