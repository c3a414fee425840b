"""Time helpers: naive-UTC timestamps and A-share trading sessions."""

from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

MARKET_TZ = ZoneInfo("Asia/Shanghai")

# Continuous auction sessions on SSE/SZSE/BSE
TRADING_SESSIONS = (
    (time(9, 30), time(11, 30)),
    (time(13, 0), time(15, 0)),
)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_within_trading_hours(now: Optional[datetime] = None) -> bool:
    """
    Check whether the exchanges are in a continuous trading session.

    Args:
        now: Aware datetime to check (defaults to the current time)

    Returns:
        True on a weekday between 09:30-11:30 or 13:00-15:00 Beijing time
    """
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(MARKET_TZ)

    if local.weekday() >= 5:
        return False

    current = local.time()
    return any(start <= current <= end for start, end in TRADING_SESSIONS)
