"""Alert history: the fired alerts kept for each user."""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...exceptions import AlertNotFound
from ...ormdb.database import get_session_factory
from ...ormdb.repositories import AlertRecordRepository
from .models import AlertPage, AlertView

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class AlertHistoryService:
    """Owner-scoped reads and read-marking over the alert history."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()
        self.logger = logger.bind(service="alert_history_service")

    def list_alerts(
        self,
        user_id: str,
        read: Optional[bool] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> AlertPage:
        """
        Page through the user's alerts, newest first.

        Args:
            user_id: Owner of the alerts
            read: Only read (True) or unread (False) alerts; None for both
            limit: Page size (1-200)
            offset: Number of alerts to skip

        Raises:
            ValueError: If limit or offset is out of range
        """
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValueError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("Offset must not be negative")

        with self._session_factory() as session:
            with AlertRecordRepository(session) as repo:
                rows = repo.list_for_user(user_id, read, limit, offset)
                return AlertPage(
                    alerts=[AlertView.from_row(alert, name) for alert, name in rows],
                    total=repo.count_for_user(user_id, read),
                    unread=repo.count_for_user(user_id, read=False),
                    limit=limit,
                    offset=offset,
                )

    def mark_read(self, user_id: str, alert_id: int) -> AlertView:
        """Mark one of the user's alerts as read; already read is a no-op."""
        with self._session_factory() as session:
            with AlertRecordRepository(session) as repo:
                alert = repo.get_for_user(user_id, alert_id)
                if alert is None:
                    raise AlertNotFound(alert_id)
                if not alert.read:
                    alert = repo.mark_read(alert)
                return AlertView.model_validate(alert)

    def mark_all_read(self, user_id: str) -> int:
        """Mark all of the user's alerts as read; returns how many changed."""
        with self._session_factory() as session:
            with AlertRecordRepository(session) as repo:
                changed = repo.mark_all_read(user_id)

        self.logger.info("Alerts marked read", user_id=user_id, changed=changed)
        return changed
