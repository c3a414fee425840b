"""Repository for the per-user alert history."""

from typing import List, Optional, Tuple

from sqlalchemy import desc, update

from ..models import AlertRecord, Instrument
from .base import BaseRepository


class AlertRecordRepository(BaseRepository):
    """Repository for fired alert history."""

    def _owned(self, user_id: str, read: Optional[bool] = None):
        query = self.session.query(AlertRecord).filter(AlertRecord.user_id == user_id)
        if read is not None:
            query = query.filter(AlertRecord.read == read)
        return query

    def list_for_user(
        self,
        user_id: str,
        read: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Tuple[AlertRecord, Optional[str]]]:
        """
        Page through a user's alerts, newest first.

        Returns:
            Tuples of (alert, instrument name); the name is None when the
            instrument is no longer in the catalog
        """
        return (
            self._owned(user_id, read)
            .add_columns(Instrument.name)
            .outerjoin(Instrument, AlertRecord.instrument_code == Instrument.ts_code)
            .order_by(desc(AlertRecord.fired_at), desc(AlertRecord.id))
            .limit(limit)
            .offset(offset)
            .all()
        )

    def count_for_user(self, user_id: str, read: Optional[bool] = None) -> int:
        return self._owned(user_id, read).count()

    def get_for_user(self, user_id: str, alert_id: int) -> Optional[AlertRecord]:
        """Get an alert only if the user owns it."""
        return self._owned(user_id).filter(AlertRecord.id == alert_id).first()

    def mark_read(self, alert: AlertRecord) -> AlertRecord:
        alert.read = True
        return self._persist(alert)

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread alert of the user as read; returns how many changed."""
        result = self.session.execute(
            update(AlertRecord)
            .where(AlertRecord.user_id == user_id, AlertRecord.read == False)
            .values(read=True)
        )
        self.session.commit()
        return result.rowcount

    def set_notified(self, event_id: str, notified: bool) -> None:
        """Record the dispatch outcome of a fired alert."""
        self.session.execute(
            update(AlertRecord)
            .where(AlertRecord.event_id == event_id)
            .values(notified=notified)
        )
        self.session.commit()
