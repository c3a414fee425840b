"""Repository for the shared instrument catalog."""

from typing import Any, Dict, List, Optional, Set

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from ...utils.clock import utcnow
from ..models import Instrument
from .base import BaseRepository

UPSERT_NEW = "new"
UPSERT_UPDATED = "updated"
UPSERT_UNCHANGED = "unchanged"


class InstrumentRepository(BaseRepository):
    """Repository for instrument catalog operations."""

    def get_by_code(self, ts_code: str) -> Optional[Instrument]:
        """Get an instrument by its exchange-qualified code."""
        return (
            self.session.query(Instrument)
            .filter(Instrument.ts_code == ts_code.upper())
            .first()
        )

    def is_active(self, ts_code: str) -> bool:
        """Check whether a code is present and active in the catalog."""
        return (
            self.session.query(Instrument.id)
            .filter(Instrument.ts_code == ts_code.upper(), Instrument.is_active == True)
            .first()
            is not None
        )

    def get_active_codes(self) -> Set[str]:
        """Get the codes of all active instruments."""
        rows = self.session.execute(
            select(Instrument.ts_code).where(Instrument.is_active == True)
        )
        return {row[0] for row in rows}

    def upsert(self, fields: Dict[str, Any], fingerprint: str) -> str:
        """
        Insert or update one instrument in its own transaction.

        Args:
            fields: Column values keyed by attribute name, including ts_code
            fingerprint: Content hash over the mutable fields

        Returns:
            One of "new", "updated" or "unchanged"
        """
        ts_code = fields["ts_code"]
        existing = self.get_by_code(ts_code)

        if existing is None:
            instrument = Instrument(fingerprint=fingerprint, is_active=True, **fields)
            self.session.add(instrument)
            try:
                self.session.commit()
                return UPSERT_NEW
            except IntegrityError:
                # A concurrent sync inserted the same code first
                self.session.rollback()
                existing = self.get_by_code(ts_code)
                if existing is None:
                    raise

        if existing.fingerprint == fingerprint and existing.is_active:
            self.session.rollback()
            return UPSERT_UNCHANGED

        for key, value in fields.items():
            setattr(existing, key, value)
        existing.fingerprint = fingerprint
        existing.is_active = True
        existing.updated_at = utcnow()
        self.session.commit()
        return UPSERT_UPDATED

    def deactivate(self, ts_code: str) -> bool:
        """Mark an instrument inactive; rows are never deleted."""
        result = self.session.execute(
            update(Instrument)
            .where(Instrument.ts_code == ts_code, Instrument.is_active == True)
            .values(is_active=False, updated_at=utcnow())
        )
        self.session.commit()
        return result.rowcount == 1

    def search(self, keyword: str, limit: int = 20) -> List[Instrument]:
        """Case-insensitive substring search on code, symbol and name."""
        pattern = f"%{keyword}%"
        return (
            self.session.query(Instrument)
            .filter(
                Instrument.is_active == True,
                or_(
                    Instrument.ts_code.ilike(pattern),
                    Instrument.symbol.ilike(pattern),
                    Instrument.name.ilike(pattern),
                ),
            )
            .order_by(Instrument.ts_code)
            .limit(limit)
            .all()
        )
