"""Repository for watchlist membership operations."""

from decimal import Decimal
from typing import Any, List, Optional, Tuple

from sqlalchemy import desc

from ..models import Instrument, WatchGroup, WatchMembership
from .base import BaseRepository

# Group filter meaning "every membership, grouped or not"
ANY_GROUP: Any = object()


class WatchMembershipRepository(BaseRepository):
    """Repository for watchlist membership operations."""

    def get(self, user_id: str, instrument_code: str) -> Optional[WatchMembership]:
        """Get the user's membership for an instrument."""
        return (
            self.session.query(WatchMembership)
            .filter(
                WatchMembership.user_id == user_id,
                WatchMembership.instrument_code == instrument_code.upper(),
            )
            .first()
        )

    def list_with_details(
        self, user_id: str, group_filter: Any = ANY_GROUP
    ) -> List[Tuple[WatchMembership, Instrument, Optional[str]]]:
        """
        List memberships joined with catalog fields and group name.

        Args:
            user_id: Owner of the memberships
            group_filter: ANY_GROUP for all, None for ungrouped, or a group id

        Returns:
            Tuples of (membership, instrument, group name), newest first
        """
        query = (
            self.session.query(WatchMembership, Instrument, WatchGroup.name)
            .join(Instrument, WatchMembership.instrument_code == Instrument.ts_code)
            .outerjoin(WatchGroup, WatchMembership.group_id == WatchGroup.id)
            .filter(WatchMembership.user_id == user_id)
        )

        if group_filter is None:
            query = query.filter(WatchMembership.group_id.is_(None))
        elif group_filter is not ANY_GROUP:
            query = query.filter(WatchMembership.group_id == group_filter)

        return query.order_by(
            desc(WatchMembership.added_at), desc(WatchMembership.id)
        ).all()

    def add(
        self,
        user_id: str,
        instrument_code: str,
        group_id: Optional[int] = None,
        cost_price: Optional[Decimal] = None,
        quantity: Optional[int] = None,
    ) -> WatchMembership:
        """Add a membership; the unique constraint rejects duplicates."""
        membership = WatchMembership(
            user_id=user_id,
            instrument_code=instrument_code.upper(),
            group_id=group_id,
            cost_price=cost_price,
            quantity=quantity,
        )
        return self._persist(membership)

    def remove(self, membership: WatchMembership) -> None:
        """Delete a membership."""
        self.session.delete(membership)
        self.session.commit()

    def set_group(
        self, membership: WatchMembership, group_id: Optional[int]
    ) -> WatchMembership:
        """Move a membership to another group in place."""
        membership.group_id = group_id
        return self._persist(membership)

    def set_position(
        self,
        membership: WatchMembership,
        cost_price: Optional[Decimal],
        quantity: Optional[int],
    ) -> WatchMembership:
        """Update the position annotation on a membership."""
        membership.cost_price = cost_price
        membership.quantity = quantity
        return self._persist(membership)
