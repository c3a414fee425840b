"""Repository for watchlist group operations."""

from typing import List, Optional

from sqlalchemy import func, update

from ..models import WatchGroup, WatchMembership
from .base import BaseRepository


class WatchGroupRepository(BaseRepository):
    """Repository for watchlist group operations."""

    def list_for_user(self, user_id: str) -> List[WatchGroup]:
        """Get all groups owned by a user, in display order."""
        return (
            self.session.query(WatchGroup)
            .filter(WatchGroup.user_id == user_id)
            .order_by(WatchGroup.sort_order, WatchGroup.id)
            .all()
        )

    def get_for_user(self, user_id: str, group_id: int) -> Optional[WatchGroup]:
        """Get a group only if the user owns it."""
        return (
            self.session.query(WatchGroup)
            .filter(WatchGroup.id == group_id, WatchGroup.user_id == user_id)
            .first()
        )

    def name_taken(
        self, user_id: str, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        """Check whether the user already has a group with this name."""
        query = self.session.query(WatchGroup.id).filter(
            WatchGroup.user_id == user_id, WatchGroup.name == name
        )
        if exclude_id is not None:
            query = query.filter(WatchGroup.id != exclude_id)
        return query.first() is not None

    def create(self, user_id: str, name: str) -> WatchGroup:
        """Create a group after the user's last one."""
        max_order = (
            self.session.query(func.max(WatchGroup.sort_order))
            .filter(WatchGroup.user_id == user_id)
            .scalar()
        )
        group = WatchGroup(
            user_id=user_id, name=name, sort_order=(max_order or 0) + 1
        )
        return self._persist(group)

    def rename(self, group: WatchGroup, name: str) -> WatchGroup:
        """Rename a group."""
        group.name = name
        return self._persist(group)

    def delete(self, group: WatchGroup) -> int:
        """
        Delete a group, moving its memberships to ungrouped.

        Returns:
            Number of memberships reassigned
        """
        result = self.session.execute(
            update(WatchMembership)
            .where(
                WatchMembership.group_id == group.id,
                WatchMembership.user_id == group.user_id,
            )
            .values(group_id=None)
        )
        self.session.delete(group)
        self.session.commit()
        return result.rowcount
