"""Watchlist store: per-user groups and instrument memberships."""

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...exceptions import (
    AlreadyWatched,
    DuplicateGroupName,
    GroupNotFound,
    InvalidPosition,
    MembershipNotFound,
    UnknownInstrument,
)
from ...ormdb.database import get_session_factory
from ...ormdb.repositories import (
    ANY_GROUP,
    InstrumentRepository,
    WatchGroupRepository,
    WatchMembershipRepository,
)
from .models import MembershipView, WatchGroupView

logger = get_logger(__name__)

MAX_GROUP_NAME_LENGTH = 50

PriceInput = Union[Decimal, str, int, float, None]


class WatchlistService:
    """Service for a user's watchlist groups and memberships.

    Every operation takes the acting user's id explicitly and only ever
    touches rows owned by that user.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()
        self.logger = logger.bind(service="watchlist_service")

    # Groups

    def list_groups(self, user_id: str) -> List[WatchGroupView]:
        """List the user's groups in display order."""
        with self._session_factory() as session:
            with WatchGroupRepository(session) as repo:
                return [WatchGroupView.model_validate(g) for g in repo.list_for_user(user_id)]

    def create_group(self, user_id: str, name: str) -> WatchGroupView:
        """
        Create a group for the user.

        Raises:
            ValueError: If the name is empty or too long
            DuplicateGroupName: If the user already has a group with this name
        """
        name = _clean_group_name(name)

        with self._session_factory() as session:
            with WatchGroupRepository(session) as repo:
                if repo.name_taken(user_id, name):
                    raise DuplicateGroupName(name)
                try:
                    group = repo.create(user_id, name)
                except IntegrityError:
                    session.rollback()
                    raise DuplicateGroupName(name)

                self.logger.info(
                    "Watch group created", user_id=user_id, group_id=group.id
                )
                return WatchGroupView.model_validate(group)

    def rename_group(self, user_id: str, group_id: int, name: str) -> WatchGroupView:
        """
        Rename one of the user's groups.

        Raises:
            GroupNotFound: If the user owns no such group
            DuplicateGroupName: If another of the user's groups has this name
        """
        name = _clean_group_name(name)

        with self._session_factory() as session:
            with WatchGroupRepository(session) as repo:
                group = repo.get_for_user(user_id, group_id)
                if group is None:
                    raise GroupNotFound(group_id)
                if repo.name_taken(user_id, name, exclude_id=group_id):
                    raise DuplicateGroupName(name)
                try:
                    group = repo.rename(group, name)
                except IntegrityError:
                    session.rollback()
                    raise DuplicateGroupName(name)
                return WatchGroupView.model_validate(group)

    def delete_group(self, user_id: str, group_id: int) -> int:
        """
        Delete a group; its memberships become ungrouped, never deleted.

        Returns:
            Number of memberships moved to ungrouped
        """
        with self._session_factory() as session:
            with WatchGroupRepository(session) as repo:
                group = repo.get_for_user(user_id, group_id)
                if group is None:
                    raise GroupNotFound(group_id)
                reassigned = repo.delete(group)

        self.logger.info(
            "Watch group deleted",
            user_id=user_id,
            group_id=group_id,
            reassigned=reassigned,
        )
        return reassigned

    # Memberships

    def list_memberships(
        self, user_id: str, group_filter: Any = ANY_GROUP
    ) -> List[MembershipView]:
        """
        List the user's watched instruments.

        Args:
            user_id: Acting user
            group_filter: ANY_GROUP for everything, None for ungrouped only,
                or a group id

        Returns:
            Memberships joined with catalog details, newest first
        """
        with self._session_factory() as session:
            with WatchMembershipRepository(session) as repo:
                rows = repo.list_with_details(user_id, group_filter)
                return [
                    MembershipView.from_row(membership, instrument, group_name)
                    for membership, instrument, group_name in rows
                ]

    def add_membership(
        self,
        user_id: str,
        instrument_code: str,
        group_id: Optional[int] = None,
        cost_price: PriceInput = None,
        quantity: Optional[int] = None,
    ) -> MembershipView:
        """
        Start watching an instrument.

        Raises:
            UnknownInstrument: If the code is not in the active catalog
            AlreadyWatched: If the user already watches this instrument
            GroupNotFound: If group_id is not one of the user's groups
            InvalidPosition: If cost price and quantity are inconsistent
        """
        instrument_code = instrument_code.strip().upper()
        cost_price, quantity = validate_position(cost_price, quantity)

        with self._session_factory() as session:
            if not InstrumentRepository(session).is_active(instrument_code):
                raise UnknownInstrument(instrument_code)

            if group_id is not None and WatchGroupRepository(session).get_for_user(
                user_id, group_id
            ) is None:
                raise GroupNotFound(group_id)

            with WatchMembershipRepository(session) as repo:
                if repo.get(user_id, instrument_code) is not None:
                    raise AlreadyWatched(user_id, instrument_code)
                try:
                    membership = repo.add(
                        user_id, instrument_code, group_id, cost_price, quantity
                    )
                except IntegrityError:
                    # Lost a race with a concurrent add of the same pair
                    session.rollback()
                    raise AlreadyWatched(user_id, instrument_code)

                self.logger.info(
                    "Instrument watched",
                    user_id=user_id,
                    instrument_code=instrument_code,
                    group_id=group_id,
                )
                return self._view(membership)

    def remove_membership(self, user_id: str, instrument_code: str) -> None:
        """Stop watching an instrument."""
        with self._session_factory() as session:
            with WatchMembershipRepository(session) as repo:
                membership = repo.get(user_id, instrument_code)
                if membership is None:
                    raise MembershipNotFound(instrument_code)
                repo.remove(membership)

        self.logger.info(
            "Instrument unwatched", user_id=user_id, instrument_code=instrument_code
        )

    def move_membership(
        self, user_id: str, instrument_code: str, new_group_id: Optional[int]
    ) -> MembershipView:
        """Move a watched instrument to another group (None for ungrouped)."""
        with self._session_factory() as session:
            if new_group_id is not None and WatchGroupRepository(session).get_for_user(
                user_id, new_group_id
            ) is None:
                raise GroupNotFound(new_group_id)

            with WatchMembershipRepository(session) as repo:
                membership = repo.get(user_id, instrument_code)
                if membership is None:
                    raise MembershipNotFound(instrument_code)
                membership = repo.set_group(membership, new_group_id)
                return self._view(membership)

    def update_position(
        self,
        user_id: str,
        instrument_code: str,
        cost_price: PriceInput,
        quantity: Optional[int],
    ) -> MembershipView:
        """Set or clear the cost basis and quantity on a membership."""
        cost_price, quantity = validate_position(cost_price, quantity)

        with self._session_factory() as session:
            with WatchMembershipRepository(session) as repo:
                membership = repo.get(user_id, instrument_code)
                if membership is None:
                    raise MembershipNotFound(instrument_code)
                membership = repo.set_position(membership, cost_price, quantity)
                return self._view(membership)

    def _view(self, membership) -> MembershipView:
        group_name = membership.group.name if membership.group is not None else None
        return MembershipView.from_row(membership, membership.instrument, group_name)


def _clean_group_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Group name is required")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        raise ValueError(
            f"Group name must be at most {MAX_GROUP_NAME_LENGTH} characters"
        )
    return name


def validate_position(
    cost_price: PriceInput, quantity: Optional[int]
) -> Tuple[Optional[Decimal], Optional[int]]:
    """
    Normalise a position annotation.

    Cost price and quantity must both be positive, or both be empty.

    Raises:
        InvalidPosition: On a half-set or non-positive position
    """
    if cost_price is None and quantity is None:
        return None, None

    if cost_price is None or quantity is None:
        raise InvalidPosition(
            "Cost price and quantity must both be set, or both be empty"
        )

    try:
        price = Decimal(str(cost_price))
    except (InvalidOperation, ValueError):
        raise InvalidPosition(f"Cost price {cost_price!r} is not a number")

    if not price.is_finite() or price <= 0:
        raise InvalidPosition("Cost price must be a positive number")

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidPosition("Quantity must be a positive integer")

    return price, quantity
