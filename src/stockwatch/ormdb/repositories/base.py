"""Session handling shared by all repositories."""

from typing import Optional, TypeVar

from sqlalchemy.orm import Session

from ..database import get_session_sync

ModelT = TypeVar("ModelT")


class BaseRepository:
    """
    Base class for repositories.

    A repository either borrows the caller's session, which the caller keeps
    owning, or opens a private one that is closed when the repository is
    used as a context manager.
    """

    def __init__(self, session: Optional[Session] = None):
        self._owns_session = session is None
        self.session = session if session is not None else get_session_sync()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # A failed operation must not leave a half-open transaction behind
        if exc_type is not None and self.session.in_transaction():
            self.session.rollback()
        if self._owns_session:
            self.session.close()

    def _persist(self, instance: ModelT) -> ModelT:
        """Commit pending changes and reload the row, including defaults."""
        self.session.add(instance)
        self.session.commit()
        self.session.refresh(instance)
        return instance
