"""API routers for stockwatch."""

from .admin import router as admin_router
from .alerts import router as alerts_router
from .instruments import router as instruments_router
from .rules import router as rules_router
from .watchlist import router as watchlist_router

__all__ = [
    "admin_router",
    "alerts_router",
    "instruments_router",
    "rules_router",
    "watchlist_router",
]
