"""Instrument catalog synchronisation."""

from .models import CatalogSyncResult, InstrumentRecord, InstrumentView
from .provider import InstrumentProvider, TushareInstrumentProvider
from .service import CatalogService

__all__ = [
    "CatalogService",
    "CatalogSyncResult",
    "InstrumentProvider",
    "InstrumentRecord",
    "InstrumentView",
    "TushareInstrumentProvider",
]
