"""Instrument catalog synchronisation and lookup."""

import asyncio
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...exceptions import PartialSync, UpstreamUnavailable
from ...ormdb.database import get_session_factory
from ...ormdb.repositories import InstrumentRepository
from ...ormdb.repositories.instrument import UPSERT_NEW, UPSERT_UPDATED
from .models import CatalogSyncResult, InstrumentRecord, InstrumentView
from .provider import InstrumentProvider, TushareInstrumentProvider

logger = get_logger(__name__)

MAX_SEARCH_LIMIT = 50


class CatalogService:
    """Keeps the shared instrument catalog in step with the upstream listing."""

    def __init__(
        self,
        provider: Optional[InstrumentProvider] = None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        self._provider = provider
        self._session_factory = session_factory or get_session_factory()
        self.logger = logger.bind(service="catalog_service")

    @property
    def provider(self) -> InstrumentProvider:
        if self._provider is None:
            self._provider = TushareInstrumentProvider.from_settings()
        return self._provider

    async def sync(self, strict: bool = False) -> CatalogSyncResult:
        """
        Reconcile the persisted catalog against the upstream listing.

        Each record is upserted in its own transaction on a worker thread, so
        neither readers nor the event loop wait on the whole sync. Instruments missing upstream are deactivated.

        Args:
            strict: Raise PartialSync after applying the good records if any
                record failed

        Returns:
            CatalogSyncResult with new/updated/unchanged counts

        Raises:
            UpstreamUnavailable: If the provider cannot be reached or returns
                an empty listing
            PartialSync: Only when strict is set and some records failed
        """
        provider_name = getattr(self.provider, "name", type(self.provider).__name__)
        self.logger.info("Catalog sync started", provider=provider_name)

        rows = await self.provider.fetch_listing()
        if not rows:
            # An empty listing would otherwise deactivate the entire catalog
            raise UpstreamUnavailable(provider_name, "empty instrument listing")

        result = CatalogSyncResult(total=len(rows))
        seen_codes = set()

        for index, row in enumerate(rows):
            raw_code = row.get("ts_code") if isinstance(row, dict) else None
            if isinstance(raw_code, str) and raw_code.strip():
                seen_codes.add(raw_code.strip().upper())

            try:
                record = InstrumentRecord.model_validate(row)
            except ValidationError as e:
                result.failed.append(raw_code or f"row:{index}")
                self.logger.warning(
                    "Skipping unparseable instrument record",
                    row_index=index,
                    ts_code=raw_code,
                    errors=e.error_count(),
                )
                continue

            try:
                outcome = await asyncio.to_thread(self._upsert, record)
            except SQLAlchemyError as e:
                result.failed.append(record.ts_code)
                self.logger.error(
                    "Instrument upsert failed",
                    ts_code=record.ts_code,
                    error=str(e),
                    exc_info=True,
                )
                continue

            if outcome == UPSERT_NEW:
                result.new += 1
            elif outcome == UPSERT_UPDATED:
                result.updated += 1
            else:
                result.unchanged += 1

        result.deactivated = await asyncio.to_thread(self._deactivate_missing, seen_codes)

        log = self.logger.warning if result.partial else self.logger.info
        log("Catalog sync completed", **result.to_dict())

        if strict and result.partial:
            raise PartialSync(result)

        return result

    def _upsert(self, record: InstrumentRecord) -> str:
        with self._session_factory() as session:
            with InstrumentRepository(session) as repo:
                return repo.upsert(record.to_columns(), record.fingerprint())

    def _deactivate_missing(self, seen_codes: set) -> int:
        with self._session_factory() as session:
            with InstrumentRepository(session) as repo:
                stale = repo.get_active_codes() - seen_codes
                deactivated = 0
                for ts_code in sorted(stale):
                    if repo.deactivate(ts_code):
                        deactivated += 1
                        self.logger.info("Instrument delisted", ts_code=ts_code)
                return deactivated

    def search(self, keyword: str, limit: int = 20) -> List[InstrumentView]:
        """
        Search active instruments by code, symbol or name.

        Args:
            keyword: Substring to match, case-insensitive
            limit: Maximum number of results (1-50)

        Returns:
            Matching instruments ordered by code
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValueError("Keyword is required")
        if limit < 1 or limit > MAX_SEARCH_LIMIT:
            raise ValueError(f"Limit must be between 1 and {MAX_SEARCH_LIMIT}")

        with self._session_factory() as session:
            with InstrumentRepository(session) as repo:
                return [
                    InstrumentView.model_validate(instrument)
                    for instrument in repo.search(keyword, limit)
                ]

    def get_instrument(self, ts_code: str) -> Optional[InstrumentView]:
        """Look up one instrument, active or not."""
        with self._session_factory() as session:
            with InstrumentRepository(session) as repo:
                instrument = repo.get_by_code(ts_code)
                return InstrumentView.model_validate(instrument) if instrument else None
