"""Scheduled price evaluation: fetch quotes for armed rules and evaluate."""

import asyncio
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...config.settings import get_settings
from ...ormdb.database import get_session_factory
from ...ormdb.repositories import MonitorRuleRepository
from ...utils.clock import is_within_trading_hours
from ..pricing.provider import PriceProvider, SinaQuoteProvider
from .engine import RuleEvaluationEngine
from .models import EvaluationResult

logger = get_logger(__name__)


class PriceEvaluationJob:
    """Fetches a price snapshot for every armed rule and runs the engine."""

    def __init__(
        self,
        engine: Optional[RuleEvaluationEngine] = None,
        price_provider: Optional[PriceProvider] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        enforce_trading_hours: Optional[bool] = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self.engine = engine or RuleEvaluationEngine(session_factory=self._session_factory)
        self.price_provider = price_provider or SinaQuoteProvider.from_settings()
        self.enforce_trading_hours = (
            get_settings().enforce_trading_hours
            if enforce_trading_hours is None
            else enforce_trading_hours
        )
        self.logger = logger.bind(job="price_evaluation")

    async def run(self, force: bool = False) -> Optional[EvaluationResult]:
        """
        Run one cycle.

        Args:
            force: Evaluate even outside trading hours

        Returns:
            EvaluationResult, or None when the cycle was skipped
        """
        if self.enforce_trading_hours and not force and not is_within_trading_hours():
            self.logger.debug("Outside trading hours, skipping evaluation")
            return None

        codes = await asyncio.to_thread(self._armed_instrument_codes)
        if not codes:
            self.logger.debug("No armed rules to evaluate")
            return None

        snapshot = await self.price_provider.fetch_quotes(codes)
        if snapshot.failed:
            self.logger.warning(
                "Some quotes unavailable", failed=snapshot.failed[:20], count=len(snapshot.failed)
            )

        return await self.engine.evaluate(snapshot.prices, snapshot.previous_close)

    def _armed_instrument_codes(self) -> List[str]:
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                return repo.get_armed_instrument_codes()
