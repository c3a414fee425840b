"""Rule evaluation engine: turns a price snapshot into fired alerts."""

import asyncio
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...config.settings import get_settings
from ...exceptions import MissingBaseline, StockWatchError
from ...ormdb.database import get_session_factory
from ...ormdb.models import AlertRecord, Recurrence
from ...ormdb.repositories import AlertRecordRepository, MonitorRuleRepository
from ...utils.clock import utcnow
from ..notification.dispatch import AlertDispatcher, LoggingAlertDispatcher
from ..notification.models import AlertEvent
from .conditions import RuleCondition, parse_condition
from .models import EvaluationResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArmedRule:
    """Detached copy of an armed rule and its catalog status."""

    id: int
    user_id: str
    instrument_code: str
    comparator: str
    threshold: float
    recurrence: str
    revision: int
    is_active: Optional[bool]


def _clean_prices(values: Optional[Mapping[str, float]]) -> dict:
    """Upper-case codes and drop entries that are not finite numbers."""
    cleaned = {}
    for code, value in (values or {}).items():
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            cleaned[code.strip().upper()] = number
    return cleaned


class RuleEvaluationEngine:
    """
    Evaluates armed rules against a price snapshot.

    Each fire is claimed with a single conditional UPDATE, so concurrent or
    overlapping cycles fire a rule at most once per transition.
    """

    def __init__(
        self,
        dispatcher: Optional[AlertDispatcher] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        debounce_window_seconds: Optional[int] = None,
        concurrency: Optional[int] = None,
        dispatch_timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.dispatcher = dispatcher or LoggingAlertDispatcher()
        self._session_factory = session_factory or get_session_factory()
        self.debounce_window = timedelta(
            seconds=(
                debounce_window_seconds
                if debounce_window_seconds is not None
                else settings.rule_debounce_window_seconds
            )
        )
        self.concurrency = concurrency or settings.evaluation_concurrency
        self.dispatch_timeout = (
            dispatch_timeout_seconds or settings.dispatch_timeout_seconds
        )
        self.logger = logger.bind(service="rule_evaluation_engine")

    async def evaluate(
        self,
        prices: Mapping[str, float],
        previous_close: Optional[Mapping[str, float]] = None,
    ) -> EvaluationResult:
        """
        Run one evaluation cycle.

        Args:
            prices: Current price per instrument code
            previous_close: Previous close per instrument code, needed by
                percent-change rules

        Returns:
            EvaluationResult listing fired events and skipped rules
        """
        result = EvaluationResult()
        prices = _clean_prices(prices)
        baselines = _clean_prices(previous_close)

        rules = await asyncio.to_thread(self._load_armed_rules)
        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = []

        for rule in rules:
            if not rule.is_active:
                result.skipped_stale.append(rule.id)
            elif rule.instrument_code not in prices:
                result.skipped_missing.append(rule.id)
            else:
                tasks.append(
                    self._evaluate_rule(
                        rule,
                        prices[rule.instrument_code],
                        baselines.get(rule.instrument_code),
                        result,
                        semaphore,
                    )
                )

        if result.skipped_stale:
            self.logger.warning(
                "Armed rules reference inactive or unknown instruments",
                rule_ids=result.skipped_stale,
            )

        await asyncio.gather(*tasks)

        result.finished_at = utcnow()
        self.logger.info("Evaluation cycle completed", **result.summary())
        return result

    def _load_armed_rules(self) -> List[ArmedRule]:
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                return [
                    ArmedRule(
                        id=rule.id,
                        user_id=rule.user_id,
                        instrument_code=rule.instrument_code,
                        comparator=rule.comparator,
                        threshold=rule.threshold,
                        recurrence=rule.recurrence,
                        revision=rule.revision,
                        is_active=is_active,
                    )
                    for rule, is_active in repo.list_armed_with_catalog_status()
                ]

    def check_condition(
        self, rule: ArmedRule, current: float, previous_close: Optional[float]
    ) -> Tuple[bool, float]:
        """
        Evaluate a rule's predicate.

        Returns:
            (condition met, observed value)

        Raises:
            MissingBaseline: If a percent-change rule has no usable previous close
        """
        condition: RuleCondition = parse_condition(rule.comparator, rule.threshold)
        observed = condition.observe(current, previous_close)
        if observed is None:
            raise MissingBaseline(rule.id, rule.instrument_code)
        return condition.is_met(observed), observed

    async def _evaluate_rule(
        self,
        rule: ArmedRule,
        current: float,
        previous_close: Optional[float],
        result: EvaluationResult,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            log = self.logger.bind(rule_id=rule.id, instrument_code=rule.instrument_code)

            try:
                met, observed = self.check_condition(rule, current, previous_close)
            except MissingBaseline:
                result.missing_baseline.append(rule.id)
                log.warning("No previous close for percent-change rule")
                return
            except StockWatchError as e:
                result.errors.append(rule.id)
                log.error("Stored rule condition is invalid", error=e.message)
                return

            result.evaluated += 1

            try:
                if not met:
                    await asyncio.to_thread(self._record_condition, rule, False)
                    return
                event = AlertEvent(
                    rule_id=rule.id,
                    user_id=rule.user_id,
                    instrument_code=rule.instrument_code,
                    comparator=rule.comparator,
                    threshold=rule.threshold,
                    observed=observed,
                    timestamp=utcnow(),
                    recurrence=rule.recurrence,
                )
                claimed = await asyncio.to_thread(self._claim_fire, rule, event)
            except SQLAlchemyError as e:
                result.errors.append(rule.id)
                log.error("Rule state update failed", error=str(e), exc_info=True)
                return

            if not claimed:
                result.suppressed.append(rule.id)
                log.debug("Rule fire suppressed", recurrence=rule.recurrence)
                return

            result.fired.append(event)
            log.info("Rule fired", user_id=rule.user_id, observed=observed)

            delivered = await self._dispatch(event)
            if not delivered:
                result.dispatch_failures.append(rule.id)

            try:
                await asyncio.to_thread(self._record_notified, event.event_id, delivered)
            except SQLAlchemyError as e:
                result.errors.append(rule.id)
                log.error("Alert history update failed", error=str(e), exc_info=True)

    def _claim_fire(self, rule: ArmedRule, event: AlertEvent) -> bool:
        """
        Claim the transition for this cycle; False if it was not ours.

        A won claim stores the alert in the owner's history in the same
        transaction.
        """
        now = event.timestamp
        alert = _history_row(event)
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                if rule.recurrence == Recurrence.ONE_SHOT.value:
                    return repo.claim_one_shot_fire(rule.id, rule.revision, now, alert)

                cutoff = now - self.debounce_window
                if repo.claim_recurring_edge(rule.id, rule.revision, now, cutoff, alert):
                    return True

                # Still true, or inside the debounce window
                repo.record_condition(rule.id, True, rule.revision)
                return False

    def _record_condition(self, rule: ArmedRule, condition_met: bool) -> None:
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                repo.record_condition(rule.id, condition_met, rule.revision)

    def _record_notified(self, event_id: str, delivered: bool) -> None:
        with self._session_factory() as session:
            with AlertRecordRepository(session) as repo:
                repo.set_notified(event_id, delivered)

    async def _dispatch(self, event: AlertEvent) -> bool:
        log = self.logger.bind(rule_id=event.rule_id, event_id=event.event_id)
        try:
            delivered = await asyncio.wait_for(
                self.dispatcher.dispatch(event), timeout=self.dispatch_timeout
            )
        except asyncio.TimeoutError:
            log.error("Alert dispatch timed out", timeout=self.dispatch_timeout)
            return False
        except Exception as e:
            log.error("Alert dispatch raised", error=str(e), exc_info=True)
            return False

        if not delivered:
            log.warning("Alert dispatch reported failure")
        return bool(delivered)


def _history_row(event: AlertEvent) -> AlertRecord:
    return AlertRecord(
        event_id=event.event_id,
        user_id=event.user_id,
        rule_id=event.rule_id,
        instrument_code=event.instrument_code,
        comparator=event.comparator,
        threshold=event.threshold,
        observed=event.observed,
        recurrence=event.recurrence,
        fired_at=event.timestamp,
        read=False,
    )
