"""Monitor rule store: per-user CRUD and state transitions."""

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ...exceptions import InvalidRecurrence, RuleNotFound, UnknownInstrument
from ...ormdb.database import get_session_factory
from ...ormdb.models import Recurrence, RuleState
from ...ormdb.repositories import InstrumentRepository, MonitorRuleRepository
from .conditions import parse_condition
from .models import RuleView

logger = get_logger(__name__)


def _parse_recurrence(recurrence: Any) -> str:
    try:
        return Recurrence(recurrence).value
    except ValueError:
        raise InvalidRecurrence(recurrence)


class MonitorRuleService:
    """Service for creating and managing a user's monitor rules."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()
        self.logger = logger.bind(service="monitor_rule_service")

    def list_rules(self, user_id: str) -> List[RuleView]:
        """List the user's rules, newest first."""
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                return [RuleView.model_validate(r) for r in repo.list_for_user(user_id)]

    def get_rule(self, user_id: str, rule_id: int) -> RuleView:
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                return RuleView.model_validate(self._get_owned(repo, user_id, rule_id))

    def create_rule(
        self,
        user_id: str,
        instrument_code: str,
        comparator: Any,
        threshold: Any,
        recurrence: Any = Recurrence.ONE_SHOT.value,
    ) -> RuleView:
        """
        Create an armed rule on an active instrument.

        Args:
            user_id: Owner of the rule
            instrument_code: Tushare-format code
            comparator: Comparator tag
            threshold: Threshold in the comparator's domain
            recurrence: one_shot or recurring

        Returns:
            The new rule

        Raises:
            UnknownComparator: If the comparator tag is not recognised
            InvalidThreshold: If the threshold is outside its domain
            InvalidRecurrence: If the recurrence mode is not recognised
            UnknownInstrument: If the instrument is not in the active catalog
        """
        condition = parse_condition(comparator, threshold)
        recurrence = _parse_recurrence(recurrence)
        instrument_code = instrument_code.strip().upper()

        with self._session_factory() as session:
            if not InstrumentRepository(session).is_active(instrument_code):
                raise UnknownInstrument(instrument_code)

            with MonitorRuleRepository(session) as repo:
                rule = repo.create(
                    user_id=user_id,
                    instrument_code=instrument_code,
                    comparator=condition.comparator,
                    threshold=condition.threshold,
                    recurrence=recurrence,
                    state=RuleState.ARMED.value,
                    condition_met=None,
                )

                self.logger.info(
                    "Monitor rule created",
                    user_id=user_id,
                    rule_id=rule.id,
                    instrument_code=instrument_code,
                    comparator=condition.comparator,
                    threshold=condition.threshold,
                    recurrence=recurrence,
                )
                return RuleView.model_validate(rule)

    def update_rule(
        self,
        user_id: str,
        rule_id: int,
        comparator: Any = None,
        threshold: Any = None,
        recurrence: Any = None,
    ) -> RuleView:
        """
        Change a rule's condition or recurrence and re-arm it.

        Omitted fields keep their current value. The merged condition is
        validated again, and the previous-cycle condition is forgotten.
        """
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                rule = self._get_owned(repo, user_id, rule_id)

                condition = parse_condition(
                    comparator if comparator is not None else rule.comparator,
                    threshold if threshold is not None else rule.threshold,
                )
                fields: Dict[str, Any] = {
                    "comparator": condition.comparator,
                    "threshold": condition.threshold,
                    "recurrence": (
                        _parse_recurrence(recurrence)
                        if recurrence is not None
                        else rule.recurrence
                    ),
                    "state": RuleState.ARMED.value,
                    "condition_met": None,
                }

                rule = repo.update_fields(rule, fields)
                self.logger.info("Monitor rule updated", user_id=user_id, rule_id=rule_id)
                return RuleView.model_validate(rule)

    def delete_rule(self, user_id: str, rule_id: int) -> None:
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                repo.delete(self._get_owned(repo, user_id, rule_id))

        self.logger.info("Monitor rule deleted", user_id=user_id, rule_id=rule_id)

    def disarm_rule(self, user_id: str, rule_id: int) -> RuleView:
        """Stop evaluating a rule until it is armed again."""
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                rule = self._get_owned(repo, user_id, rule_id)
                if rule.state != RuleState.DISARMED.value:
                    rule = repo.update_fields(
                        rule, {"state": RuleState.DISARMED.value, "condition_met": None}
                    )
                    self.logger.info("Monitor rule disarmed", user_id=user_id, rule_id=rule_id)
                return RuleView.model_validate(rule)

    def arm_rule(self, user_id: str, rule_id: int) -> RuleView:
        """
        Re-arm a fired or disarmed rule.

        The previous-cycle condition is reset, so a condition that is
        already true counts as a fresh transition. Arming an armed rule
        changes nothing.
        """
        with self._session_factory() as session:
            with MonitorRuleRepository(session) as repo:
                rule = self._get_owned(repo, user_id, rule_id)
                if rule.state != RuleState.ARMED.value:
                    rule = repo.update_fields(
                        rule, {"state": RuleState.ARMED.value, "condition_met": None}
                    )
                    self.logger.info("Monitor rule armed", user_id=user_id, rule_id=rule_id)
                return RuleView.model_validate(rule)

    def _get_owned(self, repo: MonitorRuleRepository, user_id: str, rule_id: int):
        rule = repo.get_for_user(user_id, rule_id)
        if rule is None:
            raise RuleNotFound(rule_id)
        return rule
