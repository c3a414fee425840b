"""Repository for monitor rule operations."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, desc, or_, update

from ...utils.clock import utcnow
from ..models import AlertRecord, Instrument, MonitorRule, RuleState
from .base import BaseRepository


class MonitorRuleRepository(BaseRepository):
    """Repository for monitor rule storage and atomic state transitions."""

    def list_for_user(self, user_id: str) -> List[MonitorRule]:
        """Get all rules owned by a user, newest first."""
        return (
            self.session.query(MonitorRule)
            .filter(MonitorRule.user_id == user_id)
            .order_by(desc(MonitorRule.created_at), desc(MonitorRule.id))
            .all()
        )

    def get_for_user(self, user_id: str, rule_id: int) -> Optional[MonitorRule]:
        """Get a rule only if the user owns it."""
        return (
            self.session.query(MonitorRule)
            .filter(MonitorRule.id == rule_id, MonitorRule.user_id == user_id)
            .first()
        )

    def create(self, **fields: Any) -> MonitorRule:
        """Persist a new rule."""
        rule = MonitorRule(**fields)
        return self._persist(rule)

    def update_fields(self, rule: MonitorRule, fields: Dict[str, Any]) -> MonitorRule:
        """Apply a user edit to a rule and bump its revision."""
        for key, value in fields.items():
            setattr(rule, key, value)
        rule.revision = (rule.revision or 0) + 1
        rule.updated_at = utcnow()
        return self._persist(rule)

    def delete(self, rule: MonitorRule) -> None:
        """Delete a rule."""
        self.session.delete(rule)
        self.session.commit()

    def list_armed_with_catalog_status(self) -> List[Tuple[MonitorRule, Optional[bool]]]:
        """
        Get armed rules with the catalog status of their instrument.

        Returns:
            Tuples of (rule, is_active); is_active is None when the
            instrument is not in the catalog at all
        """
        return (
            self.session.query(MonitorRule, Instrument.is_active)
            .outerjoin(Instrument, MonitorRule.instrument_code == Instrument.ts_code)
            .filter(MonitorRule.state == RuleState.ARMED.value)
            .order_by(MonitorRule.id)
            .all()
        )

    def get_armed_instrument_codes(self) -> List[str]:
        """Distinct instrument codes referenced by armed rules."""
        rows = (
            self.session.query(MonitorRule.instrument_code)
            .filter(MonitorRule.state == RuleState.ARMED.value)
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    def claim_one_shot_fire(
        self,
        rule_id: int,
        revision: int,
        now: datetime,
        alert: Optional[AlertRecord] = None,
    ) -> bool:
        """
        Atomically move an armed rule to fired.

        Args:
            rule_id: Rule to claim
            revision: Revision the caller evaluated; an edited rule is not claimed
            now: Fire time
            alert: History row inserted in the same transaction when the claim wins

        Returns:
            True only for the caller whose update changed the row
        """
        result = self.session.execute(
            update(MonitorRule)
            .where(
                MonitorRule.id == rule_id,
                MonitorRule.revision == revision,
                MonitorRule.state == RuleState.ARMED.value,
            )
            .values(
                state=RuleState.FIRED.value,
                condition_met=True,
                last_fired_at=now,
                updated_at=now,
            )
        )
        return self._commit_claim(result.rowcount == 1, alert)

    def claim_recurring_edge(
        self,
        rule_id: int,
        revision: int,
        now: datetime,
        cooldown_cutoff: datetime,
        alert: Optional[AlertRecord] = None,
    ) -> bool:
        """
        Atomically record a false-or-unknown to true edge on an armed rule.

        The claim fails when the previous cycle already saw the condition
        true, when the rule fired after cooldown_cutoff, or when the rule was
        edited since the caller read it.
        """
        result = self.session.execute(
            update(MonitorRule)
            .where(
                and_(
                    MonitorRule.id == rule_id,
                    MonitorRule.revision == revision,
                    MonitorRule.state == RuleState.ARMED.value,
                    or_(
                        MonitorRule.condition_met.is_(None),
                        MonitorRule.condition_met == False,
                    ),
                    or_(
                        MonitorRule.last_fired_at.is_(None),
                        MonitorRule.last_fired_at <= cooldown_cutoff,
                    ),
                )
            )
            .values(condition_met=True, last_fired_at=now)
        )
        return self._commit_claim(result.rowcount == 1, alert)

    def record_condition(
        self, rule_id: int, condition_met: bool, revision: Optional[int] = None
    ) -> None:
        """Store the predicate value observed this cycle for an armed rule."""
        query = update(MonitorRule).where(
            MonitorRule.id == rule_id,
            MonitorRule.state == RuleState.ARMED.value,
            or_(
                MonitorRule.condition_met.is_(None),
                MonitorRule.condition_met != condition_met,
            ),
        )
        if revision is not None:
            query = query.where(MonitorRule.revision == revision)
        self.session.execute(query.values(condition_met=condition_met))
        self.session.commit()

    def _commit_claim(self, claimed: bool, alert: Optional[AlertRecord]) -> bool:
        if claimed and alert is not None:
            self.session.add(alert)
        self.session.commit()
        return claimed
