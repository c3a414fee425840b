"""Tests for the rule evaluation engine."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from stockwatch.ormdb.models import AlertRecord, MonitorRule, RuleState
from stockwatch.ormdb.repositories import InstrumentRepository
from stockwatch.services.monitor import MonitorRuleService, RuleEvaluationEngine
from stockwatch.services.notification import (
    CompositeAlertDispatcher,
    LoggingAlertDispatcher,
)

ALICE = "user-alice"


@pytest.fixture
def rules(session_factory, seeded_catalog):
    return MonitorRuleService(session_factory)


@pytest.fixture
def dispatcher():
    mock = Mock()
    mock.dispatch = AsyncMock(return_value=True)
    return mock


def make_engine(session_factory, dispatcher, **kwargs):
    kwargs.setdefault("debounce_window_seconds", 300)
    kwargs.setdefault("concurrency", 4)
    kwargs.setdefault("dispatch_timeout_seconds", 1.0)
    return RuleEvaluationEngine(
        dispatcher=dispatcher, session_factory=session_factory, **kwargs
    )


class TestPredicates:
    """Test single-cycle firing decisions."""

    @pytest.mark.asyncio
    async def test_price_above_fires_once_and_dispatches(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10.5)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 10.6})

        assert result.evaluated == 1
        assert len(result.fired) == 1
        event = result.fired[0]
        assert event.rule_id == rule.id
        assert event.user_id == ALICE
        assert event.instrument_code == "600000.SH"
        assert event.comparator == "price_above"
        assert event.threshold == 10.5
        assert event.observed == 10.6
        assert event.recurrence == "one_shot"
        dispatcher.dispatch.assert_awaited_once_with(event)

        stored = rules.get_rule(ALICE, rule.id)
        assert stored.state == RuleState.FIRED.value
        assert stored.last_fired_at is not None

    @pytest.mark.asyncio
    async def test_percent_change_below_threshold_does_not_fire(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "percent_change_above", 5)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 10.4}, {"600000.SH": 10.0})

        assert result.evaluated == 1
        assert result.fired == []
        dispatcher.dispatch.assert_not_awaited()
        stored = rules.get_rule(ALICE, rule.id)
        assert stored.state == RuleState.ARMED.value
        assert stored.condition_met is False

    @pytest.mark.asyncio
    async def test_percent_change_reports_observed_percent(
        self, rules, session_factory, dispatcher
    ):
        rules.create_rule(ALICE, "000001.SZ", "percent_change_below", -3)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"000001.SZ": 9.6}, {"000001.SZ": 10.0})

        assert len(result.fired) == 1
        assert result.fired[0].observed == pytest.approx(-4.0)

    @pytest.mark.asyncio
    async def test_missing_baseline_skips_only_that_rule(
        self, rules, session_factory, dispatcher
    ):
        percent = rules.create_rule(ALICE, "600000.SH", "percent_change_above", 1)
        zero = rules.create_rule(ALICE, "000001.SZ", "percent_change_above", 1)
        price = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate(
            {"600000.SH": 10.6, "000001.SZ": 12.0}, {"000001.SZ": 0}
        )

        assert sorted(result.missing_baseline) == sorted([percent.id, zero.id])
        assert [e.rule_id for e in result.fired] == [price.id]
        assert rules.get_rule(ALICE, percent.id).condition_met is None


class TestSkipped:
    """Test rules that cannot be evaluated this cycle."""

    @pytest.mark.asyncio
    async def test_instrument_missing_from_snapshot(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "430047.BJ", "price_above", 1)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 10.0})

        assert result.skipped_missing == [rule.id]
        assert result.evaluated == 0
        assert rules.get_rule(ALICE, rule.id).condition_met is None

    @pytest.mark.asyncio
    async def test_non_finite_price_counts_as_missing(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 1)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": float("nan")})

        assert result.skipped_missing == [rule.id]

    @pytest.mark.asyncio
    async def test_delisted_and_unknown_instruments_are_stale(
        self, rules, session_factory, dispatcher
    ):
        delisted = rules.create_rule(ALICE, "000001.SZ", "price_above", 1)
        with session_factory() as session:
            InstrumentRepository(session).deactivate("000001.SZ")
            orphan = MonitorRule(
                user_id=ALICE,
                instrument_code="999999.SH",
                comparator="price_above",
                threshold=1.0,
                recurrence="one_shot",
                state=RuleState.ARMED.value,
            )
            session.add(orphan)
            session.commit()
            orphan_id = orphan.id

        engine = make_engine(session_factory, dispatcher)
        result = await engine.evaluate({"000001.SZ": 5.0, "999999.SH": 5.0})

        assert sorted(result.skipped_stale) == sorted([delisted.id, orphan_id])
        assert result.fired == []

    @pytest.mark.asyncio
    async def test_disarmed_rules_are_ignored(self, rules, session_factory, dispatcher):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 1)
        rules.disarm_rule(ALICE, rule.id)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 10.0})

        assert result.evaluated == 0
        assert result.fired == []


class TestOneShot:
    """Test at-most-once firing of one-shot rules."""

    @pytest.mark.asyncio
    async def test_true_across_cycles_fires_once(self, rules, session_factory, dispatcher):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        fired = []
        for _ in range(3):
            result = await engine.evaluate({"600000.SH": 11.0})
            fired.extend(result.fired)

        assert len(fired) == 1
        assert rules.get_rule(ALICE, rule.id).state == RuleState.FIRED.value

    @pytest.mark.asyncio
    async def test_concurrent_cycles_fire_once(self, rules, session_factory, dispatcher):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        first = make_engine(session_factory, dispatcher)
        second = make_engine(session_factory, dispatcher)

        results = await asyncio.gather(
            first.evaluate({"600000.SH": 11.0}),
            second.evaluate({"600000.SH": 11.0}),
            first.evaluate({"600000.SH": 11.0}),
        )

        events = [event for result in results for event in result.fired]
        assert len(events) == 1
        assert dispatcher.dispatch.await_count == 1
        assert rules.get_rule(ALICE, rule.id).state == RuleState.FIRED.value

    @pytest.mark.asyncio
    async def test_stale_read_cannot_fire_twice(self, rules, session_factory, dispatcher):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        # Both cycles see the rule as armed, as an overlapping cycle would
        snapshot = engine._load_armed_rules()
        with patch.object(engine, "_load_armed_rules", return_value=snapshot):
            first = await engine.evaluate({"600000.SH": 11.0})
            second = await engine.evaluate({"600000.SH": 11.0})

        assert len(first.fired) == 1
        assert second.fired == []
        assert second.suppressed == [snapshot[0].id]

    @pytest.mark.asyncio
    async def test_rearmed_rule_fires_again(self, rules, session_factory, dispatcher):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        await engine.evaluate({"600000.SH": 11.0})
        rules.arm_rule(ALICE, rule.id)
        result = await engine.evaluate({"600000.SH": 11.0})

        assert len(result.fired) == 1

    @pytest.mark.asyncio
    async def test_rule_edited_mid_cycle_is_not_fired_on_old_condition(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        # The cycle reads the rule, then the owner raises the threshold
        snapshot = engine._load_armed_rules()
        rules.update_rule(ALICE, rule.id, threshold=20)
        with patch.object(engine, "_load_armed_rules", return_value=snapshot):
            stale = await engine.evaluate({"600000.SH": 11.0})

        assert stale.fired == []
        assert stale.suppressed == [rule.id]
        dispatcher.dispatch.assert_not_awaited()
        stored = rules.get_rule(ALICE, rule.id)
        assert stored.state == RuleState.ARMED.value
        assert stored.threshold == 20

        fresh = await engine.evaluate({"600000.SH": 21.0})

        assert [e.threshold for e in fresh.fired] == [20]


class TestRecurring:
    """Test edge-triggered firing with debounce for recurring rules."""

    @pytest.mark.asyncio
    async def test_true_for_three_cycles_fires_once(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10, "recurring")
        engine = make_engine(session_factory, dispatcher)

        results = [await engine.evaluate({"600000.SH": 11.0}) for _ in range(3)]

        assert [len(r.fired) for r in results] == [1, 0, 0]
        assert results[1].suppressed == [rule.id]
        stored = rules.get_rule(ALICE, rule.id)
        assert stored.state == RuleState.ARMED.value
        assert stored.condition_met is True

    @pytest.mark.asyncio
    async def test_new_crossing_fires_again_after_window(
        self, rules, session_factory, dispatcher
    ):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10, "recurring")
        engine = make_engine(session_factory, dispatcher, debounce_window_seconds=0)

        prices = [11.0, 9.0, 11.0, 11.0, 9.0, 11.0]
        fired = [len((await engine.evaluate({"600000.SH": p})).fired) for p in prices]

        assert fired == [1, 0, 1, 0, 0, 1]

    @pytest.mark.asyncio
    async def test_crossing_inside_window_is_suppressed(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10, "recurring")
        engine = make_engine(session_factory, dispatcher, debounce_window_seconds=300)

        await engine.evaluate({"600000.SH": 11.0})
        await engine.evaluate({"600000.SH": 9.0})
        result = await engine.evaluate({"600000.SH": 11.0})

        assert result.fired == []
        assert result.suppressed == [rule.id]
        # The crossing was consumed, so staying true keeps it quiet
        assert rules.get_rule(ALICE, rule.id).condition_met is True

    @pytest.mark.asyncio
    async def test_concurrent_cycles_fire_once(self, rules, session_factory, dispatcher):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10, "recurring")
        engines = [make_engine(session_factory, dispatcher) for _ in range(3)]

        results = await asyncio.gather(
            *(engine.evaluate({"600000.SH": 11.0}) for engine in engines)
        )

        assert sum(len(r.fired) for r in results) == 1


class TestDispatchFailures:
    """Test that delivery problems never abort a cycle."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["false", "raise", "timeout"])
    async def test_failed_dispatch_is_recorded_and_batch_continues(
        self, rules, session_factory, failure
    ):
        first = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        second = rules.create_rule(ALICE, "000001.SZ", "price_above", 10)

        async def slow(_event):
            await asyncio.sleep(1)
            return True

        dispatcher = Mock()
        if failure == "false":
            dispatcher.dispatch = AsyncMock(return_value=False)
        elif failure == "raise":
            dispatcher.dispatch = AsyncMock(side_effect=RuntimeError("webhook down"))
        else:
            dispatcher.dispatch = AsyncMock(side_effect=slow)

        engine = make_engine(session_factory, dispatcher, dispatch_timeout_seconds=0.05)
        result = await engine.evaluate({"600000.SH": 11.0, "000001.SZ": 11.0})

        assert sorted(e.rule_id for e in result.fired) == sorted([first.id, second.id])
        assert sorted(result.dispatch_failures) == sorted([first.id, second.id])
        # Fired state is kept; the engine does not retry
        assert rules.get_rule(ALICE, first.id).state == RuleState.FIRED.value

    @pytest.mark.asyncio
    async def test_result_serialises(self, rules, session_factory, dispatcher):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 11.0})
        data = result.to_dict()

        assert data["evaluated"] == 1
        assert data["fired"][0]["instrument_code"] == "600000.SH"
        assert data["finished_at"] is not None

    @pytest.mark.asyncio
    async def test_failed_webhook_behind_logging_is_a_dispatch_failure(
        self, rules, session_factory
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        webhook = Mock()
        webhook.dispatch = AsyncMock(return_value=False)
        dispatcher = CompositeAlertDispatcher([LoggingAlertDispatcher(), webhook])

        engine = make_engine(session_factory, dispatcher)
        result = await engine.evaluate({"600000.SH": 11.0})

        webhook.dispatch.assert_awaited_once()
        assert result.dispatch_failures == [rule.id]


class TestAlertHistory:
    """Test that fired alerts are kept in the owner's history."""

    @pytest.mark.asyncio
    async def test_fired_alert_is_stored_and_marked_notified(
        self, rules, session_factory, dispatcher
    ):
        rule = rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        engine = make_engine(session_factory, dispatcher)

        result = await engine.evaluate({"600000.SH": 11.0})

        with session_factory() as session:
            stored = session.query(AlertRecord).one()
        event = result.fired[0]
        assert stored.event_id == event.event_id
        assert stored.user_id == ALICE
        assert stored.rule_id == rule.id
        assert stored.observed == 11.0
        assert stored.fired_at == event.timestamp
        assert stored.read is False
        assert stored.notified is True

    @pytest.mark.asyncio
    async def test_failed_dispatch_is_kept_as_not_notified(self, rules, session_factory):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10)
        dispatcher = Mock()
        dispatcher.dispatch = AsyncMock(return_value=False)

        await make_engine(session_factory, dispatcher).evaluate({"600000.SH": 11.0})

        with session_factory() as session:
            assert session.query(AlertRecord).one().notified is False

    @pytest.mark.asyncio
    async def test_suppressed_fires_leave_no_history(
        self, rules, session_factory, dispatcher
    ):
        rules.create_rule(ALICE, "600000.SH", "price_above", 10, "recurring")
        engine = make_engine(session_factory, dispatcher)

        for _ in range(3):
            await engine.evaluate({"600000.SH": 11.0})

        with session_factory() as session:
            assert session.query(AlertRecord).count() == 1
