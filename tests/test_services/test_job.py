"""Tests for the scheduled price evaluation job."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest

from stockwatch.services.monitor import (
    MonitorRuleService,
    PriceEvaluationJob,
    RuleEvaluationEngine,
)
from stockwatch.services.pricing import PriceSnapshot
from stockwatch.utils.clock import is_within_trading_hours

ALICE = "user-alice"


@pytest.fixture
def price_provider():
    provider = Mock()
    provider.fetch_quotes = AsyncMock(
        return_value=PriceSnapshot(
            prices={"600000.SH": 11.0, "000001.SZ": 9.0},
            previous_close={"600000.SH": 10.0, "000001.SZ": 10.0},
            failed=[],
        )
    )
    return provider


@pytest.fixture
def make_job(session_factory, seeded_catalog, price_provider):
    def _make(enforce_trading_hours=False):
        dispatcher = Mock()
        dispatcher.dispatch = AsyncMock(return_value=True)
        engine = RuleEvaluationEngine(
            dispatcher=dispatcher,
            session_factory=session_factory,
            debounce_window_seconds=300,
            concurrency=2,
            dispatch_timeout_seconds=1.0,
        )
        return PriceEvaluationJob(
            engine=engine,
            price_provider=price_provider,
            session_factory=session_factory,
            enforce_trading_hours=enforce_trading_hours,
        )

    return _make


class TestPriceEvaluationJob:
    """Test the fetch-then-evaluate cycle."""

    @pytest.mark.asyncio
    async def test_no_armed_rules_skips_fetch(self, make_job, price_provider):
        assert await make_job().run() is None
        price_provider.fetch_quotes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetches_armed_codes_and_evaluates(
        self, make_job, price_provider, session_factory
    ):
        rules = MonitorRuleService(session_factory)
        above = rules.create_rule(ALICE, "600000.SH", "percent_change_above", 5.0)
        below = rules.create_rule(ALICE, "000001.SZ", "price_below", 9.5)
        disarmed = rules.create_rule(ALICE, "430047.BJ", "price_above", 1.0)
        rules.disarm_rule(ALICE, disarmed.id)

        result = await make_job().run()

        codes = price_provider.fetch_quotes.await_args.args[0]
        assert sorted(codes) == ["000001.SZ", "600000.SH"]
        assert sorted(e.rule_id for e in result.fired) == sorted([above.id, below.id])

    @pytest.mark.asyncio
    async def test_outside_trading_hours_skips(self, make_job, price_provider, session_factory):
        MonitorRuleService(session_factory).create_rule(ALICE, "600000.SH", "price_above", 1.0)

        with patch(
            "stockwatch.services.monitor.job.is_within_trading_hours", return_value=False
        ):
            assert await make_job(enforce_trading_hours=True).run() is None

        price_provider.fetch_quotes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_ignores_trading_hours(self, make_job, session_factory):
        MonitorRuleService(session_factory).create_rule(ALICE, "600000.SH", "price_above", 1.0)

        with patch(
            "stockwatch.services.monitor.job.is_within_trading_hours", return_value=False
        ):
            result = await make_job(enforce_trading_hours=True).run(force=True)

        assert len(result.fired) == 1


class TestTradingHours:
    """Beijing time sessions are 09:30-11:30 and 13:00-15:00 on weekdays."""

    @pytest.mark.parametrize(
        "utc_time,expected",
        [
            (datetime(2024, 1, 2, 1, 29, tzinfo=timezone.utc), False),  # 09:29 CST
            (datetime(2024, 1, 2, 1, 30, tzinfo=timezone.utc), True),
            (datetime(2024, 1, 2, 4, 0, tzinfo=timezone.utc), False),  # lunch break
            (datetime(2024, 1, 2, 6, 30, tzinfo=timezone.utc), True),
            (datetime(2024, 1, 2, 7, 1, tzinfo=timezone.utc), False),  # after close
            (datetime(2024, 1, 6, 2, 0, tzinfo=timezone.utc), False),  # Saturday
        ],
    )
    def test_is_within_trading_hours(self, utc_time, expected):
        assert is_within_trading_hours(utc_time) is expected
