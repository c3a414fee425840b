"""Tests for alert dispatchers."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import aiohttp
import pytest

from stockwatch.services.notification import (
    AlertEvent,
    CompositeAlertDispatcher,
    LoggingAlertDispatcher,
    WebhookAlertDispatcher,
    build_default_dispatcher,
)


@pytest.fixture
def alert():
    return AlertEvent(
        rule_id=7,
        user_id="user-alice",
        instrument_code="600000.SH",
        comparator="price_above",
        threshold=10.5,
        observed=10.6,
        timestamp=datetime(2024, 1, 2, 2, 15, 0),
        recurrence="one_shot",
    )


def mock_client_session(status=200, post_error=None):
    """A stand-in for aiohttp.ClientSession used as an async context manager."""
    response = Mock()
    response.status = status

    request_cm = MagicMock()
    request_cm.__aenter__ = AsyncMock(return_value=response)
    request_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if post_error is not None:
        session.post = Mock(side_effect=post_error)
    else:
        session.post = Mock(return_value=request_cm)

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return session_cm, session


class TestAlertEvent:
    """Test the fired alert payload."""

    def test_to_dict_is_json_ready(self, alert):
        data = alert.to_dict()

        assert data["rule_id"] == 7
        assert data["timestamp"] == "2024-01-02T02:15:00"
        assert data["event_id"] == alert.event_id

    def test_event_ids_are_unique(self, alert):
        copy = AlertEvent(**{k: v for k, v in alert.__dict__.items() if k != "event_id"})

        assert copy.event_id != alert.event_id

    def test_format_message_for_percent_rule(self, alert):
        alert.comparator = "percent_change_above"
        alert.threshold = 5.0
        alert.observed = 6.25

        message = alert.format_message()

        assert "600000.SH" in message
        assert "+6.25%" in message


class TestLoggingDispatcher:
    @pytest.mark.asyncio
    async def test_always_delivers(self, alert):
        assert await LoggingAlertDispatcher().dispatch(alert) is True


class TestWebhookDispatcher:
    """Test webhook delivery over aiohttp."""

    @pytest.mark.asyncio
    async def test_posts_payload_with_message(self, alert):
        session_cm, session = mock_client_session(status=200)

        with patch(
            "stockwatch.services.notification.dispatch.aiohttp.ClientSession",
            return_value=session_cm,
        ):
            delivered = await WebhookAlertDispatcher("https://hooks.test/x").dispatch(alert)

        assert delivered is True
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://hooks.test/x"
        assert payload["instrument_code"] == "600000.SH"
        assert "message" in payload

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self, alert):
        session_cm, _ = mock_client_session(status=500)

        with patch(
            "stockwatch.services.notification.dispatch.aiohttp.ClientSession",
            return_value=session_cm,
        ):
            assert await WebhookAlertDispatcher("https://hooks.test/x").dispatch(alert) is False

    @pytest.mark.asyncio
    async def test_client_error_is_failure(self, alert):
        session_cm, _ = mock_client_session(
            post_error=aiohttp.ClientConnectionError("refused")
        )

        with patch(
            "stockwatch.services.notification.dispatch.aiohttp.ClientSession",
            return_value=session_cm,
        ):
            assert await WebhookAlertDispatcher("https://hooks.test/x").dispatch(alert) is False


class TestCompositeDispatcher:
    """Test fan-out delivery."""

    @pytest.mark.asyncio
    async def test_every_dispatcher_is_tried_after_a_failure(self, alert):
        failing = Mock()
        failing.dispatch = AsyncMock(side_effect=RuntimeError("boom"))
        refusing = Mock()
        refusing.dispatch = AsyncMock(return_value=False)
        working = Mock()
        working.dispatch = AsyncMock(return_value=True)

        composite = CompositeAlertDispatcher([failing, refusing, working])

        assert await composite.dispatch(alert) is False
        working.dispatch.assert_awaited_once_with(alert)

    @pytest.mark.asyncio
    async def test_delivered_only_if_all_succeed(self, alert):
        working = Mock()
        working.dispatch = AsyncMock(return_value=True)

        assert await CompositeAlertDispatcher([working, working]).dispatch(alert) is True

    @pytest.mark.asyncio
    async def test_logging_cannot_mask_a_failed_webhook(self, alert):
        webhook = Mock()
        webhook.dispatch = AsyncMock(return_value=False)

        composite = CompositeAlertDispatcher([LoggingAlertDispatcher(), webhook])

        assert await composite.dispatch(alert) is False

    @pytest.mark.asyncio
    async def test_not_delivered_if_all_fail(self, alert):
        refusing = Mock()
        refusing.dispatch = AsyncMock(return_value=False)

        assert await CompositeAlertDispatcher([refusing, refusing]).dispatch(alert) is False


class TestDefaultDispatcher:
    def test_logging_only_without_webhook(self):
        assert isinstance(build_default_dispatcher(), LoggingAlertDispatcher)

    def test_adds_webhook_when_configured(self, monkeypatch):
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "https://hooks.test/x")

        dispatcher = build_default_dispatcher()

        assert isinstance(dispatcher, CompositeAlertDispatcher)
        assert any(isinstance(d, WebhookAlertDispatcher) for d in dispatcher.dispatchers)
