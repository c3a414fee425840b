"""Alert dispatcher implementations."""

from typing import Iterable, List, Optional, Protocol

import aiohttp

from ...config.logging import get_logger
from ...config.settings import get_settings
from .models import AlertEvent

logger = get_logger(__name__)


class AlertDispatcher(Protocol):
    """Protocol for alert delivery. Returns True when the alert was delivered."""

    async def dispatch(self, alert: AlertEvent) -> bool:
        """Deliver one fired alert."""
        ...


class LoggingAlertDispatcher:
    """Writes fired alerts to the application log."""

    def __init__(self):
        self.logger = logger.bind(dispatcher="logging")

    async def dispatch(self, alert: AlertEvent) -> bool:
        self.logger.info(
            "Alert fired",
            event_id=alert.event_id,
            rule_id=alert.rule_id,
            user_id=alert.user_id,
            instrument_code=alert.instrument_code,
            comparator=alert.comparator,
            threshold=alert.threshold,
            observed=alert.observed,
            recurrence=alert.recurrence,
        )
        return True


class WebhookAlertDispatcher:
    """POSTs fired alerts as JSON to a webhook URL."""

    def __init__(self, url: str, timeout_seconds: float = 5.0):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logger.bind(dispatcher="webhook")

    @classmethod
    def from_settings(cls) -> Optional["WebhookAlertDispatcher"]:
        """Build from settings, or None when no webhook URL is configured."""
        settings = get_settings()
        if not settings.alert_webhook_url:
            return None
        return cls(settings.alert_webhook_url, settings.dispatch_timeout_seconds)

    async def dispatch(self, alert: AlertEvent) -> bool:
        """
        Deliver an alert to the webhook.

        Args:
            alert: Fired alert

        Returns:
            True on a 2xx response, False on any other status or client error
        """
        payload = alert.to_dict()
        payload["message"] = alert.format_message()

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, json=payload) as response:
                    if 200 <= response.status < 300:
                        self.logger.info(
                            "Webhook alert delivered",
                            rule_id=alert.rule_id,
                            status=response.status,
                        )
                        return True

                    self.logger.warning(
                        "Webhook rejected alert",
                        rule_id=alert.rule_id,
                        status=response.status,
                    )
                    return False

        except aiohttp.ClientError as e:
            self.logger.error(
                "Webhook delivery failed", rule_id=alert.rule_id, error=str(e)
            )
            return False


class CompositeAlertDispatcher:
    """Fans an alert out to several dispatchers."""

    def __init__(self, dispatchers: Iterable[AlertDispatcher]):
        self.dispatchers: List[AlertDispatcher] = list(dispatchers)
        self.logger = logger.bind(dispatcher="composite")

    async def dispatch(self, alert: AlertEvent) -> bool:
        """
        Send the alert through every dispatcher in turn.

        A failing dispatcher does not stop the others.

        Returns:
            True only if every dispatcher delivered it
        """
        delivered = True
        for dispatcher in self.dispatchers:
            try:
                if not await dispatcher.dispatch(alert):
                    delivered = False
            except Exception as e:
                delivered = False
                self.logger.error(
                    "Dispatcher raised",
                    dispatcher=type(dispatcher).__name__,
                    rule_id=alert.rule_id,
                    error=str(e),
                    exc_info=True,
                )
        return delivered


def build_default_dispatcher() -> AlertDispatcher:
    """
    Log every alert, and also POST it when a webhook is configured.

    Logging always succeeds, so with a webhook the composite result is the
    webhook's own delivery result.
    """
    webhook = WebhookAlertDispatcher.from_settings()
    if webhook is None:
        return LoggingAlertDispatcher()
    return CompositeAlertDispatcher([LoggingAlertDispatcher(), webhook])
