"""Alert dispatch for fired monitor rules."""

from .dispatch import (
    AlertDispatcher,
    CompositeAlertDispatcher,
    LoggingAlertDispatcher,
    WebhookAlertDispatcher,
    build_default_dispatcher,
)
from .models import AlertEvent

__all__ = [
    "AlertDispatcher",
    "AlertEvent",
    "CompositeAlertDispatcher",
    "LoggingAlertDispatcher",
    "WebhookAlertDispatcher",
    "build_default_dispatcher",
]
