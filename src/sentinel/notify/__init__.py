"""Notification dispatchers."""

from sentinel.notify.base import FanoutNotifier, NotificationError, Notifier, RateLimitedError
from sentinel.notify.pagerduty import PagerDutyNotifier
from sentinel.notify.webhook import WebhookNotifier

__all__ = [
    "FanoutNotifier",
    "NotificationError",
    "Notifier",
    "PagerDutyNotifier",
    "RateLimitedError",
    "WebhookNotifier",
]
