"""PagerDuty Events API v2 notifier.

Incidents are deduplicated on the rule key, so a resolve event closes the
PagerDuty incident its trigger opened.
"""

import asyncio
import logging

import httpx

from sentinel.models import AlertSeverity, Notification
from sentinel.notify.base import NotificationError, RateLimitedError

logger = logging.getLogger("sentinel.notify.pagerduty")

DEFAULT_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"

_SEVERITY_MAP = {
    AlertSeverity.CRITICAL: "critical",
    AlertSeverity.HIGH: "error",
    AlertSeverity.MEDIUM: "warning",
    AlertSeverity.LOW: "info",
}


class PagerDutyNotifier:
    """Sends trigger/resolve events, retrying while PagerDuty returns 429."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        integration_key: str,
        events_url: str = DEFAULT_EVENTS_URL,
        source: str = "sentinel",
        max_attempts: int = 10,
        retry_delay: float = 1.0,
    ) -> None:
        self._client = client
        self._integration_key = integration_key
        self._events_url = events_url
        self._source = source
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    def _event(self, notification: Notification) -> dict:
        event: dict = {
            "routing_key": self._integration_key,
            "event_action": "resolve" if notification.resolved else "trigger",
            "dedup_key": notification.rule_key,
        }
        if not notification.resolved:
            event["payload"] = {
                "summary": f"{notification.subject}: {notification.body}",
                "source": self._source,
                "severity": _SEVERITY_MAP[notification.severity],
                "timestamp": notification.timestamp,
            }
        return event

    async def send(self, notification: Notification) -> None:
        event = self._event(notification)
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._client.post(self._events_url, json=event)
            except httpx.HTTPError as e:
                msg = f"PagerDuty request failed: {e}"
                raise NotificationError(msg) from e

            if response.status_code == 429:
                logger.warning(
                    "PagerDuty rate limited %s (attempt %d/%d)",
                    notification.rule_key,
                    attempt,
                    self._max_attempts,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)
                continue
            if response.is_error:
                msg = f"PagerDuty returned {response.status_code}: {response.text}"
                raise NotificationError(msg)

            logger.info(
                "PagerDuty %s sent for %s", event["event_action"], notification.rule_key
            )
            return

        msg = f"PagerDuty still rate limiting after {self._max_attempts} attempts"
        raise RateLimitedError(msg)
