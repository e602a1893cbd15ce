"""Chat webhook notifier (Slack-compatible ``text`` payload)."""

import logging

import httpx

from sentinel.models import Notification
from sentinel.notify.base import NotificationError

logger = logging.getLogger("sentinel.notify.webhook")


class WebhookNotifier:
    def __init__(self, *, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def send(self, notification: Notification) -> None:
        prefix = "RESOLVED " if notification.resolved else ""
        payload = {
            "text": f"{prefix}{notification.subject}\n{notification.body}",
            "rule_key": notification.rule_key,
            "severity": notification.severity.value,
            "resolved": notification.resolved,
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            msg = f"Webhook request failed: {e}"
            raise NotificationError(msg) from e
        if response.is_error:
            msg = f"Webhook returned {response.status_code}"
            raise NotificationError(msg)
        logger.debug("Webhook delivered for %s", notification.rule_key)
