"""Notifier protocol, errors and fan-out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from whenever import Instant, TimeDelta

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sentinel.models import Notification

logger = logging.getLogger("sentinel.notify")

# "No notifier configured" is logged at most this often
_UNCONFIGURED_WARNING_INTERVAL = TimeDelta(hours=1)


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


class RateLimitedError(NotificationError):
    """Raised when the receiver kept rate limiting until attempts ran out."""


@runtime_checkable
class Notifier(Protocol):
    async def send(self, notification: Notification) -> None: ...


class FanoutNotifier:
    """Sends every notification to all configured notifiers.

    All notifiers are attempted; the first failure is raised afterwards.
    """

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self._notifiers = list(notifiers)
        self._last_unconfigured_warning: Instant | None = None

    async def send(self, notification: Notification) -> None:
        if not self._notifiers:
            self._warn_unconfigured(notification)
            return

        first_error: NotificationError | None = None
        for notifier in self._notifiers:
            try:
                await notifier.send(notification)
            except NotificationError as e:
                logger.error(
                    "%s failed for %s: %s", type(notifier).__name__, notification.rule_key, e
                )
                first_error = first_error or e
        if first_error is not None:
            raise first_error

    def _warn_unconfigured(self, notification: Notification) -> None:
        now = Instant.now()
        last = self._last_unconfigured_warning
        if last is not None and now - last < _UNCONFIGURED_WARNING_INTERVAL:
            return
        self._last_unconfigured_warning = now
        logger.warning(
            "No notifier configured, dropping notification for %s: %s",
            notification.rule_key,
            notification.subject,
        )
