"""Keyed mutual exclusion with per-acquisition tokens.

At most one live token exists per key. Releasing requires the token that
acquired the key, so a holder that was force-released after its lease ran
out cannot release a newer holder's lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

logger = logging.getLogger("sentinel_core.lockset")


@dataclass(frozen=True)
class _Holder:
    token: str
    acquired_at: float


class LockSet:
    """Thread-safe set of named locks.

    Args:
        lease_seconds: If set, a holder older than this is force-released by
            the next acquisition attempt for the same key.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        *,
        lease_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if lease_seconds is not None and lease_seconds <= 0:
            msg = f"lease_seconds must be positive, got {lease_seconds}"
            raise ValueError(msg)
        self._lease_seconds = lease_seconds
        self._clock = clock
        self._holders: dict[str, _Holder] = {}
        self._condition = threading.Condition()

    def try_acquire(self, key: str) -> str | None:
        """Acquire ``key`` without blocking. Returns None if it is held."""
        with self._condition:
            return self._acquire_locked(key)

    def acquire(self, key: str, timeout: float | None = None) -> str | None:
        """Acquire ``key``, waiting until it is free.

        Returns the token, or None if ``timeout`` seconds pass first.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._condition:
            while True:
                token = self._acquire_locked(key)
                if token is not None:
                    return token
                if deadline is None:
                    wait = self._lease_seconds
                else:
                    wait = deadline - self._clock()
                    if wait <= 0:
                        return None
                    if self._lease_seconds is not None:
                        wait = min(wait, self._lease_seconds)
                self._condition.wait(wait)

    def release(self, key: str, token: str) -> bool:
        """Release ``key`` if ``token`` is its current holder.

        Returns False (and changes nothing) for a stale or unknown token.
        """
        with self._condition:
            holder = self._holders.get(key)
            if holder is None or holder.token != token:
                logger.debug("Ignoring release of %s with non-holder token", key)
                return False
            del self._holders[key]
            self._condition.notify_all()
            return True

    def holder(self, key: str) -> str | None:
        """Token currently holding ``key``, if any."""
        with self._condition:
            holder = self._holders.get(key)
            return holder.token if holder else None

    def __contains__(self, key: object) -> bool:
        with self._condition:
            return key in self._holders

    def __len__(self) -> int:
        with self._condition:
            return len(self._holders)

    def _acquire_locked(self, key: str) -> str | None:
        now = self._clock()
        holder = self._holders.get(key)
        if holder is not None:
            if self._lease_seconds is None or now - holder.acquired_at < self._lease_seconds:
                return None
            logger.warning(
                "Force-releasing lock %s held for %.1fs (lease %.1fs)",
                key,
                now - holder.acquired_at,
                self._lease_seconds,
            )
        token = uuid4().hex
        self._holders[key] = _Holder(token=token, acquired_at=now)
        return token
