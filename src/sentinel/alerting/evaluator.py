"""Alert evaluation - one cycle per rule.

Each call to ``check_metric_alert``:
1. Takes the rule key's lock (skips the cycle if another evaluation holds it)
2. Reads the open incident for the key
3. Computes the condition value over the trailing window
4. Applies the incident state machine (open / keep / resolve)
5. Releases the lock on every exit path

Failures of any collaborator are confined to the cycle: they are logged,
reported as ``AlertOutcome.FAILED`` and leave incident state as it was.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sentinel_core import LockSet
from whenever import Instant

from sentinel.alerting.messages import format_alert_message, format_subject
from sentinel.alerting.metrics import MetricReader
from sentinel.alerting.rollups import RollupLevels
from sentinel.alerting.state_machine import (
    IncidentTransition,
    decide_transition,
    is_breached,
    is_transaction_count_too_low,
)
from sentinel.models import AlertOutcome, AlertRule, IncidentDetail, Notification
from sentinel.store import IncidentConflictError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sentinel.models import ConditionValue, Incident
    from sentinel.notify import Notifier
    from sentinel.store import AggregateRepository, GaugeRepository, IncidentTracker

logger = logging.getLogger("sentinel.alerting")


class AlertEvaluator:
    """Evaluates metric alert rules and maintains their incidents."""

    def __init__(
        self,
        *,
        aggregates: AggregateRepository,
        gauges: GaugeRepository,
        incidents: IncidentTracker,
        notifier: Notifier,
        lock_set: LockSet | None = None,
        rollups: RollupLevels | None = None,
        read_timeout: float | None = None,
        agent_display: str | None = None,
    ) -> None:
        self._metrics = MetricReader(
            aggregates=aggregates,
            gauges=gauges,
            rollups=rollups or RollupLevels(),
        )
        self._incidents = incidents
        self._notifier = notifier
        self._lock_set = lock_set or LockSet()
        self._read_timeout = read_timeout
        self._agent_display = agent_display

    async def check_metric_alert(
        self,
        agent_id: str,
        rule: AlertRule,
        now_millis: int,
        *,
        agent_display: str | None = None,
    ) -> AlertOutcome:
        """Run one evaluation cycle for ``rule`` ending at ``now_millis``."""
        if not isinstance(rule, AlertRule):
            msg = f"Expected AlertRule, got {type(rule).__name__}"
            raise TypeError(msg)
        if not agent_id:
            msg = "agent_id must not be empty"
            raise ValueError(msg)
        if now_millis < 0:
            msg = f"now_millis must be non-negative, got {now_millis}"
            raise ValueError(msg)

        rule_key = rule.key(agent_id)
        token = self._lock_set.try_acquire(rule_key)
        if token is None:
            logger.info("Skipping %s: evaluation already in progress", rule_key)
            return AlertOutcome.SKIPPED_LOCKED

        try:
            return await self._evaluate(
                agent_id,
                rule,
                rule_key,
                now_millis,
                agent_display or self._agent_display,
            )
        except Exception:
            logger.exception("Alert check failed for %s", rule_key)
            return AlertOutcome.FAILED
        finally:
            self._lock_set.release(rule_key, token)

    async def check_for_deleted_rules(
        self, agent_id: str, rules: Iterable[AlertRule], now_millis: int
    ) -> list[str]:
        """Resolve open incidents whose rule is no longer configured.

        No notification is sent. Returns the rule keys that were closed.
        """
        current_keys = {rule.key(agent_id) for rule in rules}
        resolved_at = Instant.from_timestamp_millis(now_millis)
        closed = []
        for incident in await self._incidents.read_open_incidents(agent_id):
            if incident.rule_key in current_keys:
                continue
            token = self._lock_set.try_acquire(incident.rule_key)
            if token is None:
                continue
            try:
                await self._incidents.close_incident(incident.rule_key, resolved_at=resolved_at)
            finally:
                self._lock_set.release(incident.rule_key, token)
            logger.info("Closed incident %s: rule was deleted", incident.rule_key)
            closed.append(incident.rule_key)
        return closed

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def _evaluate(
        self,
        agent_id: str,
        rule: AlertRule,
        rule_key: str,
        now_millis: int,
        agent_display: str | None,
    ) -> AlertOutcome:
        incident = await self._incidents.read_open_incident(rule_key)
        value = await self._read_value(agent_id, rule, now_millis)
        if value is None:
            logger.debug("No data for %s in window ending %d", rule_key, now_millis)
            return AlertOutcome.NO_OP

        breached = is_breached(rule.condition, value.value)
        transition = decide_transition(incident_open=incident is not None, breached=breached)

        if transition == IncidentTransition.OPEN:
            if is_transaction_count_too_low(rule.condition, value.transaction_count):
                logger.info(
                    "Not opening %s: %s transactions below minimum",
                    rule_key,
                    value.transaction_count,
                )
                return AlertOutcome.NO_OP
            return await self._open(agent_id, rule, rule_key, now_millis, agent_display)
        if transition == IncidentTransition.RESOLVE:
            return await self._resolve(rule, incident, now_millis, agent_display)
        return AlertOutcome.NO_OP

    async def _read_value(
        self, agent_id: str, rule: AlertRule, now_millis: int
    ) -> ConditionValue | None:
        read = self._metrics.read_value(agent_id, rule.condition, now_millis)
        if self._read_timeout is None:
            return await read
        return await asyncio.wait_for(read, timeout=self._read_timeout)

    async def _open(
        self,
        agent_id: str,
        rule: AlertRule,
        rule_key: str,
        now_millis: int,
        agent_display: str | None,
    ) -> AlertOutcome:
        opened_at = Instant.from_timestamp_millis(now_millis)
        message = format_alert_message(rule.condition)
        detail = IncidentDetail(
            agent_id=agent_id,
            condition=rule.condition,
            severity=rule.severity,
            message=message,
        )
        try:
            incident = await self._incidents.open_incident(rule_key, detail, opened_at)
        except IncidentConflictError:
            logger.warning("Incident for %s was opened concurrently", rule_key)
            return AlertOutcome.NO_OP

        notification = Notification(
            rule_key=rule_key,
            subject=format_subject(rule.condition, agent_display=agent_display),
            body=message,
            severity=rule.severity,
            timestamp=opened_at.format_iso(),
        )
        try:
            await self._notifier.send(notification)
        except Exception:
            # Undo the open so the next cycle retries the notification
            await self._incidents.discard_incident(rule_key, incident.token)
            raise

        logger.info("Opened incident for %s: %s", rule_key, message)
        return AlertOutcome.OPENED

    async def _resolve(
        self,
        rule: AlertRule,
        incident: Incident,
        now_millis: int,
        agent_display: str | None,
    ) -> AlertOutcome:
        resolved_at = Instant.from_timestamp_millis(now_millis)
        if rule.notify_on_resolve:
            await self._notifier.send(
                Notification(
                    rule_key=incident.rule_key,
                    subject=format_subject(rule.condition, agent_display=agent_display),
                    body=format_alert_message(rule.condition, resolved=True),
                    severity=rule.severity,
                    resolved=True,
                    timestamp=resolved_at.format_iso(),
                )
            )
        await self._incidents.close_incident(incident.rule_key, resolved_at=resolved_at)
        logger.info("Resolved incident for %s", incident.rule_key)
        return AlertOutcome.CLOSED
