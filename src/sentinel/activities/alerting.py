"""Alerting activities.

Activities are methods on ``AlertingActivities`` so every invocation in a
worker shares one evaluator, and with it one LockSet: overlapping checks of
the same rule in this process are serialized through it.
"""

from temporalio import activity

from sentinel.alerting import AlertEvaluator
from sentinel.models import AlertOutcome, CheckDeletedRulesInput, CheckMetricAlertInput


class AlertingActivities:
    def __init__(self, evaluator: AlertEvaluator) -> None:
        self._evaluator = evaluator

    @activity.defn(name="check_metric_alert")
    async def check_metric_alert(self, input: CheckMetricAlertInput) -> AlertOutcome:
        """Evaluate one rule for one cycle.

        Args:
            input: CheckMetricAlertInput with the agent, rule and window end

        Returns:
            The cycle's AlertOutcome
        """
        outcome = await self._evaluator.check_metric_alert(
            input.agent_id,
            input.rule,
            input.now_millis,
            agent_display=input.agent_display,
        )
        activity.logger.info(f"{input.rule.key(input.agent_id)}: {outcome.value}")
        return outcome

    @activity.defn(name="check_deleted_rules")
    async def check_deleted_rules(self, input: CheckDeletedRulesInput) -> list[str]:
        """Close open incidents of rules that were removed from the configuration."""
        closed = await self._evaluator.check_for_deleted_rules(
            input.agent_id, input.rules, input.now_millis
        )
        if closed:
            activity.logger.info(f"Closed {len(closed)} incident(s) of deleted rules")
        return closed
