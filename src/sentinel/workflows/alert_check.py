"""AlertCheckWorkflow - Periodic alert evaluation for one agent.

Every cycle evaluates all of the agent's rules in parallel (one activity per
rule), then closes incidents left behind by rules that were removed. The
window end for a cycle is taken from ``workflow.now()`` so replays see the
same value.

Rules can be replaced at runtime with the ``update_rules`` signal; incidents
of rules dropped that way are closed by the next cycle's cleanup. The worker
sends that signal on every boot (signal-with-start), so rule file edits reach
a workflow that is already running.

The loop continues as new when the server suggests it (or after
``max_cycles_per_run`` cycles), carrying the current rules forward so the
event history stays bounded.
"""

import asyncio

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from whenever import TimeDelta

    from sentinel.activities import AlertingActivities
    from sentinel.models import (
        AlertCheckInput,
        AlertOutcome,
        AlertRule,
        CheckDeletedRulesInput,
        CheckMetricAlertInput,
    )


@workflow.defn
class AlertCheckWorkflow:
    """Continuous alert evaluation for a single agent.

    The workflow runs until cancelled.
    """

    @workflow.init
    def __init__(self, input: AlertCheckInput) -> None:
        # Set before any start signal is applied, so the signal wins
        self._rules: list[AlertRule] = list(input.rules)
        self._last_outcomes: dict[str, str] = {}

    @workflow.run
    async def run(self, input: AlertCheckInput) -> None:
        """Run the evaluation loop."""
        workflow.logger.info(f"AlertCheckWorkflow started for {input.agent_id}")
        timeout = TimeDelta(seconds=input.activity_timeout_sec).py_timedelta()
        cycles = 0

        while True:
            try:
                now_millis = int(workflow.now().timestamp() * 1000)
                rules = list(self._rules)

                outcomes = await asyncio.gather(
                    *(
                        workflow.execute_activity_method(
                            AlertingActivities.check_metric_alert,
                            CheckMetricAlertInput(
                                agent_id=input.agent_id,
                                agent_display=input.agent_display,
                                rule=rule,
                                now_millis=now_millis,
                            ),
                            start_to_close_timeout=timeout,
                        )
                        for rule in rules
                    )
                )
                self._last_outcomes = {
                    rule.key(input.agent_id): AlertOutcome(outcome).value
                    for rule, outcome in zip(rules, outcomes, strict=True)
                }

                await workflow.execute_activity_method(
                    AlertingActivities.check_deleted_rules,
                    CheckDeletedRulesInput(
                        agent_id=input.agent_id,
                        rules=rules,
                        now_millis=now_millis,
                    ),
                    start_to_close_timeout=timeout,
                )

            except Exception as e:
                workflow.logger.error(f"Error in alert check loop: {e}")

            await workflow.sleep(TimeDelta(seconds=input.check_interval_sec).py_timedelta())

            cycles += 1
            if workflow.info().is_continue_as_new_suggested() or (
                input.max_cycles_per_run is not None and cycles >= input.max_cycles_per_run
            ):
                workflow.logger.info(f"Continuing as new after {cycles} cycle(s)")
                workflow.continue_as_new(input.model_copy(update={"rules": list(self._rules)}))

    @workflow.signal
    def update_rules(self, rules: list[AlertRule]) -> None:
        """Replace the rules evaluated from the next cycle on."""
        workflow.logger.info(f"Rules updated: {len(rules)} rule(s)")
        self._rules = list(rules)

    @workflow.query
    def last_outcomes(self) -> dict[str, str]:
        """Query the outcome of each rule in the last completed cycle."""
        return dict(self._last_outcomes)

    @workflow.query
    def rule_count(self) -> int:
        """Query the number of rules being evaluated."""
        return len(self._rules)
