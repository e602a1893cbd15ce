"""Sentinel - metric alerting for APM aggregates.

Evaluates percentile and gauge alert rules against rolled-up aggregates,
keeps one incident per breached rule and notifies on each transition.

Quick start:
    from sentinel.alerting import AlertEvaluator

    evaluator = AlertEvaluator(
        aggregates=..., gauges=..., incidents=..., notifier=...
    )
    outcome = await evaluator.check_metric_alert(agent_id, rule, now_millis)
"""

__version__ = "0.1.0"
