"""Metric alert evaluation."""

from sentinel.alerting.evaluator import AlertEvaluator
from sentinel.alerting.messages import format_alert_message, format_subject
from sentinel.alerting.metrics import MetricReader, window_bounds
from sentinel.alerting.rollups import RollupLevels
from sentinel.alerting.state_machine import IncidentTransition, decide_transition, is_breached

__all__ = [
    "AlertEvaluator",
    "IncidentTransition",
    "MetricReader",
    "RollupLevels",
    "decide_transition",
    "format_alert_message",
    "format_subject",
    "is_breached",
    "window_bounds",
]
