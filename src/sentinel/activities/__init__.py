"""Temporal activities for the alerting service."""

from sentinel.activities.alerting import AlertingActivities

__all__ = ["AlertingActivities"]
