"""Temporal workflows for the alerting service."""

from sentinel.workflows.alert_check import AlertCheckWorkflow

__all__ = ["AlertCheckWorkflow"]
