"""Incident, notification and evaluation outcome models.

Date/Time: timestamps are ISO 8601 strings produced with whenever's
``Instant.format_iso()``, so the models serialize unchanged through the
Temporal data converter and the API.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from .rules import AlertSeverity, MetricCondition  # noqa: TC001


class AlertOutcome(StrEnum):
    """Result of one evaluation cycle for one rule."""

    NO_OP = "noop"
    OPENED = "opened"
    CLOSED = "closed"
    SKIPPED_LOCKED = "skipped_locked"
    FAILED = "failed"


class IncidentDetail(BaseModel):
    """What was true when the incident opened."""

    agent_id: str
    condition: MetricCondition
    severity: AlertSeverity
    message: str = Field(description="Alert text sent when the incident opened")


class Incident(BaseModel):
    """An open incident. At most one exists per rule key."""

    rule_key: str
    token: str = Field(description="Opaque identity of this incident")
    opened_at: str = Field(description="ISO 8601 UTC")
    detail: IncidentDetail

    @property
    def agent_id(self) -> str:
        return self.detail.agent_id


class ResolvedIncident(BaseModel):
    """Resolution history entry."""

    rule_key: str
    token: str
    opened_at: str = Field(description="ISO 8601 UTC")
    resolved_at: str = Field(description="ISO 8601 UTC")
    detail: IncidentDetail


class Notification(BaseModel):
    """One message handed to the notification dispatcher."""

    rule_key: str
    subject: str
    body: str
    severity: AlertSeverity
    resolved: bool = False
    timestamp: str = Field(description="ISO 8601 UTC")
