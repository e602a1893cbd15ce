"""Alert rule and condition models.

A rule's identity is its key: agent id plus a digest of the condition and
severity. Anything that changes what the rule alerts on changes the key;
notification policy (``notify_on_resolve``) does not.
"""

import hashlib
import json
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

PERCENTILE_METRIC = "transaction:x-percentile"
AVERAGE_METRIC = "transaction:average"
TRANSACTION_COUNT_METRIC = "transaction:count"
ERROR_RATE_METRIC = "error:rate"
ERROR_COUNT_METRIC = "error:count"


class AlertSeverity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class _TransactionScope(BaseModel):
    """Fields shared by conditions on one transaction type (or name)."""

    transaction_type: str = Field(min_length=1, description="Transaction type, e.g. Web")
    transaction_name: str | None = Field(
        default=None, description="Single transaction name, or None for the whole type"
    )
    time_period_seconds: int = Field(gt=0, description="Trailing window evaluated each cycle")
    lower_bound_threshold: bool = Field(
        default=False, description="Breach when at or below the threshold instead of above"
    )


class PercentileCondition(_TransactionScope):
    """Transaction latency percentile over a trailing window."""

    kind: Literal["percentile"] = "percentile"
    percentile: float = Field(ge=0, le=100, description="Percentile to evaluate (0-100)")
    threshold_millis: float = Field(ge=0, description="Alert threshold in milliseconds")
    min_transaction_count: int = Field(
        default=0, ge=0, description="Do not open an incident on fewer transactions than this"
    )

    @property
    def metric(self) -> str:
        return PERCENTILE_METRIC

    @property
    def threshold(self) -> float:
        return self.threshold_millis


class TransactionAverageCondition(_TransactionScope):
    """Mean transaction duration over a trailing window."""

    kind: Literal["transaction_average"] = "transaction_average"
    threshold_millis: float = Field(ge=0, description="Alert threshold in milliseconds")
    min_transaction_count: int = Field(
        default=0, ge=0, description="Do not open an incident on fewer transactions than this"
    )

    @property
    def metric(self) -> str:
        return AVERAGE_METRIC

    @property
    def threshold(self) -> float:
        return self.threshold_millis


class TransactionCountCondition(_TransactionScope):
    """Number of transactions in a trailing window.

    An empty window counts as zero, so a lower bound rule fires when traffic
    stops entirely.
    """

    kind: Literal["transaction_count"] = "transaction_count"
    threshold: float = Field(ge=0, description="Alert threshold in transactions")

    @property
    def metric(self) -> str:
        return TRANSACTION_COUNT_METRIC


class ErrorRateCondition(_TransactionScope):
    """Percentage of transactions that ended in an error."""

    kind: Literal["error_rate"] = "error_rate"
    threshold: float = Field(ge=0, le=100, description="Alert threshold in percent")
    min_transaction_count: int = Field(
        default=0, ge=0, description="Do not open an incident on fewer transactions than this"
    )

    @property
    def metric(self) -> str:
        return ERROR_RATE_METRIC


class ErrorCountCondition(_TransactionScope):
    """Number of errors in a trailing window; an empty window counts as zero."""

    kind: Literal["error_count"] = "error_count"
    threshold: float = Field(ge=0, description="Alert threshold in errors")

    @property
    def metric(self) -> str:
        return ERROR_COUNT_METRIC


class GaugeCondition(BaseModel):
    """Weighted average of a gauge over a trailing window."""

    kind: Literal["gauge"] = "gauge"
    gauge_name: str = Field(min_length=1, description="Gauge identifier in the gauge repository")
    gauge_display: str | None = Field(default=None, description="Human readable gauge name")
    unit: str = Field(default="", description="Unit label; 'bytes' is formatted as a size")
    threshold: float = Field(description="Alert threshold in the gauge's unit")
    time_period_seconds: int = Field(gt=0, description="Trailing window evaluated each cycle")
    lower_bound_threshold: bool = Field(
        default=False, description="Breach when at or below the threshold instead of above"
    )

    @property
    def metric(self) -> str:
        return f"gauge:{self.gauge_name}"


TransactionCondition = (
    PercentileCondition
    | TransactionAverageCondition
    | TransactionCountCondition
    | ErrorRateCondition
    | ErrorCountCondition
)
MinTransactionCountCondition = (
    PercentileCondition | TransactionAverageCondition | ErrorRateCondition
)
MetricCondition = Annotated[TransactionCondition | GaugeCondition, Field(discriminator="kind")]


class AlertRule(BaseModel):
    """A metric condition plus how incidents for it are reported."""

    condition: MetricCondition
    severity: AlertSeverity = Field(default=AlertSeverity.HIGH)
    notify_on_resolve: bool = Field(
        default=True, description="Send a notification when an open incident resolves"
    )

    def key(self, agent_id: str) -> str:
        """Stable identity used for locking and incident tracking."""
        content = json.dumps(
            {
                "condition": self.condition.model_dump(mode="json"),
                "severity": self.severity.value,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        digest = hashlib.sha256(content.encode()).hexdigest()[:32]
        return f"{agent_id}:{digest}"


class AgentRules(BaseModel):
    """All rules evaluated for one agent."""

    agent_id: str = Field(min_length=1)
    agent_display: str | None = Field(default=None, description="Name used in message subjects")
    rules: list[AlertRule] = Field(default_factory=list)


class RuleSet(BaseModel):
    """Contents of a rules file."""

    agents: list[AgentRules] = Field(default_factory=list)
