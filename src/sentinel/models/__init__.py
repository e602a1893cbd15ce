"""Pydantic models for the alerting service."""

from .activity_inputs import CheckDeletedRulesInput, CheckMetricAlertInput
from .config import RollupConfig, RollupSettings, SentinelConfig
from .incidents import (
    AlertOutcome,
    Incident,
    IncidentDetail,
    Notification,
    ResolvedIncident,
)
from .metrics import (
    AggregateQuery,
    ConditionValue,
    GaugeValue,
    PercentileAggregate,
    ThroughputAggregate,
)
from .rules import (
    AVERAGE_METRIC,
    ERROR_COUNT_METRIC,
    ERROR_RATE_METRIC,
    PERCENTILE_METRIC,
    TRANSACTION_COUNT_METRIC,
    AgentRules,
    AlertRule,
    AlertSeverity,
    ErrorCountCondition,
    ErrorRateCondition,
    GaugeCondition,
    MetricCondition,
    MinTransactionCountCondition,
    PercentileCondition,
    RuleSet,
    TransactionAverageCondition,
    TransactionCondition,
    TransactionCountCondition,
)
from .workflow_inputs import AlertCheckInput

__all__ = [
    # Rules
    "AVERAGE_METRIC",
    "ERROR_COUNT_METRIC",
    "ERROR_RATE_METRIC",
    "PERCENTILE_METRIC",
    "TRANSACTION_COUNT_METRIC",
    "AgentRules",
    "AlertRule",
    "AlertSeverity",
    "ErrorCountCondition",
    "ErrorRateCondition",
    "GaugeCondition",
    "MetricCondition",
    "MinTransactionCountCondition",
    "PercentileCondition",
    "RuleSet",
    "TransactionAverageCondition",
    "TransactionCondition",
    "TransactionCountCondition",
    # Incidents
    "AlertOutcome",
    "Incident",
    "IncidentDetail",
    "Notification",
    "ResolvedIncident",
    # Metrics
    "AggregateQuery",
    "ConditionValue",
    "GaugeValue",
    "PercentileAggregate",
    "ThroughputAggregate",
    # Config
    "RollupConfig",
    "RollupSettings",
    "SentinelConfig",
    # Activity inputs
    "CheckDeletedRulesInput",
    "CheckMetricAlertInput",
    # Workflow inputs
    "AlertCheckInput",
]
