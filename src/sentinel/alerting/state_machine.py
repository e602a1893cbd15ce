"""Incident state machine - deterministic transition rules.

Per rule key there are two states, no-incident and open. Each evaluation
cycle maps (incident open?, condition breached?) to one transition:

    no-incident + breach      -> OPEN
    no-incident + no breach   -> NONE
    open        + breach      -> NONE   (already notified)
    open        + no breach   -> RESOLVE

INVARIANT: A breach never opens a second incident for the same key.
INVARIANT: Thresholds are inclusive in both directions.
"""

from enum import StrEnum

from sentinel.models import (
    GaugeCondition,
    MinTransactionCountCondition,
    TransactionCondition,
)


class IncidentTransition(StrEnum):
    NONE = "none"
    OPEN = "open"
    RESOLVE = "resolve"


def is_breached(condition: TransactionCondition | GaugeCondition, value: float) -> bool:
    """Upper bound breaches at or above the threshold, lower bound at or below."""
    if condition.lower_bound_threshold:
        return value <= condition.threshold
    return value >= condition.threshold


def decide_transition(*, incident_open: bool, breached: bool) -> IncidentTransition:
    """Map the current incident state and breach result to a transition."""
    if incident_open:
        return IncidentTransition.NONE if breached else IncidentTransition.RESOLVE
    return IncidentTransition.OPEN if breached else IncidentTransition.NONE


def is_transaction_count_too_low(
    condition: TransactionCondition | GaugeCondition, transaction_count: int | None
) -> bool:
    """Whether too few transactions were seen to open an incident.

    Only latency and error rate conditions carry a minimum; a transaction or
    error count is meaningful at any volume.
    """
    if not isinstance(condition, MinTransactionCountCondition) or transaction_count is None:
        return False
    return transaction_count < condition.min_transaction_count
