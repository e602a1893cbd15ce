"""Alert message and subject text."""

from sentinel_core import (
    display_six_digits_of_precision,
    format_bytes,
    percentile_with_suffix,
    with_unit,
)

from sentinel.models import (
    ErrorCountCondition,
    ErrorRateCondition,
    GaugeCondition,
    PercentileCondition,
    TransactionAverageCondition,
    TransactionCondition,
    TransactionCountCondition,
)

DEFAULT_DISPLAY = "Sentinel"


def _metric_text(condition: TransactionCondition | GaugeCondition) -> str:
    if isinstance(condition, PercentileCondition):
        return f"{percentile_with_suffix(condition.percentile)} percentile"
    if isinstance(condition, TransactionCountCondition):
        return "Transaction count"
    if isinstance(condition, ErrorRateCondition):
        return "Error rate"
    if isinstance(condition, ErrorCountCondition):
        return "Error count"
    # transaction average and gauge
    return "Average"


def _threshold_text(condition: TransactionCondition | GaugeCondition) -> str:
    if isinstance(condition, (PercentileCondition, TransactionAverageCondition)):
        return with_unit(condition.threshold_millis, "millisecond")
    if isinstance(condition, ErrorRateCondition):
        return f"{display_six_digits_of_precision(condition.threshold)} percent"
    if isinstance(condition, (TransactionCountCondition, ErrorCountCondition)):
        return display_six_digits_of_precision(condition.threshold)
    if condition.unit == "bytes":
        return format_bytes(condition.threshold)
    if condition.unit:
        return f"{display_six_digits_of_precision(condition.threshold)} {condition.unit}"
    return display_six_digits_of_precision(condition.threshold)


def format_alert_message(
    condition: TransactionCondition | GaugeCondition, *, resolved: bool = False
) -> str:
    """e.g. "95th percentile over the last 1 minute is greater than or equal
    to the alert threshold of 1 millisecond."
    """
    period = with_unit(condition.time_period_seconds / 60, "minute")
    comparison = "less" if condition.lower_bound_threshold else "greater"
    verb = "is no longer" if resolved else "is"
    return (
        f"{_metric_text(condition)} over the last {period} {verb} {comparison} than or equal to "
        f"the alert threshold of {_threshold_text(condition)}."
    )


def format_subject(
    condition: TransactionCondition | GaugeCondition, *, agent_display: str | None = None
) -> str:
    """``[<agent>] <transaction type - name | gauge>``."""
    if isinstance(condition, GaugeCondition):
        subject = condition.gauge_display or condition.gauge_name
    else:
        subject = condition.transaction_type
        if condition.transaction_name:
            subject += f" - {condition.transaction_name}"
    return f"[{agent_display or DEFAULT_DISPLAY}] {subject}"
