"""Condition values computed from repository windows.

Windows are ``[now - period + 1, now]`` in epoch millis, so an aggregate
captured exactly at the previous window's end is not counted twice.
Missing data is reported as ``None`` rather than raised. Count conditions
are the exception: an empty window has a count of zero.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sentinel_core import Histogram

from sentinel.models import (
    AggregateQuery,
    ConditionValue,
    ErrorCountCondition,
    ErrorRateCondition,
    GaugeCondition,
    PercentileCondition,
    TransactionAverageCondition,
    TransactionCondition,
    TransactionCountCondition,
)

if TYPE_CHECKING:
    from sentinel.alerting.rollups import RollupLevels
    from sentinel.store import AggregateRepository, GaugeRepository

logger = logging.getLogger("sentinel.alerting.metrics")

NANOS_PER_MILLI = 1_000_000


def window_bounds(time_period_seconds: int, now_millis: int) -> tuple[int, int]:
    """Inclusive (from, to) millis of the trailing window ending at ``now_millis``."""
    return now_millis - time_period_seconds * 1000 + 1, now_millis


class MetricReader:
    """Reads a condition's current value from the aggregate and gauge repositories."""

    def __init__(
        self,
        *,
        aggregates: AggregateRepository,
        gauges: GaugeRepository,
        rollups: RollupLevels,
    ) -> None:
        self._aggregates = aggregates
        self._gauges = gauges
        self._rollups = rollups

    async def read_value(
        self,
        agent_id: str,
        condition: TransactionCondition | GaugeCondition,
        now_millis: int,
    ) -> ConditionValue | None:
        if isinstance(condition, PercentileCondition):
            return await self.read_percentile(agent_id, condition, now_millis)
        if isinstance(condition, TransactionAverageCondition):
            return await self.read_transaction_average(agent_id, condition, now_millis)
        if isinstance(condition, TransactionCountCondition):
            return await self.read_transaction_count(agent_id, condition, now_millis)
        if isinstance(condition, ErrorRateCondition):
            return await self.read_error_rate(agent_id, condition, now_millis)
        if isinstance(condition, ErrorCountCondition):
            return await self.read_error_count(agent_id, condition, now_millis)
        return await self.read_gauge_average(agent_id, condition, now_millis)

    def _query(self, condition: TransactionCondition, now_millis: int) -> AggregateQuery:
        from_millis, to_millis = window_bounds(condition.time_period_seconds, now_millis)
        return AggregateQuery(
            transaction_type=condition.transaction_type,
            transaction_name=condition.transaction_name,
            from_millis=from_millis,
            to_millis=to_millis,
            rollup_level=self._rollups.level_for_window(from_millis, to_millis, now_millis),
        )

    async def read_percentile(
        self, agent_id: str, condition: PercentileCondition, now_millis: int
    ) -> ConditionValue | None:
        """Merge the window's histograms and take the percentile, in milliseconds."""
        query = self._query(condition, now_millis)
        aggregates = await self._aggregates.read_percentile_aggregates(agent_id, query)
        if not aggregates:
            return None

        merged = Histogram()
        transaction_count = 0
        for aggregate in aggregates:
            merged.merge(aggregate.histogram)
            transaction_count += aggregate.sample_count
        if merged.total_count == 0:
            return None

        value = merged.percentile(condition.percentile) / NANOS_PER_MILLI
        logger.debug(
            "%s p%s over %d aggregates = %sms",
            agent_id,
            condition.percentile,
            len(aggregates),
            value,
        )
        return ConditionValue(value=value, transaction_count=transaction_count)

    async def read_transaction_average(
        self, agent_id: str, condition: TransactionAverageCondition, now_millis: int
    ) -> ConditionValue | None:
        """Total duration over total transactions, in milliseconds."""
        query = self._query(condition, now_millis)
        aggregates = await self._aggregates.read_throughput_aggregates(agent_id, query)
        transaction_count = sum(a.transaction_count for a in aggregates)
        if transaction_count == 0:
            return None
        total_nanos = sum(a.total_duration_nanos for a in aggregates)
        value = total_nanos / (transaction_count * NANOS_PER_MILLI)
        return ConditionValue(value=value, transaction_count=transaction_count)

    async def read_transaction_count(
        self, agent_id: str, condition: TransactionCountCondition, now_millis: int
    ) -> ConditionValue:
        query = self._query(condition, now_millis)
        aggregates = await self._aggregates.read_throughput_aggregates(agent_id, query)
        transaction_count = sum(a.transaction_count for a in aggregates)
        return ConditionValue(value=transaction_count, transaction_count=transaction_count)

    async def read_error_rate(
        self, agent_id: str, condition: ErrorRateCondition, now_millis: int
    ) -> ConditionValue | None:
        """Errors as a percentage of transactions; None without traffic."""
        query = self._query(condition, now_millis)
        aggregates = await self._aggregates.read_throughput_aggregates(agent_id, query)
        transaction_count = sum(a.transaction_count for a in aggregates)
        if transaction_count == 0:
            return None
        error_count = sum(a.error_count for a in aggregates)
        return ConditionValue(
            value=100.0 * error_count / transaction_count,
            transaction_count=transaction_count,
        )

    async def read_error_count(
        self, agent_id: str, condition: ErrorCountCondition, now_millis: int
    ) -> ConditionValue:
        query = self._query(condition, now_millis)
        aggregates = await self._aggregates.read_throughput_aggregates(agent_id, query)
        return ConditionValue(
            value=sum(a.error_count for a in aggregates),
            transaction_count=sum(a.transaction_count for a in aggregates),
        )

    async def read_gauge_average(
        self, agent_id: str, condition: GaugeCondition, now_millis: int
    ) -> ConditionValue | None:
        """Weighted mean of the window's gauge values."""
        from_millis, to_millis = window_bounds(condition.time_period_seconds, now_millis)
        values = await self._gauges.read_gauge_values(
            agent_id,
            condition.gauge_name,
            from_millis,
            to_millis,
            self._rollups.level_for_window(from_millis, to_millis, now_millis),
        )
        total_weight = sum(v.weight for v in values)
        if total_weight == 0:
            return None
        value = sum(v.value * v.weight for v in values) / total_weight
        return ConditionValue(value=value)
