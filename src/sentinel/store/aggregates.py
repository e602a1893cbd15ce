"""Read access to rolled-up transaction aggregates and gauge values.

Rows are written by the aggregation pipeline; the alerting side only reads
them. Both repositories return rows in capture-time order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sentinel.models import (
    AggregateQuery,
    GaugeValue,
    PercentileAggregate,
    ThroughputAggregate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    import asyncpg


@runtime_checkable
class AggregateRepository(Protocol):
    async def read_percentile_aggregates(
        self, agent_id: str, query: AggregateQuery
    ) -> Sequence[PercentileAggregate]: ...

    async def read_throughput_aggregates(
        self, agent_id: str, query: AggregateQuery
    ) -> Sequence[ThroughputAggregate]: ...


@runtime_checkable
class GaugeRepository(Protocol):
    async def read_gauge_values(
        self,
        agent_id: str,
        gauge_name: str,
        from_millis: int,
        to_millis: int,
        rollup_level: int,
    ) -> Sequence[GaugeValue]: ...


class DsqlAggregateRepository:
    """Aggregates stored in the ``aggregate_histogram`` and ``aggregate_throughput`` tables.

    Whole-type rows are stored with an empty transaction name.
    """

    def __init__(self, *, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def read_percentile_aggregates(
        self, agent_id: str, query: AggregateQuery
    ) -> list[PercentileAggregate]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT capture_time, histogram, sample_count
                FROM aggregate_histogram
                WHERE agent_id = $1
                  AND rollup_level = $2
                  AND transaction_type = $3
                  AND transaction_name = $4
                  AND capture_time >= $5
                  AND capture_time <= $6
                ORDER BY capture_time
                """,
                agent_id,
                query.rollup_level,
                query.transaction_type,
                query.transaction_name or "",
                query.from_millis,
                query.to_millis,
            )
        return [
            PercentileAggregate(
                capture_time=row["capture_time"],
                histogram=bytes(row["histogram"]),
                sample_count=row["sample_count"],
            )
            for row in rows
        ]

    async def read_throughput_aggregates(
        self, agent_id: str, query: AggregateQuery
    ) -> list[ThroughputAggregate]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT capture_time, transaction_count, error_count, total_duration_nanos
                FROM aggregate_throughput
                WHERE agent_id = $1
                  AND rollup_level = $2
                  AND transaction_type = $3
                  AND transaction_name = $4
                  AND capture_time >= $5
                  AND capture_time <= $6
                ORDER BY capture_time
                """,
                agent_id,
                query.rollup_level,
                query.transaction_type,
                query.transaction_name or "",
                query.from_millis,
                query.to_millis,
            )
        return [
            ThroughputAggregate(
                capture_time=row["capture_time"],
                transaction_count=row["transaction_count"],
                error_count=row["error_count"],
                total_duration_nanos=row["total_duration_nanos"],
            )
            for row in rows
        ]


class DsqlGaugeRepository:
    """Gauge values stored in the ``gauge_value`` table."""

    def __init__(self, *, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def read_gauge_values(
        self,
        agent_id: str,
        gauge_name: str,
        from_millis: int,
        to_millis: int,
        rollup_level: int,
    ) -> list[GaugeValue]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT capture_time, value, weight
                FROM gauge_value
                WHERE agent_id = $1
                  AND rollup_level = $2
                  AND gauge_name = $3
                  AND capture_time >= $4
                  AND capture_time <= $5
                ORDER BY capture_time
                """,
                agent_id,
                rollup_level,
                gauge_name,
                from_millis,
                to_millis,
            )
        return [
            GaugeValue(capture_time=row["capture_time"], value=row["value"], weight=row["weight"])
            for row in rows
        ]
