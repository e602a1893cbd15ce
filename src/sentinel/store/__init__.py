"""Persistence for incidents, aggregates and gauges (Aurora DSQL)."""

from sentinel.store.aggregates import (
    AggregateRepository,
    DsqlAggregateRepository,
    DsqlGaugeRepository,
    GaugeRepository,
)
from sentinel.store.connection import connect, create_pool, get_dsql_token
from sentinel.store.incidents import DsqlIncidentStore, IncidentConflictError, IncidentTracker

__all__ = [
    "AggregateRepository",
    "DsqlAggregateRepository",
    "DsqlGaugeRepository",
    "DsqlIncidentStore",
    "GaugeRepository",
    "IncidentConflictError",
    "IncidentTracker",
    "connect",
    "create_pool",
    "get_dsql_token",
]
