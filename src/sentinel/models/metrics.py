"""Rows read from the aggregate and gauge repositories."""

from pydantic import BaseModel, Field


class AggregateQuery(BaseModel):
    """Window of aggregates for one transaction type (or name)."""

    transaction_type: str
    transaction_name: str | None = None
    from_millis: int = Field(description="Inclusive start of the window, epoch millis")
    to_millis: int = Field(description="Inclusive end of the window, epoch millis")
    rollup_level: int = Field(default=0, ge=0)


class PercentileAggregate(BaseModel):
    """One rollup interval's latency histogram (nanoseconds)."""

    capture_time: int = Field(description="End of the rollup interval, epoch millis")
    histogram: bytes = Field(description="Encoded sentinel_core Histogram")
    sample_count: int = Field(ge=0, description="Transactions recorded in the interval")


class ThroughputAggregate(BaseModel):
    """One rollup interval's transaction and error totals."""

    capture_time: int = Field(description="End of the rollup interval, epoch millis")
    transaction_count: int = Field(ge=0, description="Transactions recorded in the interval")
    error_count: int = Field(default=0, ge=0, description="Transactions that ended in an error")
    total_duration_nanos: float = Field(
        default=0, ge=0, description="Summed duration of the interval's transactions"
    )


class GaugeValue(BaseModel):
    """One rollup interval's gauge reading."""

    capture_time: int
    value: float
    weight: int = Field(default=1, ge=0, description="Samples averaged into this value")


class ConditionValue(BaseModel):
    """A condition's computed value for one window."""

    value: float
    transaction_count: int | None = Field(
        default=None, description="Transactions in the window; None for gauge conditions"
    )
