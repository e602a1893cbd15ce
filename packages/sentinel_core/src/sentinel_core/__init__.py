"""Shared building blocks for metric aggregation and alerting.

Nothing in this package performs I/O: the histogram, lock set and
formatting helpers are safe to use from workers, activities and CLIs alike.
"""

from sentinel_core.formatting import (
    display_six_digits_of_precision,
    format_bytes,
    format_decimal,
    percentile_suffix,
    percentile_with_suffix,
    with_unit,
)
from sentinel_core.histogram import (
    MAX_EXACT_VALUES,
    EmptyHistogramError,
    Histogram,
    HistogramDecodeError,
)
from sentinel_core.lockset import LockSet

__all__ = [
    "MAX_EXACT_VALUES",
    "EmptyHistogramError",
    "Histogram",
    "HistogramDecodeError",
    "LockSet",
    "display_six_digits_of_precision",
    "format_bytes",
    "format_decimal",
    "percentile_suffix",
    "percentile_with_suffix",
    "with_unit",
]
