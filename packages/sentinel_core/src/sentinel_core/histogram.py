"""Online latency histogram with an exact-to-bucketed representation.

Small sample sets are kept exactly, so low-volume rollups report precise
percentiles without allocating bucket arrays. Once more than
``MAX_EXACT_VALUES`` samples have been recorded the values are re-recorded
into an HdrHistogram (log-linear buckets, 2 significant digits) and the
histogram stays bucketed from then on.

Wire format (big-endian, byte-stable across processes):

    byte 0      format version (``FORMAT_VERSION``)
    byte 1      discriminator: 0 = exact list, 1 = bucketed
    exact       uint32 count, then count x uint64 values in ascending order
    bucketed    uint64 total count, then the compressed HdrHistogram payload
"""

from __future__ import annotations

import logging
import math
import struct
from decimal import Decimal

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

logger = logging.getLogger("sentinel_core.histogram")

FORMAT_VERSION = 1
EXACT_ENCODING = 0
BUCKETED_ENCODING = 1

# Exact storage holds at most this many samples before converting.
MAX_EXACT_VALUES = 1024

_LOWEST_TRACKABLE_VALUE = 1
_HIGHEST_TRACKABLE_VALUE = 2**48 - 1
_SIGNIFICANT_DIGITS = 2

_HEADER = struct.Struct(">BB")
_EXACT_COUNT = struct.Struct(">I")
_BUCKETED_COUNT = struct.Struct(">Q")


class HistogramDecodeError(ValueError):
    """Raised when an encoded histogram is corrupt or incompatible."""


class EmptyHistogramError(ValueError):
    """Raised when a percentile is requested from an empty histogram."""


def _new_buckets() -> HdrHistogram:
    return HdrHistogram(
        _LOWEST_TRACKABLE_VALUE,
        _HIGHEST_TRACKABLE_VALUE,
        _SIGNIFICANT_DIGITS,
        b64_wrap=False,
    )


def _target_rank(percentile: float, total: int) -> int:
    """1-based nearest rank for ``percentile`` over ``total`` samples."""
    # Decimal keeps 99.9 * 1000 / 100 from landing on 999.0000000001
    rank = math.ceil(Decimal(str(percentile)) * total / 100)
    return max(rank, 1)


class Histogram:
    """Percentile histogram over non-negative integer samples.

    Not thread-safe. Callers that share an instance across threads must
    synchronize externally; merging into a private copy is always safe.
    """

    def __init__(self) -> None:
        self._values: list[int] = []
        self._sorted = True
        self._buckets: HdrHistogram | None = None

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add(self, value: int) -> None:
        """Record one sample."""
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"Histogram samples must be integers, got {type(value).__name__}"
            raise TypeError(msg)
        if value < 0:
            msg = f"Histogram samples must be non-negative, got {value}"
            raise ValueError(msg)
        if value > _HIGHEST_TRACKABLE_VALUE:
            logger.debug("Clamping sample %s to %s", value, _HIGHEST_TRACKABLE_VALUE)
            value = _HIGHEST_TRACKABLE_VALUE

        if self._buckets is not None:
            self._buckets.record_value(value)
            return

        if self._values and value < self._values[-1]:
            self._sorted = False
        self._values.append(value)
        if len(self._values) > MAX_EXACT_VALUES:
            self._convert_to_buckets()

    def merge(self, other: Histogram | bytes) -> None:
        """Combine another histogram, or its encoded form, into this one."""
        if isinstance(other, (bytes, bytearray, memoryview)):
            other = Histogram.decode(bytes(other))
        elif not isinstance(other, Histogram):
            msg = f"Cannot merge {type(other).__name__} into a Histogram"
            raise TypeError(msg)

        if other._buckets is None:
            for value in list(other._values):
                self.add(value)
            return

        if self._buckets is None:
            self._convert_to_buckets()
        self._buckets.add(other._buckets)

    def copy(self) -> Histogram:
        """Return an independent histogram with the same distribution."""
        clone = Histogram()
        clone.merge(self)
        return clone

    def _convert_to_buckets(self) -> None:
        self._buckets = _new_buckets()
        for value in self._values:
            self._buckets.record_value(value)
        self._values = []
        self._sorted = True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def total_count(self) -> int:
        if self._buckets is not None:
            return self._buckets.get_total_count()
        return len(self._values)

    @property
    def is_exact(self) -> bool:
        """True while samples are still stored exactly."""
        return self._buckets is None

    def percentile(self, percentile: float) -> int:
        """Return the nearest-rank value at ``percentile`` (0..100).

        Raises:
            ValueError: if ``percentile`` is outside [0, 100].
            EmptyHistogramError: if no samples have been recorded.
        """
        if not 0 <= percentile <= 100:
            msg = f"Percentile must be within [0, 100], got {percentile}"
            raise ValueError(msg)
        total = self.total_count
        if total == 0:
            msg = "Cannot compute a percentile of an empty histogram"
            raise EmptyHistogramError(msg)

        rank = _target_rank(percentile, total)
        if self._buckets is None:
            return self._sorted_values()[rank - 1]

        buckets = self._buckets
        running = 0
        for index in range(buckets.counts_len):
            running += buckets.get_count_at_index(index)
            if running >= rank:
                return buckets.get_highest_equivalent_value(buckets.get_value_from_index(index))
        # counts always sum to total_count, so the loop returns before this
        return buckets.get_max_value()

    def _sorted_values(self) -> list[int]:
        if not self._sorted:
            self._values.sort()
            self._sorted = True
        return self._values

    def __repr__(self) -> str:
        kind = "exact" if self.is_exact else "bucketed"
        return f"Histogram(total_count={self.total_count}, {kind})"

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode(self) -> bytes:
        """Encode into the versioned binary wire format."""
        if self._buckets is None:
            values = self._sorted_values()
            return (
                _HEADER.pack(FORMAT_VERSION, EXACT_ENCODING)
                + _EXACT_COUNT.pack(len(values))
                + struct.pack(f">{len(values)}Q", *values)
            )
        return (
            _HEADER.pack(FORMAT_VERSION, BUCKETED_ENCODING)
            + _BUCKETED_COUNT.pack(self._buckets.get_total_count())
            + self._buckets.encode()
        )

    @classmethod
    def decode(cls, data: bytes) -> Histogram:
        """Decode bytes produced by :meth:`encode`.

        Raises:
            HistogramDecodeError: if the data is corrupt, truncated or was
                produced with a different format or bucket configuration.
        """
        if len(data) < _HEADER.size:
            msg = f"Encoded histogram too short: {len(data)} bytes"
            raise HistogramDecodeError(msg)
        version, kind = _HEADER.unpack_from(data)
        if version != FORMAT_VERSION:
            msg = f"Unsupported histogram format version {version}"
            raise HistogramDecodeError(msg)
        if kind == EXACT_ENCODING:
            return cls._decode_exact(data)
        if kind == BUCKETED_ENCODING:
            return cls._decode_bucketed(data)
        msg = f"Unknown histogram encoding discriminator {kind}"
        raise HistogramDecodeError(msg)

    @classmethod
    def _decode_exact(cls, data: bytes) -> Histogram:
        offset = _HEADER.size
        if len(data) < offset + _EXACT_COUNT.size:
            msg = "Encoded exact histogram is missing its count"
            raise HistogramDecodeError(msg)
        (count,) = _EXACT_COUNT.unpack_from(data, offset)
        offset += _EXACT_COUNT.size
        if count > MAX_EXACT_VALUES:
            msg = f"Exact histogram holds {count} values, limit is {MAX_EXACT_VALUES}"
            raise HistogramDecodeError(msg)
        expected = offset + 8 * count
        if len(data) != expected:
            msg = f"Exact histogram of {count} values needs {expected} bytes, got {len(data)}"
            raise HistogramDecodeError(msg)

        values = list(struct.unpack_from(f">{count}Q", data, offset))
        if any(a > b for a, b in zip(values, values[1:], strict=False)):
            msg = "Exact histogram values are not in ascending order"
            raise HistogramDecodeError(msg)
        if values and values[-1] > _HIGHEST_TRACKABLE_VALUE:
            msg = f"Exact histogram value {values[-1]} exceeds {_HIGHEST_TRACKABLE_VALUE}"
            raise HistogramDecodeError(msg)

        histogram = cls()
        histogram._values = values
        return histogram

    @classmethod
    def _decode_bucketed(cls, data: bytes) -> Histogram:
        offset = _HEADER.size
        if len(data) < offset + _BUCKETED_COUNT.size:
            msg = "Encoded bucketed histogram is missing its count"
            raise HistogramDecodeError(msg)
        (total,) = _BUCKETED_COUNT.unpack_from(data, offset)
        payload = data[offset + _BUCKETED_COUNT.size :]
        if not payload:
            msg = "Encoded bucketed histogram has no bucket payload"
            raise HistogramDecodeError(msg)

        try:
            buckets = HdrHistogram.decode(payload, b64_wrap=False)
        except Exception as e:
            msg = f"Bucket payload could not be decoded: {e}"
            raise HistogramDecodeError(msg) from e

        if (
            buckets.lowest_trackable_value != _LOWEST_TRACKABLE_VALUE
            or buckets.highest_trackable_value != _HIGHEST_TRACKABLE_VALUE
            or buckets.significant_figures != _SIGNIFICANT_DIGITS
        ):
            msg = (
                "Bucket payload uses an incompatible configuration: "
                f"range [{buckets.lowest_trackable_value}, {buckets.highest_trackable_value}], "
                f"{buckets.significant_figures} significant digits"
            )
            raise HistogramDecodeError(msg)
        if buckets.get_total_count() != total:
            msg = f"Header count {total} disagrees with payload count {buckets.get_total_count()}"
            raise HistogramDecodeError(msg)

        # decoded HdrHistograms re-encode base64 wrapped; copy into raw buckets
        histogram = cls()
        histogram._buckets = _new_buckets()
        histogram._buckets.add(buckets)
        return histogram
