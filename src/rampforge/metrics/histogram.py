"""HDR histogram wrapper for run-long latency percentiles.

Wraps ``hdrh.histogram.HdrHistogram`` behind a millisecond API.  Values
are stored as integer microseconds, which is what the HDR histogram
accepts.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Range: 1 microsecond to 60 seconds (in microseconds)
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 60_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Latency histogram with bounded memory, whatever the sample count.

    All public methods take and return **milliseconds**.  Samples outside
    the trackable range are clamped into it.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    def record_latency_ms(self, latency_ms: float) -> bool:
        """Record one latency sample.

        Returns:
            True if the underlying histogram accepted the value.
        """
        value_us = int(latency_ms * 1000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        return bool(self._histogram.record_value(value_us))

    @property
    def total_count(self) -> int:
        return int(self._histogram.total_count)

    def get_percentile(self, percentile: float) -> float:
        """Value at *percentile* (0-100) in ms, 0.0 when empty."""
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def get_min(self) -> float:
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_min_value()) / 1000.0

    def get_max(self) -> float:
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_max_value()) / 1000.0

    def get_mean(self) -> float:
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_mean_value()) / 1000.0
