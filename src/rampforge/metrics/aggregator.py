"""Concurrency-safe accumulation of check results and latency samples.

Virtual users never touch shared counters.  They append events to a
``collections.deque`` (appends are atomic), and a single reader drains the
deque under a lock, folding events into the cumulative accumulator.  The
session drains once per scheduler tick to build a ``MetricSnapshot`` and a
last time when the run ends to produce the ``RunSummary``.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import TYPE_CHECKING

import numpy as np

from rampforge._internal.logging import get_logger
from rampforge.dsl.checks import CheckResult
from rampforge.dsl.http_client import RequestMetric
from rampforge.metrics.histogram import LatencyHistogram
from rampforge.metrics.models import CheckStats, IterationRecord, MetricSnapshot, RunSummary

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("metrics.aggregator")

_Event = RequestMetric | CheckResult | IterationRecord


def _interval_latencies(latencies: list[float]) -> tuple[float, float, float, float]:
    """Return (avg, p50, p95, p99) for one interval, zeros when empty."""
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0)
    arr = np.array(latencies, dtype=np.float64)
    p50, p95, p99 = np.percentile(arr, [50.0, 95.0, 99.0])
    return (float(np.mean(arr)), float(p50), float(p95), float(p99))


class ResultAggregator:
    """Collects results from every virtual user for the whole run.

    ``record_*`` methods may be called from any coroutine or thread.
    ``drain`` and ``finalize`` are meant for one reader at a time and are
    serialised by a ``threading.Lock``.
    """

    def __init__(self) -> None:
        self._events: deque[_Event] = deque()
        self._lock = threading.Lock()
        self._last_drain = time.monotonic()

        self._latencies = LatencyHistogram()
        self._iterations = 0
        self._requests = 0
        self._request_errors = 0
        self._errors_by_status: dict[int, int] = defaultdict(int)
        self._errors_by_type: dict[str, int] = defaultdict(int)
        self._checks: dict[str, CheckStats] = {}

    # -- writers ------------------------------------------------------------

    def record_request(self, metric: RequestMetric) -> None:
        """Queue a request sample.  Usable as ``HttpClient.metric_callback``."""
        self._events.append(metric)

    def record_check(self, result: CheckResult) -> None:
        """Queue a check outcome."""
        self._events.append(result)

    def record_iteration(self, record: IterationRecord) -> None:
        """Queue an iteration completion."""
        self._events.append(record)

    @property
    def pending_count(self) -> int:
        """Number of queued events not yet folded into the totals."""
        return len(self._events)

    # -- reader -------------------------------------------------------------

    def drain(
        self,
        elapsed_seconds: float,
        active_users: int,
        target_users: int = 0,
    ) -> MetricSnapshot:
        """Fold all queued events into the totals and describe the interval.

        Args:
            elapsed_seconds: Seconds since the run started.
            active_users: Virtual users running right now.
            target_users: Concurrency the scheduler asked for.

        Returns:
            A snapshot covering the events drained by this call.
        """
        with self._lock:
            now = time.monotonic()
            interval = max(now - self._last_drain, 0.001)
            self._last_drain = now

            latencies: list[float] = []
            iterations = passed = failed = requests = request_errors = 0

            while self._events:
                event = self._events.popleft()
                if isinstance(event, RequestMetric):
                    requests += 1
                    if not event.cancelled:
                        latencies.append(event.latency_ms)
                    if event.error is not None:
                        request_errors += 1
                    self._fold_request(event)
                elif isinstance(event, CheckResult):
                    if event.passed:
                        passed += 1
                    else:
                        failed += 1
                    self._fold_check(event)
                else:
                    iterations += 1
                    self._iterations += 1

        avg, p50, p95, p99 = _interval_latencies(latencies)
        return MetricSnapshot(
            timestamp=now,
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            target_users=target_users,
            iterations=iterations,
            total_requests=requests,
            requests_per_second=requests / interval,
            latency_avg=avg,
            latency_p50=p50,
            latency_p95=p95,
            latency_p99=p99,
            checks_passed=passed,
            checks_failed=failed,
            request_errors=request_errors,
        )

    def finalize(
        self,
        *,
        name: str,
        duration_seconds: float,
        pattern_description: str = "",
        peak_users: int = 0,
        interrupted: bool = False,
        snapshots: Sequence[MetricSnapshot] = (),
    ) -> RunSummary:
        """Drain any remaining events and build the run summary."""
        self.drain(elapsed_seconds=duration_seconds, active_users=0)

        with self._lock:
            checks = {
                check_name: CheckStats(name=check_name, passes=stats.passes, fails=stats.fails)
                for check_name, stats in self._checks.items()
            }
            summary = RunSummary(
                name=name,
                pattern_description=pattern_description,
                duration_seconds=duration_seconds,
                iterations=self._iterations,
                checks_passed=sum(s.passes for s in checks.values()),
                checks_failed=sum(s.fails for s in checks.values()),
                checks=checks,
                total_requests=self._requests,
                request_errors=self._request_errors,
                errors_by_status=dict(self._errors_by_status),
                errors_by_type=dict(self._errors_by_type),
                latency_min=self._latencies.get_min(),
                latency_max=self._latencies.get_max(),
                latency_avg=self._latencies.get_mean(),
                latency_p50=self._latencies.get_percentile(50.0),
                latency_p90=self._latencies.get_percentile(90.0),
                latency_p95=self._latencies.get_percentile(95.0),
                latency_p99=self._latencies.get_percentile(99.0),
                peak_users=peak_users,
                interrupted=interrupted,
                snapshots=list(snapshots),
            )

        logger.debug(
            "Finalized summary: iterations=%d, checks=%d/%d passed, requests=%d",
            summary.iterations,
            summary.checks_passed,
            summary.total_checks,
            summary.total_requests,
        )
        return summary

    def _fold_request(self, metric: RequestMetric) -> None:
        self._requests += 1
        # A cancelled request has no real response time
        if not metric.cancelled:
            self._latencies.record_latency_ms(metric.latency_ms)
        if metric.error is not None:
            self._request_errors += 1
            # "ClientConnectorError: Cannot connect..." -> "ClientConnectorError"
            self._errors_by_type[metric.error.split(":")[0].strip()] += 1
        elif metric.status_code >= 400:
            self._errors_by_status[metric.status_code] += 1

    def _fold_check(self, result: CheckResult) -> None:
        stats = self._checks.get(result.name)
        if stats is None:
            stats = self._checks[result.name] = CheckStats(name=result.name)
        if result.passed:
            stats.passes += 1
        else:
            stats.fails += 1
