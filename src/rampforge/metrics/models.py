"""Metric and summary dataclasses for RampForge."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# NOTE: RequestMetric lives in dsl/http_client.py and CheckResult in
# dsl/checks.py. Re-exported here so consumers can import from either place.
from rampforge.dsl.checks import CheckResult
from rampforge.dsl.http_client import RequestMetric

__all__ = [
    "CheckResult",
    "CheckStats",
    "IterationRecord",
    "MetricSnapshot",
    "RequestMetric",
    "RunSummary",
]


@dataclass(frozen=True)
class IterationRecord:
    """Marks the completion of one iteration by one virtual user.

    Attributes:
        user_id: Virtual user that ran the iteration.
        iteration: Sequence number within that user, starting at 1.
        duration_ms: Wall time of the iteration, pacing excluded.
    """

    user_id: int
    iteration: int
    duration_ms: float


@dataclass
class CheckStats:
    """Pass/fail tally for one named check."""

    name: str
    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def pass_rate(self) -> float:
        return self.passes / self.total if self.total else 0.0


@dataclass
class MetricSnapshot:
    """Interval metrics emitted every scheduler tick for live display.

    Attributes:
        timestamp: Monotonic timestamp of the snapshot.
        elapsed_seconds: Seconds since the run started.
        active_users: Virtual users running at the time of the snapshot.
        target_users: Concurrency the scheduler asked for.
        iterations: Iterations completed in this interval.
        total_requests: Requests completed in this interval.
        requests_per_second: Request rate over the interval.
        latency_avg: Mean latency (ms).
        latency_p50: 50th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        checks_passed: Passed checks in this interval.
        checks_failed: Failed checks in this interval.
        request_errors: Requests that failed without a response.
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    target_users: int = 0
    iterations: int = 0
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    checks_passed: int = 0
    checks_failed: int = 0
    request_errors: int = 0


@dataclass
class RunSummary:
    """Final, cumulative result of a load test run.

    Attributes:
        name: Name of the load test.
        pattern_description: Human-readable description of the pattern.
        duration_seconds: Wall-clock duration of the run.
        iterations: Iterations completed across all virtual users.
        checks_passed: Passed check results.
        checks_failed: Failed check results.
        checks: Per-check tallies keyed by check name.
        total_requests: Requests issued.
        request_errors: Requests that failed without a response.
        errors_by_status: Responses with status >= 400, by status.
        errors_by_type: Request failures by exception type.
        latency_min: Minimum latency (ms).
        latency_max: Maximum latency (ms).
        latency_avg: Mean latency (ms).
        latency_p50: 50th percentile latency (ms).
        latency_p90: 90th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        peak_users: Highest number of simultaneously active virtual users.
        interrupted: True when a signal cut the run short.
        snapshots: Per-tick interval snapshots.
    """

    name: str
    pattern_description: str = ""
    duration_seconds: float = 0.0
    iterations: int = 0
    checks_passed: int = 0
    checks_failed: int = 0
    checks: dict[str, CheckStats] = field(default_factory=dict)
    total_requests: int = 0
    request_errors: int = 0
    errors_by_status: dict[int, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    peak_users: int = 0
    interrupted: bool = False
    snapshots: list[MetricSnapshot] = field(default_factory=list)

    @property
    def total_checks(self) -> int:
        return self.checks_passed + self.checks_failed

    @property
    def pass_rate(self) -> float:
        """Fraction of checks that passed (0.0 when no check ran)."""
        return self.checks_passed / self.total_checks if self.total_checks else 0.0

    @property
    def failure_rate(self) -> float:
        """Fraction of checks that failed (0.0 when no check ran)."""
        return self.checks_failed / self.total_checks if self.total_checks else 0.0

    @property
    def requests_per_second(self) -> float:
        return self.total_requests / max(self.duration_seconds, 0.001)

    @property
    def target_unreachable(self) -> bool:
        """True when requests were made and none of them got a response."""
        return self.total_requests > 0 and self.request_errors == self.total_requests

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        data = asdict(self)
        data["checks"] = {
            name: {"passes": stats.passes, "fails": stats.fails, "pass_rate": stats.pass_rate}
            for name, stats in self.checks.items()
        }
        data["errors_by_status"] = {str(k): v for k, v in self.errors_by_status.items()}
        data["total_checks"] = self.total_checks
        data["pass_rate"] = self.pass_rate
        data["requests_per_second"] = self.requests_per_second
        data["target_unreachable"] = self.target_unreachable
        return data
