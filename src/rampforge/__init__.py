"""RampForge: staged virtual-user load testing for HTTP endpoints."""

from __future__ import annotations

from rampforge.dsl.checks import (
    Check,
    CheckResult,
    body_contains,
    latency_below,
    status_in,
    status_is,
)
from rampforge.dsl.config import LoadTestConfig
from rampforge.dsl.http_client import HttpClient, RequestMetric, Response
from rampforge.engine.executor import IterationContext
from rampforge.metrics.models import RunSummary
from rampforge.patterns.base import LoadPattern
from rampforge.patterns.constant import ConstantPattern
from rampforge.patterns.stages import Stage, StagePattern, parse_duration

__version__ = "0.1.0"

__all__ = [
    "Check",
    "CheckResult",
    "ConstantPattern",
    "HttpClient",
    "IterationContext",
    "LoadPattern",
    "LoadTestConfig",
    "RequestMetric",
    "Response",
    "RunSummary",
    "Stage",
    "StagePattern",
    "body_contains",
    "latency_below",
    "parse_duration",
    "status_in",
    "status_is",
]
