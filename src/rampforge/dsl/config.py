"""Typed, validated load-test configuration declared by scripts."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rampforge._internal.errors import ConfigError
from rampforge.dsl.checks import Check, Predicate, normalize_checks, status_is
from rampforge.patterns.constant import ConstantPattern
from rampforge.patterns.stages import Stage, StagePattern, parse_duration

if TYPE_CHECKING:
    from rampforge._internal.types import Pacing
    from rampforge.engine.executor import IterationContext
    from rampforge.patterns.base import LoadPattern

IterationFunction = Callable[["IterationContext"], Awaitable[None]]

_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})
_DEFAULT_CHECK_NAME = "status is 200"


def _normalize_pacing(value: Any) -> float | tuple[float, float]:
    if isinstance(value, tuple | list):
        if len(value) != 2:
            msg = f"pacing range must be (min, max), got {value!r}"
            raise ConfigError(msg)
        low, high = (parse_duration(v) for v in value)
        if low < 0 or high < low:
            msg = f"pacing range must satisfy 0 <= min <= max, got {value!r}"
            raise ConfigError(msg)
        return (low, high)
    seconds = parse_duration(value)
    if seconds < 0:
        msg = f"pacing must be >= 0, got {value!r}"
        raise ConfigError(msg)
    return seconds


@dataclass(frozen=True)
class LoadTestConfig:
    """Complete declaration of a staged load test.

    A script creates one module-level instance; every field is validated
    here so a malformed script fails before any virtual user exists.

    Attributes:
        name: Human-readable test name.
        url: Target endpoint for the built-in iteration.  Optional when a
            custom ``iteration`` is supplied, in which case it serves as the
            base URL for relative paths.
        method: HTTP method of the built-in iteration.
        headers: Headers sent with every request.
        body: Optional request body for the built-in iteration.
        stages: Ordered ``Stage`` list; dicts and ``(duration, target)``
            pairs are accepted and coerced.
        start_target: Concurrency at time zero.
        checks: ``{name: predicate}`` mapping or list of ``Check``.  When
            omitted, a single ``status is 200`` check is used.
        pacing: Pause after each iteration in seconds, or a ``(min, max)``
            range drawn uniformly.  Duration strings are accepted.
        iteration: Optional coroutine function replacing the built-in
            request/check iteration.
        request_timeout: Per-request timeout in seconds.  ``None`` uses
            the engine default.
    """

    name: str = "load test"
    url: str = ""
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str | bytes | None = None
    stages: Iterable[Any] = ()
    start_target: int = 1
    checks: Mapping[str, Predicate] | Iterable[Check] | None = None
    pacing: Pacing | str = 1.0
    iteration: IterationFunction | None = None
    request_timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            msg = "name must be a non-empty string"
            raise ConfigError(msg)

        method = str(self.method).upper()
        if method not in _METHODS:
            msg = f"Unsupported HTTP method {self.method!r}; choose from {sorted(_METHODS)}"
            raise ConfigError(msg)

        if self.iteration is None:
            if not self.url.startswith(("http://", "https://")):
                msg = f"url must be an absolute http(s) URL, got {self.url!r}"
                raise ConfigError(msg)
        elif not inspect.iscoroutinefunction(self.iteration):
            msg = f"iteration must be an async function, got {self.iteration!r}"
            raise ConfigError(msg)

        if isinstance(self.start_target, bool) or not isinstance(self.start_target, int):
            msg = f"start_target must be an integer, got {self.start_target!r}"
            raise ConfigError(msg)
        if self.start_target < 0:
            msg = f"start_target must be >= 0, got {self.start_target}"
            raise ConfigError(msg)

        if isinstance(self.stages, str | bytes | Mapping):
            msg = f"stages must be a list of stages, got {self.stages!r}"
            raise ConfigError(msg)
        stages = tuple(Stage.coerce(s) for s in self.stages)

        checks = normalize_checks(self.checks)
        if self.checks is None:
            checks = (Check(name=_DEFAULT_CHECK_NAME, predicate=status_is(200)),)

        timeout = self.request_timeout
        if timeout is not None and timeout <= 0:
            msg = f"request_timeout must be positive, got {timeout}"
            raise ConfigError(msg)

        object.__setattr__(self, "method", method)
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "stages", stages)
        object.__setattr__(self, "checks", checks)
        object.__setattr__(self, "pacing", _normalize_pacing(self.pacing))

    @property
    def total_duration(self) -> float:
        """Sum of all stage durations in seconds."""
        return sum(stage.duration for stage in self.stages)

    @property
    def max_target(self) -> int:
        """Highest concurrency any stage (or the start) asks for."""
        return max([self.start_target, *(stage.target for stage in self.stages)])

    def pattern(self) -> StagePattern:
        """Return the stage pattern this configuration describes."""
        return StagePattern(list(self.stages), start_target=self.start_target)

    def build_pattern(
        self,
        *,
        vus: int | None = None,
        duration: float | str | None = None,
    ) -> LoadPattern:
        """Return the pattern to run, honouring CLI overrides.

        With neither override the stage pattern is used.  Supplying either
        replaces the stages by a constant pattern; the missing value comes
        from the stages (highest target, total duration), falling back to
        one user.

        Raises:
            ConfigError: If the resulting constant pattern is invalid, e.g.
                a ``vus`` override on a script without stages.
        """
        if vus is None and duration is None:
            return self.pattern()

        users = vus if vus is not None else max(self.max_target, 1)
        seconds = parse_duration(duration) if duration is not None else self.total_duration
        return ConstantPattern(users=users, duration=seconds)
