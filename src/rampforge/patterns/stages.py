"""Staged ramp pattern with linear interpolation across an ordered stage list."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from itertools import accumulate

from rampforge._internal.errors import ConfigError
from rampforge.patterns.base import LoadPattern, _validate_non_negative

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: float | int | str) -> float:
    """Convert a duration value to seconds.

    Numbers are taken as seconds.  Strings are either a bare number or a
    sequence of ``<number><unit>`` parts with units ``ms``, ``s``, ``m``
    and ``h``, e.g. ``"500ms"``, ``"30s"``, ``"1m30s"``.

    Args:
        value: The duration to convert.

    Returns:
        Duration in seconds.

    Raises:
        ConfigError: If *value* is not a number or a valid duration string.
    """
    if isinstance(value, bool):
        msg = f"Invalid duration: {value!r}"
        raise ConfigError(msg)
    if isinstance(value, int | float):
        return _finite(float(value), value)
    if not isinstance(value, str):
        msg = f"Invalid duration: {value!r}"
        raise ConfigError(msg)

    text = value.strip().lower()
    try:
        return _finite(float(text), value)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        msg = f"Invalid duration string: {value!r} (expected e.g. '30s', '1m30s', '500ms')"
        raise ConfigError(msg)
    return total


def _finite(seconds: float, value: object) -> float:
    if not math.isfinite(seconds):
        msg = f"Duration must be finite, got {value!r}"
        raise ConfigError(msg)
    return seconds


@dataclass(frozen=True)
class Stage:
    """One time-boxed ramp target.

    Over ``duration`` seconds the target concurrency moves linearly from the
    previous stage's target to ``target``.

    Attributes:
        duration: Stage length in seconds.  Must be > 0.
        target: Concurrency reached at the end of the stage.  Must be >= 0.
    """

    duration: float
    target: int

    def __post_init__(self) -> None:
        duration = parse_duration(self.duration)
        if duration <= 0:
            msg = f"Stage duration must be positive, got {self.duration!r}"
            raise ConfigError(msg)
        if isinstance(self.target, bool) or not isinstance(self.target, int):
            msg = f"Stage target must be an integer, got {self.target!r}"
            raise ConfigError(msg)
        if self.target < 0:
            msg = f"Stage target must be >= 0, got {self.target}"
            raise ConfigError(msg)
        object.__setattr__(self, "duration", duration)

    @classmethod
    def coerce(cls, value: object) -> Stage:
        """Build a Stage from a loosely typed value.

        Accepts an existing ``Stage``, a mapping with ``duration`` and
        ``target`` keys, or a ``(duration, target)`` pair.

        Raises:
            ConfigError: If *value* has none of these shapes.
        """
        if isinstance(value, Stage):
            return value
        if isinstance(value, Mapping):
            missing = {"duration", "target"} - set(value)
            if missing:
                msg = f"Stage {dict(value)!r} is missing: {', '.join(sorted(missing))}"
                raise ConfigError(msg)
            return cls(duration=value["duration"], target=value["target"])
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            return cls(duration=value[0], target=value[1])
        msg = f"Cannot interpret {value!r} as a stage"
        raise ConfigError(msg)


class StagePattern(LoadPattern):
    """Ramp concurrency through an ordered list of stages.

    Within each stage the target moves linearly from the previous stage's
    target (``start_target`` for the first stage) to the stage's own
    target, rounded to the nearest integer.  At every stage boundary the
    value is exactly the target of the stage ending there.  The run lasts
    the sum of all stage durations; an empty list means an empty run.

    Args:
        stages: Stage definitions, in order.  Loosely typed entries are
            coerced with :meth:`Stage.coerce`.
        start_target: Concurrency at time zero.  Must be >= 0.  Defaults
            to one user, so a first stage ramping from nothing still runs.

    Raises:
        ConfigError: If any stage is malformed.

    Example::

        pattern = StagePattern([Stage(30, 20), Stage(60, 20), Stage(10, 0)])
        assert pattern.target_at(15.0) == 10
        assert pattern.target_at(30.0) == 20
        assert pattern.duration_seconds == 100.0
    """

    def __init__(self, stages: Sequence[object], start_target: int = 1) -> None:
        _validate_non_negative(start_target, "start_target")
        self._stages = tuple(Stage.coerce(s) for s in stages)
        self._start_target = start_target
        self._ends = tuple(accumulate(s.duration for s in self._stages))

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def duration_seconds(self) -> float:
        return self._ends[-1] if self._ends else 0.0

    def boundaries(self) -> list[tuple[float, int]]:
        """Return ``(end_time, target)`` for every stage."""
        return [(end, stage.target) for end, stage in zip(self._ends, self._stages, strict=True)]

    def target_at(self, elapsed: float) -> int:
        if not self._stages:
            return 0
        if elapsed <= 0:
            return self._start_target

        previous_target = self._start_target
        stage_start = 0.0
        for stage, stage_end in zip(self._stages, self._ends, strict=True):
            if elapsed < stage_end:
                fraction = (elapsed - stage_start) / stage.duration
                return round(previous_target + (stage.target - previous_target) * fraction)
            previous_target = stage.target
            stage_start = stage_end
        return self._stages[-1].target

    def describe(self) -> str:
        if not self._stages:
            return "Stages: (none)"
        parts = ", ".join(f"{s.duration:g}s->{s.target}" for s in self._stages)
        return f"Stages: {parts}"
