"""Stage scheduler that converts pattern output into scale commands."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rampforge.patterns.base import LoadPattern


class ScaleDirection(Enum):
    """Direction of a concurrency scale event."""

    UP = auto()
    DOWN = auto()
    HOLD = auto()


@dataclass(frozen=True)
class ScaleCommand:
    """A command to adjust the number of active virtual users.

    Attributes:
        elapsed_seconds: Time offset from run start.
        target_concurrency: Desired number of active virtual users.
        direction: Whether this is scaling up, down, or holding steady.
        delta: Absolute change in virtual user count (always >= 0).
        final: True for the last command of the run.
    """

    elapsed_seconds: float
    target_concurrency: int
    direction: ScaleDirection
    delta: int
    final: bool = False


class Scheduler:
    """Converts a LoadPattern's concurrency timeline into ScaleCommands.

    Reads ``LoadPattern.iter_concurrency()`` and emits one ``ScaleCommand``
    per tick with the target and how it changed since the previous tick.
    The last command is flagged ``final``; it marks the end of the run.

    Args:
        pattern: The concurrency pattern to follow.
        tick_interval: Seconds between concurrency adjustments.
    """

    def __init__(self, pattern: LoadPattern, tick_interval: float = 1.0) -> None:
        self._pattern = pattern
        self._tick_interval = tick_interval

    @property
    def duration_seconds(self) -> float:
        return self._pattern.duration_seconds

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield ScaleCommands for each tick of the pattern.

        Yields:
            A ScaleCommand for each tick in the pattern's timeline.
        """
        prev_concurrency = 0
        pending: ScaleCommand | None = None
        for elapsed, target in self._pattern.iter_concurrency(self._tick_interval):
            if pending is not None:
                yield pending

            delta = target - prev_concurrency
            if delta > 0:
                direction = ScaleDirection.UP
            elif delta < 0:
                direction = ScaleDirection.DOWN
            else:
                direction = ScaleDirection.HOLD

            pending = ScaleCommand(
                elapsed_seconds=elapsed,
                target_concurrency=target,
                direction=direction,
                delta=abs(delta),
            )
            prev_concurrency = target

        if pending is not None:
            yield ScaleCommand(
                elapsed_seconds=pending.elapsed_seconds,
                target_concurrency=pending.target_concurrency,
                direction=pending.direction,
                delta=pending.delta,
                final=True,
            )

    @property
    def total_ticks(self) -> int:
        """Return the number of commands this schedule emits."""
        duration = self._pattern.duration_seconds
        if duration <= 0:
            return 0
        return math.ceil(duration / self._tick_interval) + 1
