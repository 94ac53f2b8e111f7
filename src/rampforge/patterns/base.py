"""Abstract base class for concurrency patterns."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rampforge._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """Abstract base for all concurrency patterns.

    A pattern maps elapsed run time to the number of virtual users that
    should be active at that moment, over a finite run length.  Subclasses
    implement :meth:`target_at` and :attr:`duration_seconds`; the tick
    iteration the scheduler consumes is shared.

    Example::

        pattern = StagePattern([Stage(10, 5), Stage(20, 5), Stage(5, 0)])
        for elapsed, users in pattern.iter_concurrency(tick_interval=1.0):
            print(f"t={elapsed:.1f}s -> {users} users")
    """

    @property
    @abstractmethod
    def duration_seconds(self) -> float:
        """Total run length in seconds.  Zero means the run is empty."""

    @abstractmethod
    def target_at(self, elapsed: float) -> int:
        """Return the target concurrency at *elapsed* seconds into the run.

        Args:
            elapsed: Seconds since the run started.

        Returns:
            Number of virtual users that should be active (>= 0).
        """

    @abstractmethod
    def describe(self) -> str:
        """Return a short human-readable description for logs and reports."""

    def iter_concurrency(self, tick_interval: float = 1.0) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_concurrency)`` at each tick.

        Ticks fall on multiples of *tick_interval*; a final tick is always
        emitted exactly at :attr:`duration_seconds`.  An empty pattern
        yields nothing.

        Args:
            tick_interval: Seconds between ticks.  Defaults to 1.0.

        Yields:
            ``(elapsed_seconds, target_concurrency)`` tuples.
        """
        _validate_positive(tick_interval, "tick_interval")
        duration = self.duration_seconds
        if duration <= 0:
            return

        tick = 0
        elapsed = 0.0
        while elapsed < duration:
            yield (elapsed, self.target_at(elapsed))
            tick += 1
            elapsed = tick * tick_interval
        yield (duration, self.target_at(duration))

    def max_target(self, tick_interval: float = 1.0) -> int:
        """Return the highest target this pattern reaches at tick resolution."""
        return max((users for _, users in self.iter_concurrency(tick_interval)), default=0)


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is not strictly positive.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigError: If *value* is not > 0 or is not finite.
    """
    if not math.isfinite(value) or value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is negative.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigError: If *value* is < 0.
    """
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigError(msg)
