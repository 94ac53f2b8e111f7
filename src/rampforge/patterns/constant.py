"""Constant pattern: a fixed number of concurrent users for a fixed time."""

from __future__ import annotations

from rampforge._internal.errors import ConfigError
from rampforge.patterns.base import LoadPattern, _validate_positive


class ConstantPattern(LoadPattern):
    """Hold a fixed number of virtual users for the whole run.

    Used when ``--vus`` / ``--duration`` override a script's stages.

    Args:
        users: Number of concurrent virtual users.  Must be >= 1.
        duration: Run length in seconds.  Must be > 0.

    Raises:
        ConfigError: If an argument is out of range.
    """

    def __init__(self, users: int, duration: float) -> None:
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise ConfigError(msg)
        _validate_positive(duration, "duration")
        self._users = users
        self._duration = float(duration)

    @property
    def duration_seconds(self) -> float:
        return self._duration

    @property
    def users(self) -> int:
        """The constant concurrency level."""
        return self._users

    def target_at(self, elapsed: float) -> int:
        if elapsed < 0 or elapsed > self._duration:
            return 0
        return self._users

    def describe(self) -> str:
        return f"Constant: {self._users} users for {self._duration:g}s"
