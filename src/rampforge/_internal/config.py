"""Environment-driven engine configuration for RampForge."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from rampforge._internal.errors import ConfigError


@dataclass(frozen=True)
class RampForgeConfig:
    """Process-wide engine settings.

    Attributes:
        request_timeout: Default total request timeout in seconds.
        connection_pool_size: Maximum open connections per virtual user.
        tick_interval: Seconds between scheduler ticks.
    """

    request_timeout: float = 30.0
    connection_pool_size: int = 100
    tick_interval: float = 1.0


def _read_positive_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None
    if not math.isfinite(value) or value <= 0:
        msg = f"{name} must be a positive finite number, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> RampForgeConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        RAMPFORGE_TIMEOUT: Request timeout in seconds (default: 30.0).
        RAMPFORGE_POOL_SIZE: Connections per virtual user (default: 100).
        RAMPFORGE_TICK_INTERVAL: Scheduler tick in seconds (default: 1.0).

    Returns:
        Populated RampForgeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    pool_size_str = os.environ.get("RAMPFORGE_POOL_SIZE", "100")
    try:
        pool_size = int(pool_size_str)
    except ValueError:
        msg = f"RAMPFORGE_POOL_SIZE must be an integer, got: {pool_size_str!r}"
        raise ConfigError(msg) from None

    if pool_size < 1:
        msg = f"RAMPFORGE_POOL_SIZE must be >= 1, got: {pool_size}"
        raise ConfigError(msg)

    return RampForgeConfig(
        request_timeout=_read_positive_float("RAMPFORGE_TIMEOUT", "30.0"),
        connection_pool_size=pool_size,
        tick_interval=_read_positive_float("RAMPFORGE_TICK_INTERVAL", "1.0"),
    )
