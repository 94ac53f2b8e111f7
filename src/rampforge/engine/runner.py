"""Top-level load test orchestrator."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from rampforge._internal.config import load_config
from rampforge._internal.logging import get_logger, setup_logging
from rampforge.dsl.loader import load_script
from rampforge.engine.session import LoadTestSession

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge.metrics.models import MetricSnapshot, RunSummary

logger = get_logger("engine.runner")


class LoadTestRunner:
    """Loads a script and runs it to completion in a fresh event loop.

    Everything that can be wrong with the script or the environment is
    checked in the constructor, so a bad configuration fails before any
    virtual user is spawned.

    Attributes:
        script_path: Absolute path to the script file.
        config: The script's load-test configuration.
        pattern: The concurrency pattern that will be run.
    """

    def __init__(
        self,
        script_path: str | Path,
        *,
        vus: int | None = None,
        duration: float | str | None = None,
        tick_interval: float | None = None,
        grace_period: float | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        log_level: int = 20,
        json_logs: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            script_path: Path to the script .py file.
            vus: Override: constant number of virtual users.
            duration: Override: run length (seconds or duration string).
            tick_interval: Seconds between scheduler ticks.  Defaults to
                ``RAMPFORGE_TICK_INTERVAL``.
            grace_period: Seconds to wait for in-flight iterations at the
                end.  ``None`` waits for all of them.
            on_snapshot: Optional callback invoked with each MetricSnapshot.
            log_level: Logging level.
            json_logs: Emit JSON log lines.

        Raises:
            ScriptError: If the script cannot be loaded.
            ConfigError: If the script or environment is misconfigured.
        """
        setup_logging(level=log_level, json_format=json_logs)

        self.script_path = str(Path(script_path).resolve())
        self.engine_config = load_config()
        self.config = load_script(self.script_path)
        self.pattern = self.config.build_pattern(vus=vus, duration=duration)
        self._tick_interval = tick_interval or self.engine_config.tick_interval
        self._grace_period = grace_period
        self._on_snapshot = on_snapshot

    def set_snapshot_callback(self, callback: Callable[[MetricSnapshot], None] | None) -> None:
        """Replace the per-tick snapshot callback."""
        self._on_snapshot = callback

    def run(self) -> RunSummary:
        """Execute the load test and return its summary.

        Blocks until the last stage elapses or SIGINT/SIGTERM is received.

        Raises:
            EngineError: If the engine fails while running.
        """
        logger.info("Running script %s", self.script_path)
        session = LoadTestSession(
            self.config,
            self.pattern,
            engine_config=self.engine_config,
            tick_interval=self._tick_interval,
            grace_period=self._grace_period,
            on_snapshot=self._on_snapshot,
        )
        return asyncio.run(session.run())
