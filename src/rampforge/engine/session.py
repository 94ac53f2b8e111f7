"""Load-test session lifecycle management and signal handling."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from rampforge._internal.config import RampForgeConfig
from rampforge._internal.errors import EngineError
from rampforge._internal.logging import get_logger
from rampforge.engine.executor import IterationExecutor
from rampforge.engine.pool import WorkerPool
from rampforge.engine.scheduler import Scheduler
from rampforge.engine.virtual_user import VirtualUser
from rampforge.metrics.aggregator import ResultAggregator

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge.dsl.config import LoadTestConfig
    from rampforge.metrics.models import MetricSnapshot, RunSummary
    from rampforge.patterns.base import LoadPattern

logger = get_logger("engine.session")


class SessionState(Enum):
    """State machine for a load-test session."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class LoadTestSession:
    """Drives one load test inside the running event loop.

    Each scheduler tick sizes the worker pool and drains the aggregator
    into a snapshot.  When the last stage elapses, or SIGINT/SIGTERM
    arrives, every virtual user is retired and the session waits for
    in-flight iterations before finalizing the ``RunSummary``.

    State machine: CREATED -> STARTING -> RUNNING -> STOPPING -> COMPLETED
                                                  -> FAILED (on error)
    """

    def __init__(
        self,
        config: LoadTestConfig,
        pattern: LoadPattern | None = None,
        *,
        engine_config: RampForgeConfig | None = None,
        tick_interval: float | None = None,
        grace_period: float | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize a session.

        Args:
            config: The load test to run.
            pattern: Concurrency pattern.  Defaults to the config's stages.
            engine_config: Engine settings.  Defaults to ``RampForgeConfig()``.
            tick_interval: Seconds between scheduler ticks.  Defaults to the
                engine config's value.
            grace_period: Seconds to wait for in-flight iterations at the
                end before cancelling them.  ``None`` waits indefinitely.
            on_snapshot: Callback invoked with each tick's snapshot.
            handle_signals: Install SIGINT/SIGTERM handlers during the run.
        """
        self._config = config
        self._pattern = pattern if pattern is not None else config.pattern()
        self._engine_config = engine_config or RampForgeConfig()
        self._tick_interval = tick_interval or self._engine_config.tick_interval
        self._grace_period = grace_period
        self._on_snapshot = on_snapshot
        self._handle_signals = handle_signals

        self._state = SessionState.CREATED
        self._aggregator = ResultAggregator()
        self._executor = IterationExecutor(config, self._aggregator)
        self._pool = WorkerPool(self._make_user)
        self._stop_event = asyncio.Event()
        self._interrupted = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    async def run(self) -> RunSummary:
        """Execute the full session lifecycle.

        Returns:
            The finalized RunSummary.

        Raises:
            EngineError: If the tick loop fails unexpectedly.
        """
        self._state = SessionState.STARTING
        logger.info(
            "Starting load test: name=%s, duration=%.1fs, pattern=%s",
            self._config.name,
            self._pattern.duration_seconds,
            self._pattern.describe(),
        )

        if self._handle_signals:
            self._install_signal_handlers()

        scheduler = Scheduler(self._pattern, self._tick_interval)
        snapshots: list[MetricSnapshot] = []
        start_time = time.monotonic()

        self._state = SessionState.RUNNING

        try:
            for command in scheduler.iter_commands():
                if await self._wait_until(start_time + command.elapsed_seconds):
                    break

                if not command.final:
                    self._pool.scale_to(command.target_concurrency)

                elapsed = time.monotonic() - start_time
                snapshot = self._aggregator.drain(
                    elapsed_seconds=elapsed,
                    active_users=self._pool.active_count,
                    target_users=command.target_concurrency,
                )
                snapshots.append(snapshot)
                if self._on_snapshot is not None:
                    self._on_snapshot(snapshot)

                logger.debug(
                    "Tick %.1fs: users=%d/%d, iterations=%d, rps=%.1f, failed_checks=%d",
                    elapsed,
                    self._pool.active_count,
                    command.target_concurrency,
                    snapshot.iterations,
                    snapshot.requests_per_second,
                    snapshot.checks_failed,
                )

        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Load test session failed")
            raise EngineError("Load test session failed") from exc
        finally:
            if self._state != SessionState.FAILED:
                self._state = SessionState.STOPPING
            await self._pool.stop_all(self._grace_period)
            if self._handle_signals:
                self._remove_signal_handlers()

        total_duration = time.monotonic() - start_time
        summary = self._aggregator.finalize(
            name=self._config.name,
            duration_seconds=total_duration,
            pattern_description=self._pattern.describe(),
            peak_users=self._pool.peak_count,
            interrupted=self._interrupted,
            snapshots=snapshots,
        )

        self._state = SessionState.COMPLETED
        logger.info(
            "Load test completed: duration=%.1fs, iterations=%d, checks=%d/%d passed, "
            "p95=%.1fms, peak_users=%d",
            total_duration,
            summary.iterations,
            summary.checks_passed,
            summary.total_checks,
            summary.latency_p95,
            summary.peak_users,
        )
        if summary.target_unreachable:
            logger.warning("Every request failed; the target appears unreachable")

        return summary

    def stop(self) -> None:
        """Request a graceful stop, as a signal would."""
        if self._state in (SessionState.CREATED, SessionState.STARTING, SessionState.RUNNING):
            logger.info("Graceful shutdown requested")
            self._interrupted = True
            self._stop_event.set()

    async def _wait_until(self, deadline: float) -> bool:
        """Sleep until *deadline*; return True if a stop was requested."""
        remaining = deadline - time.monotonic()
        if remaining > 0 and not self._stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
        return self._stop_event.is_set()

    def _make_user(self, user_id: int) -> VirtualUser:
        return VirtualUser(
            user_id,
            self._executor,
            self._aggregator,
            base_url=self._config.url,
            headers=dict(self._config.headers),
            timeout=self._config.request_timeout or self._engine_config.request_timeout,
            pool_size=self._engine_config.connection_pool_size,
        )

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers that trigger :meth:`stop`."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self.stop()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))
            signal.signal(signal.SIGTERM, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
