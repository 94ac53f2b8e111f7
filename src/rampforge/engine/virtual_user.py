"""A single virtual user: an independent request/check/pace loop."""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum, auto
from typing import TYPE_CHECKING

from rampforge._internal.logging import get_logger
from rampforge.dsl.http_client import HttpClient

if TYPE_CHECKING:
    from rampforge.engine.executor import IterationExecutor
    from rampforge.metrics.aggregator import ResultAggregator

logger = get_logger("engine.virtual_user")


class UserState(Enum):
    """Lifecycle of a virtual user."""

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()


class VirtualUser:
    """One simulated client looping iterations until retired.

    Each user owns its HTTP session and its stop event; nothing mutable is
    shared with other users except the aggregator's append-only queue.
    Retiring a user only sets its stop event: the iteration in progress
    always completes, and only the pacing delay is cut short.

    Attributes:
        user_id: Unique identifier within the run.
        iterations: Number of iterations started so far.
    """

    def __init__(
        self,
        user_id: int,
        executor: IterationExecutor,
        aggregator: ResultAggregator,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        pool_size: int = 100,
    ) -> None:
        self.user_id = user_id
        self.iterations = 0
        self._executor = executor
        self._aggregator = aggregator
        self._base_url = base_url
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._pool_size = pool_size
        self._stop_event = asyncio.Event()
        self._state = UserState.CREATED
        self._task: asyncio.Task[None] | None = None
        self._loop_exited = False

    @property
    def state(self) -> UserState:
        return self._state

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    @property
    def retiring(self) -> bool:
        return self._stop_event.is_set()

    @property
    def looping(self) -> bool:
        """True while the iteration loop may still start or finish work."""
        return self._task is not None and not self._task.done() and not self._loop_exited

    def start(self) -> asyncio.Task[None]:
        """Schedule the user's loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"virtual-user-{self.user_id}")
        return self._task

    def retire(self) -> None:
        """Ask the user to stop after its current iteration."""
        if self._state in (UserState.CREATED, UserState.RUNNING):
            self._state = UserState.STOPPING
        self._stop_event.set()

    def revive(self) -> bool:
        """Cancel a pending retirement if the loop has not exited yet.

        Returns:
            True if the user keeps looping, False if it is already past
            its last iteration and must be replaced.
        """
        if not self.looping:
            return False
        self._stop_event.clear()
        self._state = UserState.RUNNING
        return True

    async def run(self) -> None:
        """Loop iterations until retired."""
        if not self._stop_event.is_set():
            self._state = UserState.RUNNING
        logger.debug("Virtual user %d started", self.user_id)

        try:
            async with HttpClient(
                base_url=self._base_url,
                headers=self._headers,
                metric_callback=self._aggregator.record_request,
                user_id=self.user_id,
                timeout=self._timeout,
                pool_size=self._pool_size,
            ) as client:
                while not self._stop_event.is_set():
                    self.iterations += 1
                    await self._executor.run_once(
                        client,
                        user_id=self.user_id,
                        iteration=self.iterations,
                    )
                    await self._pace()
                self._loop_exited = True
        finally:
            self._loop_exited = True
            self._state = UserState.STOPPED
            logger.debug(
                "Virtual user %d stopped after %d iterations",
                self.user_id,
                self.iterations,
            )

    async def _pace(self) -> None:
        """Sleep for the pacing delay, waking early if retired."""
        if self._stop_event.is_set():
            return
        delay = self._executor.pacing_delay()
        if delay <= 0:
            # Let other users and the scheduler run between iterations
            await asyncio.sleep(0)
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
