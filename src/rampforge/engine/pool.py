"""Worker pool that keeps the number of active virtual users on target."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from rampforge._internal.logging import get_logger
from rampforge.engine.virtual_user import VirtualUser

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger("engine.pool")


class WorkerPool:
    """Grows and shrinks a set of virtual users.

    Growing first takes back retiring users whose loop is still running,
    newest retirement last in, then spawns new users for the rest.
    Shrinking retires the most recently spawned users (LIFO): they finish
    their current iteration and exit on their own.  Retiring users are no
    longer counted as active but are kept until their task completes so
    shutdown can wait for them.

    Args:
        user_factory: Builds a ``VirtualUser`` for a given user id.
    """

    def __init__(self, user_factory: Callable[[int], VirtualUser]) -> None:
        self._user_factory = user_factory
        self._active: list[VirtualUser] = []
        self._retiring: list[VirtualUser] = []
        self._next_user_id = 0
        self._peak = 0

    @property
    def active_count(self) -> int:
        """Virtual users that are running and not asked to stop."""
        return len(self._active)

    @property
    def retiring_count(self) -> int:
        return len(self._retiring)

    @property
    def peak_count(self) -> int:
        """Highest number of running users, retiring ones included."""
        return self._peak

    @property
    def total_spawned(self) -> int:
        return self._next_user_id

    @property
    def users(self) -> list[VirtualUser]:
        """Active users, oldest first."""
        return list(self._active)

    def scale_to(self, target: int) -> None:
        """Adjust the number of active virtual users to *target*.

        Must be called from within the running event loop.

        Args:
            target: Desired number of active virtual users (>= 0).
        """
        self._reap()
        target = max(target, 0)
        current = len(self._active)

        if target > current:
            revived = self._revive(target - current)
            for _ in range(target - current - revived):
                user = self._user_factory(self._next_user_id)
                self._next_user_id += 1
                user.start()
                self._active.append(user)
            logger.debug("Scaled up: %d -> %d users", current, target)
        elif target < current:
            for _ in range(current - target):
                user = self._active.pop()
                user.retire()
                self._retiring.append(user)
            logger.debug("Scaled down: %d -> %d users", current, target)

        in_flight = sum(1 for u in self._retiring if u.looping)
        self._peak = max(self._peak, len(self._active) + in_flight)

    def _revive(self, count: int) -> int:
        """Move up to *count* still-looping retiring users back to active."""
        revived = 0
        for user in reversed(list(self._retiring)):
            if revived == count:
                break
            if user.revive():
                self._retiring.remove(user)
                self._active.append(user)
                revived += 1
        return revived

    async def stop_all(self, grace_period: float | None = None) -> None:
        """Retire every user and wait for their loops to finish.

        Args:
            grace_period: Seconds to wait before cancelling users still
                mid-iteration.  ``None`` waits for every iteration to
                complete.
        """
        for user in self._active:
            user.retire()
        self._retiring.extend(self._active)
        self._active.clear()

        tasks = [u.task for u in self._retiring if u.task is not None]
        if tasks:
            _done, pending = await asyncio.wait(tasks, timeout=grace_period)
            if pending:
                logger.warning(
                    "Cancelling %d virtual users still running after %.1fs grace period",
                    len(pending),
                    grace_period,
                )
                for task in pending:
                    task.cancel()
                await asyncio.wait(pending)

        self._reap()
        logger.debug("All virtual users stopped")

    def _reap(self) -> None:
        """Forget finished users, logging any that crashed."""
        for user in [*self._active, *self._retiring]:
            task = user.task
            if task is None or not task.done():
                continue
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Virtual user %d crashed",
                    user.user_id,
                    exc_info=task.exception(),
                )
        self._active = [u for u in self._active if u.task is None or not u.task.done()]
        self._retiring = [u for u in self._retiring if u.task is None or not u.task.done()]
