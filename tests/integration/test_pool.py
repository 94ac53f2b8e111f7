"""Integration tests for WorkerPool and VirtualUser against the target server."""

from __future__ import annotations

import asyncio

import pytest

from rampforge import LoadTestConfig, status_is
from rampforge.engine.executor import IterationExecutor
from rampforge.engine.pool import WorkerPool
from rampforge.engine.virtual_user import UserState, VirtualUser
from rampforge.metrics.aggregator import ResultAggregator


def _make_pool(url: str, pacing: float = 0.05) -> tuple[WorkerPool, ResultAggregator]:
    config = LoadTestConfig(url=url, checks={"status was 200": status_is(200)}, pacing=pacing)
    aggregator = ResultAggregator()
    executor = IterationExecutor(config, aggregator)

    def _factory(user_id: int) -> VirtualUser:
        return VirtualUser(user_id, executor, aggregator, timeout=5.0)

    return WorkerPool(_factory), aggregator


class TestWorkerPool:
    @pytest.mark.timeout(15)
    async def test_scale_up_and_down(self, target_server: str) -> None:
        pool, _ = _make_pool(f"{target_server}/ok")

        pool.scale_to(4)
        assert pool.active_count == 4
        assert pool.total_spawned == 4

        pool.scale_to(1)
        assert pool.active_count == 1
        assert pool.peak_count == 4

        # Retiring users that have not left their loop are taken back first
        pool.scale_to(3)
        assert pool.active_count == 3
        assert pool.retiring_count == 1
        assert pool.total_spawned == 4
        assert pool.peak_count == 4

        await pool.stop_all()
        assert pool.active_count == 0
        assert pool.retiring_count == 0

    @pytest.mark.timeout(15)
    async def test_retires_most_recent_users_first(self, target_server: str) -> None:
        pool, _ = _make_pool(f"{target_server}/ok")

        pool.scale_to(3)
        first_three = pool.users
        pool.scale_to(1)

        assert pool.users == first_three[:1]
        assert first_three[1].retiring
        assert first_three[2].retiring
        assert not first_three[0].retiring

        await pool.stop_all()
        assert all(u.state == UserState.STOPPED for u in first_three)

    @pytest.mark.timeout(15)
    async def test_negative_target_means_zero(self, target_server: str) -> None:
        pool, _ = _make_pool(f"{target_server}/ok")
        pool.scale_to(2)
        pool.scale_to(-3)
        assert pool.active_count == 0
        await pool.stop_all()

    @pytest.mark.timeout(15)
    async def test_retiring_never_interrupts_an_iteration(self, target_server: str) -> None:
        """A user retired mid-request finishes the request and its checks."""
        pool, aggregator = _make_pool(f"{target_server}/delay?delay=0.5")

        pool.scale_to(3)
        await asyncio.sleep(0.1)  # every user is now waiting on its first response
        pool.scale_to(0)
        await pool.stop_all()

        summary = aggregator.finalize(name="t", duration_seconds=1.0)
        assert summary.iterations == 3
        assert summary.total_requests == 3
        assert summary.checks_passed == 3
        assert summary.checks_failed == 0

    @pytest.mark.timeout(15)
    async def test_retiring_cuts_pacing_short(self, target_server: str) -> None:
        pool, _ = _make_pool(f"{target_server}/ok", pacing=30.0)

        pool.scale_to(2)
        await asyncio.sleep(0.3)  # both users are now in their pacing wait

        loop = asyncio.get_running_loop()
        start = loop.time()
        await pool.stop_all()
        assert loop.time() - start < 2.0

    @pytest.mark.timeout(15)
    async def test_grace_period_cancels_slow_iterations(self, target_server: str) -> None:
        pool, aggregator = _make_pool(f"{target_server}/delay?delay=2")

        pool.scale_to(2)
        await asyncio.sleep(0.1)
        await pool.stop_all(grace_period=0.2)

        assert pool.retiring_count == 0
        summary = aggregator.finalize(name="t", duration_seconds=1.0)
        assert summary.iterations == 0
        # Cut-off requests are errors and leave the latency histogram alone
        assert summary.total_requests == 2
        assert summary.request_errors == 2
        assert summary.errors_by_type == {"CancelledError": 2}
        assert summary.latency_max == 0.0
        assert summary.target_unreachable is True

    @pytest.mark.timeout(15)
    async def test_failed_requests_do_not_stop_users(self) -> None:
        pool, aggregator = _make_pool("http://127.0.0.1:1/", pacing=0.02)

        pool.scale_to(2)
        await asyncio.sleep(0.5)
        assert pool.active_count == 2
        await pool.stop_all()

        summary = aggregator.finalize(name="t", duration_seconds=0.5)
        assert summary.iterations > 2
        assert summary.checks_failed == summary.iterations
        assert summary.target_unreachable is True

    @pytest.mark.timeout(15)
    async def test_scale_up_reuses_user_still_in_iteration(self, target_server: str) -> None:
        """Re-growing while a retired user is mid-request never runs an extra user."""
        pool, aggregator = _make_pool(f"{target_server}/delay?delay=0.5")

        pool.scale_to(1)
        await asyncio.sleep(0.1)  # the user is waiting on its response
        first = pool.users[0]
        pool.scale_to(0)
        pool.scale_to(1)

        assert pool.users == [first]
        assert not first.retiring
        assert pool.retiring_count == 0
        assert pool.total_spawned == 1
        assert pool.peak_count == 1

        await asyncio.sleep(0.2)
        assert sum(1 for u in pool.users if u.looping) == 1

        await pool.stop_all()
        summary = aggregator.finalize(name="t", duration_seconds=1.0)
        assert summary.iterations >= 1
        assert summary.checks_failed == 0

    @pytest.mark.timeout(15)
    async def test_scale_up_replaces_user_that_already_exited(self, target_server: str) -> None:
        pool, _ = _make_pool(f"{target_server}/ok", pacing=30.0)

        pool.scale_to(1)
        await asyncio.sleep(0.3)  # first iteration done, now pacing
        first = pool.users[0]
        pool.scale_to(0)
        assert first.task is not None
        await first.task

        pool.scale_to(1)
        assert pool.users != [first]
        assert pool.total_spawned == 2
        assert pool.peak_count == 1

        await pool.stop_all()
