"""Integration tests for LoadTestSession against the target server."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from rampforge import LoadTestConfig, Stage, status_is
from rampforge.engine.executor import ITERATION_CHECK
from rampforge.engine.session import LoadTestSession, SessionState
from rampforge.patterns.constant import ConstantPattern

if TYPE_CHECKING:
    from rampforge.engine.executor import IterationContext
    from rampforge.metrics.models import MetricSnapshot

UNREACHABLE_URL = "http://127.0.0.1:1/"


def _config(url: str, stages: list[Stage], **kwargs: object) -> LoadTestConfig:
    kwargs.setdefault("checks", {"status was 200": status_is(200)})
    kwargs.setdefault("pacing", 0.05)
    return LoadTestConfig(name="Session Test", url=url, stages=stages, **kwargs)  # type: ignore[arg-type]


def _session(config: LoadTestConfig, **kwargs: object) -> LoadTestSession:
    kwargs.setdefault("tick_interval", 0.25)
    return LoadTestSession(config, handle_signals=False, **kwargs)  # type: ignore[arg-type]


class TestLoadTestSession:
    @pytest.mark.timeout(15)
    async def test_single_user_all_checks_pass(self, target_server: str) -> None:
        """One user for one second against a healthy endpoint."""
        session = _session(_config(f"{target_server}/ok", [Stage("1s", 1)]))

        summary = await session.run()

        assert session.state == SessionState.COMPLETED
        assert summary.name == "Session Test"
        assert summary.iterations >= 1
        assert summary.checks_failed == 0
        assert summary.pass_rate == 1.0
        assert summary.peak_users <= 1
        assert summary.duration_seconds >= 0.9
        assert summary.interrupted is False
        assert summary.target_unreachable is False

    @pytest.mark.timeout(15)
    async def test_unreachable_target_fails_every_check(self) -> None:
        session = _session(_config(UNREACHABLE_URL, [Stage("1s", 1)], request_timeout=1.0))

        summary = await session.run()

        assert summary.iterations >= 1
        assert summary.checks_passed == 0
        assert summary.checks_failed == summary.iterations
        assert summary.target_unreachable is True
        assert "ClientConnectorError" in summary.errors_by_type

    @pytest.mark.timeout(15)
    async def test_empty_stage_list_runs_nothing(self, target_server: str) -> None:
        session = _session(_config(f"{target_server}/ok", []))

        summary = await session.run()

        assert session.state == SessionState.COMPLETED
        assert summary.iterations == 0
        assert summary.total_requests == 0
        assert summary.total_checks == 0
        assert summary.pass_rate == 0.0
        assert summary.snapshots == []

    @pytest.mark.timeout(15)
    async def test_one_result_per_iteration(self, target_server: str) -> None:
        """With a single check, passed + failed equals the iteration count."""
        session = _session(
            _config(f"{target_server}/error?status=500", [Stage("1s", 2)], pacing=0.02)
        )

        summary = await session.run()

        assert summary.iterations > 2
        assert summary.checks_passed + summary.checks_failed == summary.iterations
        assert summary.checks_failed == summary.iterations
        assert summary.errors_by_status == {500: summary.total_requests}

    @pytest.mark.timeout(15)
    async def test_users_follow_stages(self, target_server: str) -> None:
        config = _config(
            f"{target_server}/ok",
            [Stage(1.0, 4), Stage(0.5, 4), Stage(0.5, 0)],
            start_target=0,
        )
        snapshots: list[MetricSnapshot] = []
        session = _session(config, tick_interval=0.1, on_snapshot=snapshots.append)

        summary = await session.run()

        assert summary.peak_users == 4
        assert snapshots == summary.snapshots
        targets = [s.target_users for s in snapshots]
        assert targets[0] == 0
        assert max(targets) == 4
        assert targets[-1] == 0
        # The ramp down retires users before the run ends
        assert snapshots[-2].active_users < 4

    @pytest.mark.timeout(15)
    async def test_explicit_pattern_overrides_stages(self, target_server: str) -> None:
        config = _config(f"{target_server}/ok", [Stage("1m", 10)])
        session = _session(config, pattern=ConstantPattern(users=2, duration=0.5))

        summary = await session.run()

        assert summary.peak_users == 2
        assert summary.pattern_description == "Constant: 2 users for 0.5s"
        assert summary.duration_seconds < 5.0

    @pytest.mark.timeout(15)
    async def test_custom_iteration_errors_are_recorded(self, target_server: str) -> None:
        calls = 0

        async def _flaky(ctx: IterationContext) -> None:
            nonlocal calls
            calls += 1
            if ctx.iteration % 2 == 0:
                raise RuntimeError("even iteration")
            ctx.check(await ctx.request("GET", "/ok"))

        config = _config(target_server, [Stage("1s", 1)], iteration=_flaky)
        summary = await _session(config).run()

        assert summary.iterations == calls
        assert summary.checks[ITERATION_CHECK].fails == calls // 2
        assert summary.checks["status was 200"].passes == calls - calls // 2

    @pytest.mark.timeout(15)
    async def test_stop_interrupts_run(self, target_server: str) -> None:
        session = _session(_config(f"{target_server}/ok", [Stage("30s", 2)]))

        async def _stop_after_delay() -> None:
            await asyncio.sleep(0.5)
            session.stop()

        stop_task = asyncio.create_task(_stop_after_delay())
        summary = await session.run()
        await stop_task

        assert session.interrupted is True
        assert summary.interrupted is True
        assert summary.duration_seconds < 5.0
        assert summary.iterations > 0
        assert session.pool.active_count == 0

    @pytest.mark.timeout(15)
    async def test_in_flight_iterations_finish_at_end(self, target_server: str) -> None:
        """The run waits for iterations still running when the last stage ends."""
        config = _config(f"{target_server}/delay?delay=0.6", [Stage("0.5s", 2)], pacing=0)

        summary = await _session(config).run()

        assert summary.checks_failed == 0
        assert summary.iterations == summary.total_requests
        assert summary.duration_seconds >= 0.6
