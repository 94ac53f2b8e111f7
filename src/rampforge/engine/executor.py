"""Iteration executor: one request, its checks, and the pacing delay."""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Any

import aiohttp

from rampforge._internal.logging import get_logger
from rampforge.dsl.checks import Check, normalize_checks
from rampforge.metrics.models import IterationRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from rampforge.dsl.checks import Predicate
    from rampforge.dsl.config import IterationFunction, LoadTestConfig
    from rampforge.dsl.http_client import HttpClient, Response
    from rampforge.metrics.aggregator import ResultAggregator

logger = get_logger("engine.executor")

# Name of the failed check recorded when a custom iteration raises.
ITERATION_CHECK = "iteration"

_REQUEST_ERRORS = (aiohttp.ClientError, TimeoutError)


class IterationContext:
    """What an iteration function sees while it runs.

    Attributes:
        client: The virtual user's instrumented HTTP client.
        user_id: Identifier of the running virtual user.
        iteration: Iteration number within this user, starting at 1.
        last_error: Text of the most recent request failure, if any.
    """

    def __init__(
        self,
        config: LoadTestConfig,
        client: HttpClient,
        aggregator: ResultAggregator,
        *,
        user_id: int,
        iteration: int,
    ) -> None:
        self._config = config
        self._aggregator = aggregator
        self.client = client
        self.user_id = user_id
        self.iteration = iteration
        self.last_error: str | None = None

    async def request(
        self,
        method: str | None = None,
        url: str | None = None,
        *,
        name: str | None = None,
        **kwargs: Any,
    ) -> Response | None:
        """Issue a request, defaulting to the configured method and URL.

        Connection failures and timeouts do not propagate: they are logged,
        kept in :attr:`last_error`, and ``None`` is returned so that
        :meth:`check` records every check as failed.
        """
        if url is None:
            url = self._config.url
            if self._config.body is not None:
                kwargs.setdefault("data", self._config.body)
        try:
            return await self.client.request(
                method or self._config.method,
                url,
                name=name or self._config.name,
                **kwargs,
            )
        except _REQUEST_ERRORS as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.debug(
                "Request failed for user %d, iteration %d: %s",
                self.user_id,
                self.iteration,
                self.last_error,
                exc_info=True,
            )
            return None

    def check(
        self,
        response: Response | None,
        checks: Mapping[str, Predicate] | Iterable[Check] | None = None,
    ) -> bool:
        """Evaluate checks against *response* and record each outcome.

        Args:
            response: The response to assert on.  ``None`` (a failed
                request) fails every check.
            checks: Checks to run.  Defaults to the configured checks.

        Returns:
            True if every check passed.
        """
        selected = self._config.checks if checks is None else normalize_checks(checks)
        all_passed = True
        for check in selected:
            if response is None:
                result = check.fail(
                    self.last_error or "no response",
                    user_id=self.user_id,
                    iteration=self.iteration,
                )
            else:
                result = check.evaluate(response, user_id=self.user_id, iteration=self.iteration)
            self._aggregator.record_check(result)
            all_passed = all_passed and result.passed
        return all_passed


async def request_iteration(ctx: IterationContext) -> None:
    """Built-in iteration: one configured request, then the configured checks."""
    response = await ctx.request()
    ctx.check(response)


class IterationExecutor:
    """Runs iterations for any virtual user of one load test.

    Holds no per-user state; each call gets its own ``IterationContext``.

    Args:
        config: The load test being run.
        aggregator: Sink for check results and iteration records.
    """

    def __init__(self, config: LoadTestConfig, aggregator: ResultAggregator) -> None:
        self._config = config
        self._aggregator = aggregator
        self._iteration_fn: IterationFunction = config.iteration or request_iteration

    async def run_once(self, client: HttpClient, *, user_id: int, iteration: int) -> None:
        """Execute one iteration and record its completion.

        An exception escaping a custom iteration function is logged and
        recorded as a failed ``iteration`` check; it never reaches the
        virtual user's loop.
        """
        ctx = IterationContext(
            self._config,
            client,
            self._aggregator,
            user_id=user_id,
            iteration=iteration,
        )
        start = time.monotonic()
        try:
            await self._iteration_fn(ctx)
        except Exception as exc:
            logger.warning(
                "Iteration %d of user %d raised %s: %s",
                iteration,
                user_id,
                type(exc).__name__,
                exc,
            )
            self._aggregator.record_check(
                Check(name=ITERATION_CHECK, predicate=bool).fail(
                    f"{type(exc).__name__}: {exc}",
                    user_id=user_id,
                    iteration=iteration,
                )
            )

        self._aggregator.record_iteration(
            IterationRecord(
                user_id=user_id,
                iteration=iteration,
                duration_ms=(time.monotonic() - start) * 1000,
            )
        )

    def pacing_delay(self) -> float:
        """Seconds to pause before the next iteration."""
        pacing = self._config.pacing
        if isinstance(pacing, tuple):
            low, high = pacing
            return random.uniform(low, high)  # noqa: S311
        return float(pacing)
