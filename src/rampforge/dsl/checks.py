"""Named response assertions and their results."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from rampforge._internal.errors import ConfigError
from rampforge._internal.logging import get_logger
from rampforge.dsl.http_client import Response

logger = get_logger("dsl.checks")

Predicate = Callable[[Response], bool]


@dataclass(frozen=True)
class Check:
    """A named boolean assertion evaluated against each response.

    Attributes:
        name: Label shown in the run summary, e.g. ``"status is 200"``.
        predicate: Callable taking a ``Response`` and returning truthiness.
    """

    name: str
    predicate: Predicate

    def __post_init__(self) -> None:
        if not self.name:
            msg = "Check name must be a non-empty string"
            raise ConfigError(msg)
        if not callable(self.predicate):
            msg = f"Check {self.name!r} predicate must be callable, got {self.predicate!r}"
            raise ConfigError(msg)
        if inspect.iscoroutinefunction(self.predicate):
            msg = f"Check {self.name!r} predicate must be a plain function, not async def"
            raise ConfigError(msg)

    def evaluate(self, response: Response, *, user_id: int = 0, iteration: int = 0) -> CheckResult:
        """Run the predicate and wrap the outcome in a ``CheckResult``.

        A predicate that raises counts as a failed check; the exception
        text is kept on the result.
        """
        try:
            outcome = self.predicate(response)
            if inspect.isawaitable(outcome):
                if inspect.iscoroutine(outcome):
                    outcome.close()
                msg = "predicate returned an awaitable; checks must be synchronous"
                raise TypeError(msg)
            passed = bool(outcome)
        except Exception as exc:
            logger.debug("Check %r raised", self.name, exc_info=True)
            return CheckResult(
                name=self.name,
                passed=False,
                user_id=user_id,
                iteration=iteration,
                error=f"{type(exc).__name__}: {exc}",
            )
        return CheckResult(name=self.name, passed=passed, user_id=user_id, iteration=iteration)

    def fail(self, error: str, *, user_id: int = 0, iteration: int = 0) -> CheckResult:
        """Return a failed result without evaluating, e.g. after a request error."""
        return CheckResult(
            name=self.name,
            passed=False,
            user_id=user_id,
            iteration=iteration,
            error=error,
        )


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check in one iteration.

    Attributes:
        name: Name of the check.
        passed: Whether the assertion held.
        user_id: Virtual user that produced the result.
        iteration: Iteration number within that virtual user.
        error: Request or predicate error text for failures caused by one.
    """

    name: str
    passed: bool
    user_id: int = 0
    iteration: int = 0
    error: str | None = None


def normalize_checks(checks: Mapping[str, Predicate] | Iterable[Check] | None) -> tuple[Check, ...]:
    """Turn a ``{name: predicate}`` mapping or a list of ``Check`` into a tuple.

    Raises:
        ConfigError: On duplicate names or entries that are not checks.
    """
    if checks is None:
        return ()
    if isinstance(checks, Mapping):
        items = [Check(name=name, predicate=predicate) for name, predicate in checks.items()]
    else:
        items = []
        for item in checks:
            if not isinstance(item, Check):
                msg = f"Expected a Check, got {item!r}"
                raise ConfigError(msg)
            items.append(item)

    seen: set[str] = set()
    for item in items:
        if item.name in seen:
            msg = f"Duplicate check name: {item.name!r}"
            raise ConfigError(msg)
        seen.add(item.name)
    return tuple(items)


# ---------------------------------------------------------------------------
# Predicate factories
# ---------------------------------------------------------------------------


def status_is(code: int) -> Predicate:
    """Pass when the response status equals *code*."""

    def _predicate(response: Response) -> bool:
        return response.status == code

    return _predicate


def status_in(*codes: int) -> Predicate:
    """Pass when the response status is one of *codes*."""
    allowed = frozenset(codes)

    def _predicate(response: Response) -> bool:
        return response.status in allowed

    return _predicate


def body_contains(text: str) -> Predicate:
    """Pass when the decoded body contains *text*."""

    def _predicate(response: Response) -> bool:
        return text in response.text()

    return _predicate


def latency_below(ms: float) -> Predicate:
    """Pass when the response arrived in under *ms* milliseconds."""

    def _predicate(response: Response) -> bool:
        return response.latency_ms < ms

    return _predicate
