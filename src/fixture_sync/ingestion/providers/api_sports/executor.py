from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception

from fixture_sync.core.config import Settings
from fixture_sync.core.logging import get_logger
from fixture_sync.ingestion.providers.api_sports.quota import QuotaGate
from fixture_sync.ingestion.providers.base.errors import (
    ProviderRateLimited,
    ProviderServerError,
    ProviderTransportError,
)

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class ErrorClass(StrEnum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    TERMINAL = "terminal"


def classify_provider_error(exc: BaseException) -> ErrorClass:
    if isinstance(exc, ProviderRateLimited):
        return ErrorClass.RATE_LIMITED
    if isinstance(exc, (ProviderServerError, ProviderTransportError)):
        return ErrorClass.TRANSIENT
    return ErrorClass.TERMINAL


def exponential_backoff(failures: int) -> float:
    return float(2**failures)


@dataclass
class _AttemptBudget:
    """Per-call counters; provider 429s are tracked apart from transient failures."""

    policy: RetryPolicy
    label: str
    transient_failures: int = 0
    rate_limited: int = 0

    def _error_class(self, retry_state: RetryCallState) -> tuple[ErrorClass, BaseException]:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if exc is None:  # pragma: no cover - tenacity only consults us after a failure
            raise RuntimeError("retry consulted without a failed attempt")
        return self.policy.classify(exc), exc

    def record(self, retry_state: RetryCallState) -> None:
        kind, _ = self._error_class(retry_state)
        if kind is ErrorClass.RATE_LIMITED:
            self.rate_limited += 1
        else:
            self.transient_failures += 1

    def stop(self, retry_state: RetryCallState) -> bool:
        kind, _ = self._error_class(retry_state)
        if kind is ErrorClass.RATE_LIMITED:
            return self.rate_limited > self.policy.rate_limit_max_retries
        return self.transient_failures >= self.policy.max_attempts

    def wait(self, retry_state: RetryCallState) -> float:
        kind, exc = self._error_class(retry_state)
        if kind is ErrorClass.RATE_LIMITED:
            retry_after = getattr(exc, "retry_after_s", None)
            return float(
                retry_after if retry_after is not None else self.policy.rate_limit_default_wait_s
            )
        return self.policy.backoff(self.transient_failures)

    def log(self, retry_state: RetryCallState) -> None:
        kind, exc = self._error_class(retry_state)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if kind is ErrorClass.RATE_LIMITED:
            logger.warning(
                "Provider rate limit hit on {} ({}/{}), waiting {:.0f}s before retry",
                self.label,
                self.rate_limited,
                self.policy.rate_limit_max_retries,
                delay,
            )
        else:
            logger.warning(
                "{} failed (attempt {}/{}), retrying in {:.0f}s: {}",
                self.label,
                self.transient_failures,
                self.policy.max_attempts,
                delay,
                exc,
            )


@dataclass
class RetryPolicy:
    """How a single provider call is retried.

    Transient failures (5xx, timeouts, network) consume `max_attempts` with
    `backoff(n)` seconds between tries. Provider 429s wait for the advertised
    `Retry-After` and are bounded separately by `rate_limit_max_retries`.
    Everything else is terminal.
    """

    max_attempts: int = 3
    rate_limit_max_retries: int = 10
    rate_limit_default_wait_s: float = 60.0
    classify: Callable[[BaseException], ErrorClass] = field(default=classify_provider_error)
    backoff: Callable[[int], float] = field(default=exponential_backoff)

    @classmethod
    def from_settings(cls, cfg: Settings) -> RetryPolicy:
        return cls(
            max_attempts=cfg.retry_max_attempts,
            rate_limit_max_retries=cfg.rate_limit_max_retries,
            rate_limit_default_wait_s=cfg.rate_limit_default_wait_s,
        )

    def retrying(self, *, sleep: Sleep = asyncio.sleep, label: str = "API call") -> AsyncRetrying:
        budget = _AttemptBudget(policy=self, label=label)
        return AsyncRetrying(
            retry=retry_if_exception(lambda e: self.classify(e) is not ErrorClass.TERMINAL),
            after=budget.record,
            stop=budget.stop,
            wait=budget.wait,
            before_sleep=budget.log,
            sleep=sleep,
            reraise=True,
        )


class CallExecutor:
    """Run one outbound call per attempt, each attempt admitted by the quota gate."""

    def __init__(
        self,
        gate: QuotaGate,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gate = gate
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(self, call: Callable[[], Awaitable[T]], *, label: str = "API call") -> T:
        async for attempt in self.policy.retrying(sleep=self._sleep, label=label):
            with attempt:
                async with self.gate.admit():
                    result = await call()
        return result
