from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from fixture_sync.core.config import Settings, settings
from fixture_sync.core.logging import get_logger
from fixture_sync.jobs.tracker import ExecutionHandle, ExecutionTracker

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class JobTimeoutError(TimeoutError):
    def __init__(self, job_name: str, timeout_s: float) -> None:
        super().__init__(f"Job {job_name!r} timed out after {timeout_s:.0f}s")
        self.job_name = job_name
        self.timeout_s = timeout_s


def result_details(result: Any) -> dict[str, Any]:
    """JSON-friendly summary of a job body's return value."""
    if result is None:
        return {}
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return dataclasses.asdict(result)
    if isinstance(result, Mapping):
        return dict(result)
    return {"result": repr(result)}


class JobRunner(Generic[T]):
    """Run one job body with best-effort tracking, a whole-job retry and a timeout.

    The timeout wraps the retries: `timeout_s` bounds the total time of every
    attempt and every retry pause. A body that overruns is abandoned, not
    cancelled; it keeps running in the background and its outcome is only logged.
    """

    def __init__(
        self,
        name: str,
        body: Callable[[], Awaitable[T]],
        *,
        tracker: ExecutionTracker | None = None,
        timeout_s: float = 3 * 60 * 60,
        retries: int = 2,
        retry_delay_s: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.name = name
        self.body = body
        self.tracker = tracker
        self.timeout_s = timeout_s
        self.retries = retries
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep
        self.abandoned: set[asyncio.Task[T]] = set()

    @classmethod
    def from_settings(
        cls,
        name: str,
        body: Callable[[], Awaitable[T]],
        *,
        tracker: ExecutionTracker | None = None,
        cfg: Settings = settings,
    ) -> JobRunner[T]:
        return cls(
            name,
            body,
            tracker=tracker,
            timeout_s=cfg.job_timeout_s,
            retries=cfg.job_retries,
            retry_delay_s=cfg.job_retry_delay_s,
        )

    # -----------------------------
    # Tracking (never fatal)
    # -----------------------------

    def _start_tracking(self) -> ExecutionHandle | None:
        if self.tracker is None:
            return None
        try:
            return self.tracker.start(self.name)
        except Exception as exc:
            logger.warning(
                "[{}] execution tracking failed, continuing without it: {}", self.name, exc
            )
            return None

    def _report_success(self, handle: ExecutionHandle | None, result: T) -> None:
        if handle is None:
            return
        try:
            handle.success(result_details(result))
        except Exception as exc:
            logger.warning("[{}] failed to record success: {}", self.name, exc)

    def _report_failure(self, handle: ExecutionHandle | None, error: BaseException) -> None:
        if handle is None:
            return
        try:
            handle.fail(error)
        except Exception as exc:
            logger.warning("[{}] failed to record failure: {}", self.name, exc)

    # -----------------------------
    # Execution
    # -----------------------------

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "[{}] attempt {}/{} failed, retrying in {:.0f}s: {}",
            self.name,
            retry_state.attempt_number,
            self.retries + 1,
            self.retry_delay_s,
            exc,
        )

    async def _run_with_retry(self) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_fixed(self.retry_delay_s),
            retry=retry_if_exception_type(Exception),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self.body()
        return result

    def _abandon(self, task: asyncio.Task[T]) -> None:
        self.abandoned.add(task)

        def settled(done: asyncio.Task[T]) -> None:
            self.abandoned.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                logger.error("[{}] abandoned run failed later: {}", self.name, exc)
            else:
                logger.info("[{}] abandoned run finished after its timeout", self.name)

        task.add_done_callback(settled)

    async def _run_with_timeout(self) -> T:
        task = asyncio.ensure_future(self._run_with_retry())
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_s)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            self._abandon(task)
            raise JobTimeoutError(self.name, self.timeout_s)
        return task.result()

    async def run(self) -> T:
        handle = self._start_tracking()
        logger.info("[{}] starting", self.name)
        try:
            result = await self._run_with_timeout()
        except Exception as exc:
            logger.error("[{}] failed: {}", self.name, exc)
            self._report_failure(handle, exc)
            raise
        self._report_success(handle, result)
        logger.info("[{}] finished", self.name)
        return result
