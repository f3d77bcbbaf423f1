from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fixture_sync.core.config import Settings
from fixture_sync.core.logging import get_logger

logger = get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60


def seconds_until_next_utc_midnight(now: datetime) -> float:
    now_utc = now.astimezone(UTC)
    next_midnight = (now_utc + timedelta(days=1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return (next_midnight - now_utc).total_seconds()


@dataclass
class QuotaBucket:
    """Token reservoir refilled on a timer owned by `QuotaGate`.

    Tokens never exceed `capacity` and never go negative: `take()` is only called
    after `wait_for_token()` returned under the gate's admission lock.
    """

    name: str
    capacity: int
    refill_interval_s: float
    refill_amount: int | None = None
    tokens: int = field(init=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"{self.name} bucket capacity must be >= 1, got {self.capacity}")
        if self.refill_amount is None:
            self.refill_amount = self.capacity
        self.tokens = self.capacity
        self._changed = asyncio.Condition()

    async def wait_for_token(self) -> None:
        async with self._changed:
            await self._changed.wait_for(lambda: self.tokens > 0)

    def take(self) -> int:
        if self.tokens <= 0:
            raise RuntimeError(f"{self.name} bucket is empty")
        self.tokens -= 1
        return self.tokens

    async def refill(self, amount: int | None = None) -> int:
        """Add `amount` (default: the refill amount), clamped to capacity."""
        add = self.refill_amount if amount is None else amount
        async with self._changed:
            self.tokens = min(self.capacity, self.tokens + int(add or 0))
            self._changed.notify_all()
        return self.tokens

    async def top_up(self) -> int:
        """Reset to full capacity regardless of what is left."""
        async with self._changed:
            self.tokens = self.capacity
            self._changed.notify_all()
        return self.tokens


@dataclass(frozen=True)
class Permit:
    minute_remaining: int
    day_remaining: int


class QuotaGate:
    """Chained minute/day token buckets plus an in-flight concurrency ceiling.

    Admission order is slot -> minute -> day. The admission lock is held while
    waiting, so a caller queued on the minute bucket never holds a day token and
    no two callers can race for the last token of either bucket.
    """

    def __init__(
        self,
        minute: QuotaBucket,
        day: QuotaBucket,
        *,
        max_concurrent: int = 10,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self.minute = minute
        self.day = day
        self.max_concurrent = max_concurrent
        self._slots = asyncio.Semaphore(max_concurrent)
        self._admission = asyncio.Lock()
        self._sleep = sleep
        self._now = now
        self._tasks: list[asyncio.Task[None]] = []
        self.waiting = 0
        self.running = 0

    @classmethod
    def from_settings(cls, cfg: Settings) -> QuotaGate:
        return cls(
            minute=QuotaBucket(
                name="minute",
                capacity=cfg.quota_minute_capacity,
                refill_interval_s=cfg.quota_minute_interval_s,
            ),
            day=QuotaBucket(
                name="day",
                capacity=cfg.quota_day_capacity,
                refill_interval_s=DAY_SECONDS,
            ),
            max_concurrent=cfg.max_concurrent_calls,
        )

    # -----------------------------
    # Refill timers
    # -----------------------------

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._minute_refill_loop(), name="quota-minute-refill"),
            asyncio.create_task(self._day_refill_loop(), name="quota-day-refill"),
        ]
        logger.info(
            "Quota gate armed: perMinute={}/{}s maxConcurrent={} perDay={} "
            "(resets at 00:00 UTC, {:.0f}s from now)",
            self.minute.capacity,
            self.minute.refill_interval_s,
            self.max_concurrent,
            self.day.capacity,
            seconds_until_next_utc_midnight(self._now()),
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _minute_refill_loop(self) -> None:
        while True:
            await self._sleep(self.minute.refill_interval_s)
            await self.minute.refill()

    async def _day_refill_loop(self) -> None:
        # First tick lands on the next UTC midnight, then a fixed 24h cadence.
        delay = seconds_until_next_utc_midnight(self._now())
        while True:
            await self._sleep(delay)
            tokens = await self.day.top_up()
            logger.info("Daily API quota reset at UTC midnight ({} tokens available)", tokens)
            delay = self.day.refill_interval_s

    # -----------------------------
    # Admission
    # -----------------------------

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[Permit]:
        self.waiting += 1
        queued = True
        try:
            async with self._slots:
                async with self._admission:
                    await self.minute.wait_for_token()
                    await self.day.wait_for_token()
                    permit = Permit(
                        minute_remaining=self.minute.take(),
                        day_remaining=self.day.take(),
                    )
                self.waiting -= 1
                queued = False
                self.running += 1
                try:
                    yield permit
                finally:
                    self.running -= 1
        finally:
            if queued:
                self.waiting -= 1

    def snapshot(self) -> dict[str, int]:
        return {
            "minute_tokens": self.minute.tokens,
            "day_tokens": self.day.tokens,
            "waiting": self.waiting,
            "running": self.running,
        }
