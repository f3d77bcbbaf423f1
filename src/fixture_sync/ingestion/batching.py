from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from fixture_sync.core.logging import get_logger

logger = get_logger(__name__)

ItemT = TypeVar("ItemT")

Sleep = Callable[[float], Awaitable[Any]]


class BatchIntegrityError(RuntimeError):
    """Settled item count does not match the number of items submitted."""


class OutcomeStatus(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    FETCHED = "fetched"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ItemOutcome:
    status: OutcomeStatus
    key: Hashable | None = None
    value: Any = None
    reason: str | None = None

    @classmethod
    def created(cls, key: Hashable | None = None, value: Any = None) -> ItemOutcome:
        return cls(OutcomeStatus.CREATED, key=key, value=value)

    @classmethod
    def updated(cls, key: Hashable | None = None, value: Any = None) -> ItemOutcome:
        return cls(OutcomeStatus.UPDATED, key=key, value=value)

    @classmethod
    def fetched(cls, key: Hashable | None = None, value: Any = None) -> ItemOutcome:
        return cls(OutcomeStatus.FETCHED, key=key, value=value)

    @classmethod
    def skipped(cls, reason: str, key: Hashable | None = None) -> ItemOutcome:
        return cls(OutcomeStatus.SKIPPED, key=key, reason=reason)


def format_failure_reason(exc: BaseException, *, max_len: int = 300) -> str:
    msg = str(exc).strip() or exc.__class__.__name__
    reason = f"{exc.__class__.__name__}: {msg}"
    if len(reason) > max_len:
        return f"{reason[: max_len - 1]}…"
    return reason


@dataclass
class FetchLedger:
    """Aggregated counters for one orchestration run."""

    created: int = 0
    updated: int = 0
    fetched: int = 0
    skipped: int = 0
    errored: int = 0
    processed: int = 0
    batches: int = 0

    identifiers: set[Hashable] = field(default_factory=set)
    values: list[Any] = field(default_factory=list)
    failed_ids_sample: list[Hashable] = field(default_factory=list)
    failure_reasons: dict[str, int] = field(default_factory=dict)
    skip_reasons: dict[str, int] = field(default_factory=dict)
    failures_limit: int = 25

    @property
    def succeeded(self) -> int:
        return self.created + self.updated + self.fetched

    def record(self, item_key: Hashable, outcome: ItemOutcome) -> None:
        self.processed += 1
        if outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
            reason = outcome.reason or "unspecified"
            self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + 1
            return

        if outcome.status is OutcomeStatus.CREATED:
            self.created += 1
        elif outcome.status is OutcomeStatus.UPDATED:
            self.updated += 1
        else:
            self.fetched += 1

        self.identifiers.add(outcome.key if outcome.key is not None else item_key)
        if outcome.value is not None:
            self.values.append(outcome.value)

    def record_failure(self, item_key: Hashable, exc: BaseException) -> None:
        self.processed += 1
        self.errored += 1
        if len(self.failed_ids_sample) < self.failures_limit:
            self.failed_ids_sample.append(item_key)
        reason = format_failure_reason(exc)
        self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + 1

    def merge(self, other: FetchLedger) -> None:
        self.created += other.created
        self.updated += other.updated
        self.fetched += other.fetched
        self.skipped += other.skipped
        self.errored += other.errored
        self.processed += other.processed
        self.batches += other.batches
        self.identifiers |= other.identifiers
        self.values.extend(other.values)
        room = self.failures_limit - len(self.failed_ids_sample)
        self.failed_ids_sample.extend(other.failed_ids_sample[: max(room, 0)])
        for reason, count in other.failure_reasons.items():
            self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + count
        for reason, count in other.skip_reasons.items():
            self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + count

    def summary(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "fetched": self.fetched,
            "skipped": self.skipped,
            "errored": self.errored,
            "processed": self.processed,
            "batches": self.batches,
            "failed_ids_sample": list(self.failed_ids_sample),
            "failure_reasons": dict(self.failure_reasons),
        }


def chunked(items: Sequence[ItemT], size: int) -> list[Sequence[ItemT]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


async def run_batches(
    items: Sequence[ItemT],
    *,
    operation: Callable[[ItemT], Awaitable[ItemOutcome | Any]],
    batch_size: int = 10,
    inter_batch_delay_s: float = 2.0,
    key: Callable[[ItemT], Hashable] | None = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "items",
) -> FetchLedger:
    """Run `operation` over `items` in fixed-size, strictly sequential batches.

    Items inside a batch run concurrently and settle independently: an exception
    is counted against the item and never aborts the batch. The next batch only
    starts once every item of the current one has settled, after a pause of
    `inter_batch_delay_s` (no pause after the last batch).

    An operation may return an `ItemOutcome`; any other return value is recorded
    as a fetched value.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    key_of = key or (lambda item: item)  # type: ignore[return-value]
    items = list(items)
    batches = chunked(items, batch_size)
    ledger = FetchLedger()

    logger.info(
        "Processing {} {} in {} batches of up to {}", len(items), label, len(batches), batch_size
    )

    for index, batch in enumerate(batches, start=1):
        results = await asyncio.gather(*(operation(item) for item in batch), return_exceptions=True)
        ledger.batches += 1

        for item, result in zip(batch, results, strict=True):
            item_key = key_of(item)
            if isinstance(result, Exception):
                logger.error("Failed to process {} {}: {}", label, item_key, result)
                ledger.record_failure(item_key, result)
            elif isinstance(result, BaseException):
                raise result
            elif isinstance(result, ItemOutcome):
                ledger.record(item_key, result)
            else:
                ledger.record(item_key, ItemOutcome.fetched(key=item_key, value=result))

        logger.debug(
            "Batch {}/{} settled: processed={}/{} errored={}",
            index,
            len(batches),
            ledger.processed,
            len(items),
            ledger.errored,
        )

        if index < len(batches) and inter_batch_delay_s > 0:
            await sleep(inter_batch_delay_s)

    if ledger.processed != len(items):
        raise BatchIntegrityError(
            f"Processed {ledger.processed} of {len(items)} {label} across {ledger.batches} batches"
        )

    logger.info(
        "Finished {} {}: created={} updated={} fetched={} skipped={} errored={}",
        len(items),
        label,
        ledger.created,
        ledger.updated,
        ledger.fetched,
        ledger.skipped,
        ledger.errored,
    )
    return ledger
