from __future__ import annotations

import pytest

from fixture_sync.ingestion import batching
from fixture_sync.ingestion.batching import (
    BatchIntegrityError,
    FetchLedger,
    ItemOutcome,
    chunked,
    format_failure_reason,
    run_batches,
)


def test_chunked_keeps_order_and_remainder() -> None:
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []


async def test_run_batches_paces_between_batches_only(fake_sleep, sleeps) -> None:
    batches_seen: list[list[int]] = []
    current: list[int] = []

    async def op(item: int) -> int:
        current.append(item)
        if len(current) == 10 or item == 24:
            batches_seen.append(list(current))
            current.clear()
        return item * 10

    ledger = await run_batches(
        list(range(25)), operation=op, batch_size=10, inter_batch_delay_s=2.0, sleep=fake_sleep
    )

    assert ledger.batches == 3
    assert [len(b) for b in batches_seen] == [10, 10, 5]
    assert sleeps == [2.0, 2.0]
    assert ledger.processed == 25
    assert ledger.fetched == 25
    assert sorted(ledger.values) == [i * 10 for i in range(25)]


async def test_run_batches_counts_failures_without_aborting(fake_sleep) -> None:
    async def op(item: int) -> ItemOutcome:
        if item % 4 == 0:
            raise ValueError(f"bad item {item}")
        if item % 4 == 1:
            return ItemOutcome.skipped("not_found", key=item)
        if item % 4 == 2:
            return ItemOutcome.created(key=item)
        return ItemOutcome.updated(key=item)

    ledger = await run_batches(
        list(range(12)), operation=op, batch_size=5, inter_batch_delay_s=0.0, sleep=fake_sleep
    )

    assert ledger.processed == 12
    assert ledger.errored == 3
    assert ledger.skipped == 3
    assert ledger.created == 3
    assert ledger.updated == 3
    assert ledger.succeeded == 6
    assert ledger.skip_reasons == {"not_found": 3}
    assert ledger.failed_ids_sample == [0, 4, 8]
    assert ledger.identifiers == {2, 3, 6, 7, 10, 11}
    assert sum(ledger.failure_reasons.values()) == 3


async def test_run_batches_uses_key_for_failures(fake_sleep) -> None:
    async def op(item: dict[str, int]) -> None:
        raise RuntimeError("boom")

    ledger = await run_batches(
        [{"id": 7}, {"id": 8}],
        operation=op,
        key=lambda item: item["id"],
        sleep=fake_sleep,
    )
    assert ledger.failed_ids_sample == [7, 8]
    assert ledger.failure_reasons == {"RuntimeError: boom": 2}


async def test_run_batches_with_no_items(fake_sleep, sleeps) -> None:
    ledger = await run_batches([], operation=lambda item: item, sleep=fake_sleep)
    assert ledger.processed == 0
    assert ledger.batches == 0
    assert sleeps == []


async def test_run_batches_rejects_bad_batch_size(fake_sleep) -> None:
    async def op(item: int) -> int:
        return item

    with pytest.raises(ValueError):
        await run_batches([1], operation=op, batch_size=0, sleep=fake_sleep)


async def test_run_batches_detects_lost_items(monkeypatch, fake_sleep) -> None:
    monkeypatch.setattr(batching, "chunked", lambda items, size: [items[:size]])

    async def op(item: int) -> int:
        return item

    with pytest.raises(BatchIntegrityError, match="Processed 10 of 25"):
        await run_batches(list(range(25)), operation=op, batch_size=10, sleep=fake_sleep)


def test_ledger_merge_and_failure_sample_limit() -> None:
    first = FetchLedger(failures_limit=3)
    second = FetchLedger()
    for i in range(2):
        first.record_failure(i, ValueError("x"))
    for i in range(2, 5):
        second.record_failure(i, ValueError("x"))
    second.record(9, ItemOutcome.fetched(value="fixture"))

    first.merge(second)

    assert first.errored == 5
    assert first.fetched == 1
    assert first.processed == 6
    assert first.failed_ids_sample == [0, 1, 2]
    assert first.failure_reasons == {"ValueError: x": 5}
    assert first.values == ["fixture"]
    assert first.summary()["processed"] == 6


def test_format_failure_reason_truncates() -> None:
    reason = format_failure_reason(RuntimeError("x" * 500), max_len=50)
    assert len(reason) == 50
    assert reason.startswith("RuntimeError: ")
    assert format_failure_reason(KeyError()) == "KeyError: KeyError"
