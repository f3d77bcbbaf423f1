from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pytest

from fixture_sync.core.config import Settings
from fixture_sync.jobs.runner import JobRunner, JobTimeoutError, result_details


@dataclass(frozen=True)
class _Summary:
    created: int
    errors: int


class RecordingHandle:
    def __init__(self, log: list[tuple[str, Any]]) -> None:
        self.log = log

    def success(self, details: Mapping[str, Any] | None = None) -> None:
        self.log.append(("success", details))

    def fail(self, error: BaseException, details: Mapping[str, Any] | None = None) -> None:
        self.log.append(("fail", error))


class RecordingTracker:
    def __init__(self) -> None:
        self.log: list[tuple[str, Any]] = []

    def start(self, job_name: str) -> RecordingHandle:
        self.log.append(("start", job_name))
        return RecordingHandle(self.log)


class BrokenTracker:
    def start(self, job_name: str) -> RecordingHandle:
        raise RuntimeError("database is locked")


def _flaky(failures: int, result: Any = "ok"):
    calls = {"n": 0}

    async def body() -> Any:
        calls["n"] += 1
        if calls["n"] <= failures:
            raise ValueError(f"attempt {calls['n']} failed")
        return result

    return body, calls


async def test_runner_retries_then_succeeds(fake_sleep, sleeps) -> None:
    body, calls = _flaky(2, _Summary(created=3, errors=0))
    tracker = RecordingTracker()
    runner = JobRunner(
        "Fixture Update", body, tracker=tracker, retries=2, retry_delay_s=10, sleep=fake_sleep
    )

    result = await runner.run()

    assert result == _Summary(created=3, errors=0)
    assert calls["n"] == 3
    assert sleeps == [10, 10]
    assert tracker.log == [
        ("start", "Fixture Update"),
        ("success", {"created": 3, "errors": 0}),
    ]


async def test_runner_gives_up_after_retries(fake_sleep, sleeps) -> None:
    body, calls = _flaky(5)
    tracker = RecordingTracker()
    runner = JobRunner("League Sync", body, tracker=tracker, retries=2, sleep=fake_sleep)

    with pytest.raises(ValueError, match="attempt 3 failed"):
        await runner.run()

    assert calls["n"] == 3
    assert len(sleeps) == 2
    assert tracker.log[0] == ("start", "League Sync")
    assert tracker.log[1][0] == "fail"
    assert str(tracker.log[1][1]) == "attempt 3 failed"


async def test_runner_times_out_and_abandons_body() -> None:
    release = asyncio.Event()

    async def body() -> str:
        await release.wait()
        return "late"

    tracker = RecordingTracker()
    runner = JobRunner("Live Match Update", body, tracker=tracker, timeout_s=0.01, retries=0)

    with pytest.raises(JobTimeoutError) as exc_info:
        await runner.run()

    assert exc_info.value.job_name == "Live Match Update"
    assert isinstance(tracker.log[-1][1], JobTimeoutError)
    assert len(runner.abandoned) == 1

    release.set()
    for _ in range(5):
        await asyncio.sleep(0)
    assert runner.abandoned == set()


async def test_tracking_failures_never_fail_the_job(log_messages) -> None:
    body, _ = _flaky(0)
    runner = JobRunner("Execution Cleanup", body, tracker=BrokenTracker(), retries=0)

    assert await runner.run() == "ok"
    assert any("execution tracking failed" in m for m in log_messages)


async def test_success_reporting_failure_is_logged(log_messages) -> None:
    class ExplodingHandle(RecordingHandle):
        def success(self, details: Mapping[str, Any] | None = None) -> None:
            raise RuntimeError("disk full")

    class Tracker:
        def start(self, job_name: str) -> ExplodingHandle:
            return ExplodingHandle([])

    body, _ = _flaky(0)
    runner = JobRunner("League Sync", body, tracker=Tracker(), retries=0)

    assert await runner.run() == "ok"
    assert any("failed to record success: disk full" in m for m in log_messages)


async def test_runner_without_tracker() -> None:
    body, _ = _flaky(0, {"deleted": 4})
    assert await JobRunner("Execution Cleanup", body, retries=0).run() == {"deleted": 4}


def test_result_details() -> None:
    assert result_details(None) == {}
    assert result_details({"deleted": 2}) == {"deleted": 2}
    assert result_details(_Summary(created=1, errors=2)) == {"created": 1, "errors": 2}
    assert result_details(7) == {"result": "7"}


async def test_configured_retries_exclude_the_first_attempt() -> None:
    body, calls = _flaky(5)
    cfg = Settings(_env_file=None, job_retries=1, job_retry_delay_s=0.0)
    runner = JobRunner.from_settings("League Sync", body, cfg=cfg)

    with pytest.raises(ValueError, match="attempt 2 failed"):
        await runner.run()
    assert calls["n"] == 2
