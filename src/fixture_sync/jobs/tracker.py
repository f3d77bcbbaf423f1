from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from fixture_sync.core.logging import get_logger
from fixture_sync.db.engine import session_scope
from fixture_sync.db.enums import JobStatusEnum
from fixture_sync.db.models.jobs.job_execution import JobExecution
from fixture_sync.db.repos.jobs.job_execution_repo import JobExecutionRepository
from fixture_sync.ingestion.batching import format_failure_reason
from fixture_sync.ingestion.dates import utc_now

logger = get_logger(__name__)


class ExecutionHandle(Protocol):
    def success(self, details: Mapping[str, Any] | None = None) -> None: ...

    def fail(self, error: BaseException, details: Mapping[str, Any] | None = None) -> None: ...


class ExecutionTracker(Protocol):
    def start(self, job_name: str) -> ExecutionHandle: ...


class _DbExecutionHandle:
    def __init__(
        self,
        tracker: DbExecutionTracker,
        *,
        execution_id: int,
        job_name: str,
        started: float,
    ) -> None:
        self._tracker = tracker
        self.execution_id = execution_id
        self.job_name = job_name
        self._started = started

    def _duration_ms(self) -> int:
        return int((self._tracker.monotonic() - self._started) * 1000)

    def success(self, details: Mapping[str, Any] | None = None) -> None:
        duration_ms = self._duration_ms()
        self._tracker.finish(
            self.execution_id,
            status=JobStatusEnum.SUCCESS,
            duration_ms=duration_ms,
            details=details,
        )
        logger.info("[{}] completed in {:.2f}s", self.job_name, duration_ms / 1000)

    def fail(self, error: BaseException, details: Mapping[str, Any] | None = None) -> None:
        duration_ms = self._duration_ms()
        self._tracker.finish(
            self.execution_id,
            status=JobStatusEnum.FAILED,
            duration_ms=duration_ms,
            error=format_failure_reason(error, max_len=2000),
            details=details,
        )
        logger.error("[{}] failed after {:.2f}s: {}", self.job_name, duration_ms / 1000, error)


class DbExecutionTracker:
    """Records one `JobExecution` row per job run, each write in its own transaction."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        now: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._now = now
        self.monotonic = monotonic

    def start(self, job_name: str) -> _DbExecutionHandle:
        with session_scope(self._session_factory) as session:
            execution = JobExecutionRepository(session).add(
                JobExecution(
                    job_name=job_name, started_at=self._now(), status=JobStatusEnum.STARTED
                )
            )
            execution_id = execution.id
        return _DbExecutionHandle(
            self, execution_id=execution_id, job_name=job_name, started=self.monotonic()
        )

    def finish(
        self,
        execution_id: int,
        *,
        status: JobStatusEnum,
        duration_ms: int,
        error: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        with session_scope(self._session_factory) as session:
            repo = JobExecutionRepository(session)
            execution = repo.get(execution_id)
            if execution is None:
                raise LookupError(f"job execution {execution_id} no longer exists")
            repo.patch(
                execution,
                {
                    "status": status,
                    "duration_ms": duration_ms,
                    "error": error,
                    "details_json": dict(details) if details else None,
                },
            )

    # -----------------------------
    # Queries
    # -----------------------------

    def history(self, job_name: str | None = None, *, limit: int = 10) -> list[JobExecution]:
        with session_scope(self._session_factory) as session:
            return JobExecutionRepository(session).history(job_name=job_name, limit=limit)

    def last_success(self, job_name: str) -> JobExecution | None:
        with session_scope(self._session_factory) as session:
            rows = JobExecutionRepository(session).history(
                job_name=job_name, status=JobStatusEnum.SUCCESS, limit=1
            )
        return rows[0] if rows else None

    def cleanup(self, older_than_days: int = 30) -> int:
        cutoff = self._now() - timedelta(days=older_than_days)
        with session_scope(self._session_factory) as session:
            deleted = JobExecutionRepository(session).delete_started_before(cutoff)
        logger.info("Deleted {} job executions started before {}", deleted, cutoff.isoformat())
        return deleted
