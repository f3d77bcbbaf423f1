from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from fixture_sync.db.enums import JobStatusEnum
from fixture_sync.db.models.jobs.job_execution import JobExecution
from fixture_sync.db.repos.base import BaseRepository


class JobExecutionRepository(BaseRepository[JobExecution]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=JobExecution)

    def history(
        self,
        *,
        job_name: str | None = None,
        status: JobStatusEnum | None = None,
        limit: int = 10,
    ) -> list[JobExecution]:
        stmt = select(JobExecution).order_by(JobExecution.started_at.desc()).limit(limit)
        if job_name is not None:
            stmt = stmt.where(JobExecution.job_name == job_name)
        if status is not None:
            stmt = stmt.where(JobExecution.status == status)
        return list(self.session.execute(stmt).scalars().all())

    def delete_started_before(self, cutoff: datetime) -> int:
        result = self.session.execute(delete(JobExecution).where(JobExecution.started_at < cutoff))
        self.session.flush()
        return int(result.rowcount or 0)
