"""GcJob CRUD：入队、取出到期任务、条件加锁与状态流转。"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.packages.workspace.core.enums import GcJobStatusEnum
from app.packages.workspace.core.timezone import utcnow
from app.packages.workspace.crud.base import CRUDBase
from app.packages.workspace.models.gc_job import GcJob

# error 状态的任务在 run_after 到期后重新进入执行队列
_RUNNABLE = (GcJobStatusEnum.QUEUED.value, GcJobStatusEnum.ERROR.value)


class CRUDGcJob(CRUDBase[GcJob]):
    def enqueue(self, db: Session, *, node_id: str, project_id: str) -> GcJob:
        now = utcnow()
        return self.create(
            db,
            {
                "node_id": node_id,
                "project_id": project_id,
                "status": GcJobStatusEnum.QUEUED.value,
                "attempts": 0,
                "run_after": now,
                "updated_at": now,
            },
        )

    def list_due(self, db: Session, *, now: datetime, limit: int) -> List[GcJob]:
        return (
            self.query(db)
            .filter(GcJob.status.in_(_RUNNABLE))
            .filter(GcJob.run_after <= now)
            .order_by(GcJob.updated_at.asc())
            .limit(limit)
            .all()
        )

    def try_lock(self, db: Session, job: GcJob, *, now: datetime) -> bool:
        """仅当任务仍可执行时切换为 running，多个 worker 并发时只有一个成功。"""
        result = db.execute(
            update(GcJob)
            .where(GcJob.id == job.id)
            .where(GcJob.status.in_(_RUNNABLE))
            .values(status=GcJobStatusEnum.RUNNING.value, attempts=GcJob.attempts + 1, updated_at=now)
        )
        db.commit()
        if result.rowcount != 1:
            return False
        db.refresh(job)
        return True

    def mark_done(self, db: Session, job: GcJob, *, note: Optional[str] = None) -> None:
        job.status = GcJobStatusEnum.DONE.value
        job.last_error = note
        job.updated_at = utcnow()
        self.save(db, job)

    def mark_error(self, db: Session, job: GcJob, *, message: str, retry_delay_seconds: int) -> None:
        now = utcnow()
        job.status = GcJobStatusEnum.ERROR.value
        job.last_error = message
        job.updated_at = now
        job.run_after = now + timedelta(seconds=retry_delay_seconds)
        self.save(db, job)


gc_job_crud = CRUDGcJob(GcJob)
