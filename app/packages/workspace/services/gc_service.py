"""暂存上传回收：清理直传产生的过期 ``uploads/`` 对象。

每个任务对应一个节点。保留当前被引用的暂存对象以及时间最新的若干个，
其余分组删除；任何失败都把任务标记为 error，并在重试间隔后重新执行。
"""

from __future__ import annotations

import hmac
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.constants import REMOVE_BATCH_SIZE, UPLOADS_DIR_NAME
from app.packages.workspace.core.enums import GcJobStatusEnum
from app.packages.workspace.core.exceptions import AuthenticationRequired, ConfigurationError
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_response
from app.packages.workspace.core.timezone import utcnow
from app.packages.workspace.crud.file_contents import file_content_crud
from app.packages.workspace.crud.gc_jobs import gc_job_crud
from app.packages.workspace.models.gc_job import GcJob
from app.packages.workspace.services.object_store import ObjectEntry, ObjectStore
from app.packages.workspace.services.storage_paths import extract_storage_key, node_prefix


def _current_staging_name(text: str, uploads_prefix: str) -> Optional[str]:
    key = extract_storage_key(text)
    if key and key.startswith(uploads_prefix + "/"):
        return key[len(uploads_prefix) + 1 :]
    return None


def select_removals(entries: List[ObjectEntry], *, current: Optional[str], keep_count: int) -> Optional[List[str]]:
    """返回需要删除的对象名；无法判断哪些可删时返回 ``None``。

    没有任何时间戳且无法确定当前对象时一律保留。
    """
    files = [entry for entry in entries if not entry.is_dir]
    dated = sorted(
        (entry for entry in files if entry.last_modified is not None),
        key=lambda entry: entry.last_modified,
        reverse=True,
    )
    if current is None and not dated:
        return None

    keep: Set[str] = {entry.name for entry in dated[: max(keep_count, 0)]}
    if current is not None:
        keep.add(current)
    removals = []
    for entry in files:
        if entry.name in keep:
            continue
        # 无时间戳的条目只在已知当前对象时才视为过期
        if entry.last_modified is None and current is None:
            continue
        removals.append(entry.name)
    return removals


class GcService:
    def authorize(self, token: Optional[str]) -> None:
        expected = get_settings().gc_worker_token
        if not expected:
            raise ConfigurationError("未配置 GC_WORKER_TOKEN")
        if not token or not hmac.compare_digest(token, expected):
            raise AuthenticationRequired("回收任务令牌无效")

    def run_batch(self, db: Session, store: ObjectStore) -> Dict[str, Any]:
        settings = get_settings()
        jobs = gc_job_crud.list_due(db, now=utcnow(), limit=settings.gc_batch_size)
        results: List[Dict[str, Any]] = []
        for job in jobs:
            if not gc_job_crud.try_lock(db, job, now=utcnow()):
                logger.debug("GC job %s already taken", job.id, extra={"job_id": job.id})
                continue
            results.append(self._run_job(db, store, job, keep_count=settings.gc_keep_count))

        logger.info("GC worker processed %s job(s)", len(results))
        return create_response(success=True, processed=len(results), results=results)

    def _run_job(self, db: Session, store: ObjectStore, job: GcJob, *, keep_count: int) -> Dict[str, Any]:
        job_id = job.id
        try:
            uploads_prefix = f"{node_prefix(job.project_id, job.node_id)}/{UPLOADS_DIR_NAME}"
            current = _current_staging_name(file_content_crud.get_text(db, job.node_id), uploads_prefix)
            removals = select_removals(store.list(uploads_prefix), current=current, keep_count=keep_count)
            if removals is None:
                gc_job_crud.mark_done(db, job, note="no timestamps")
                return {"id": job_id, "status": GcJobStatusEnum.DONE.value, "message": "no timestamps"}

            keys = [f"{uploads_prefix}/{name}" for name in removals]
            for start in range(0, len(keys), REMOVE_BATCH_SIZE):
                store.remove(keys[start : start + REMOVE_BATCH_SIZE])
            gc_job_crud.mark_done(db, job)
            logger.info(
                "GC job %s removed %s staged object(s)",
                job_id,
                len(keys),
                extra={"job_id": job_id, "node_id": job.node_id},
            )
            return {"id": job_id, "status": GcJobStatusEnum.DONE.value}
        except Exception as exc:
            db.rollback()
            logger.warning("GC job %s failed: %s", job_id, exc, extra={"job_id": job_id})
            gc_job_crud.mark_error(
                db, job, message=str(exc), retry_delay_seconds=get_settings().gc_retry_delay_seconds
            )
            return {"id": job_id, "status": GcJobStatusEnum.ERROR.value, "message": str(exc)}


gc_service = GcService()
