"""暂存上传回收任务模型：直传成功后入队，由回收 worker 清理过期的暂存对象。"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.workspace.core.enums import GcJobStatusEnum
from app.packages.workspace.models.base import Base, UUIDPrimaryKeyMixin


class GcJob(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "gc_jobs"

    # 节点被删除后任务仍可执行（只会列出空目录），因此不建外键
    node_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    project_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default=GcJobStatusEnum.QUEUED.value)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    run_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
