"""文件树节点模型（文件与文件夹合并）。

存储规则：
- parent_id：自引用外键，根节点为 NULL；父节点必须属于同一项目；
- parent_key：parent_id 的非空镜像（根节点为空串），只用于唯一约束，
  因为 SQL 中 NULL 互不相等，直接对 parent_id 建唯一约束无法约束根节点；
- (project_id, parent_key, name, type) 唯一，创建节点时以插入冲突作为“复用已有节点”的判定；
- schema_version < 2 的行早于 public_access_role 列，读取时在数据访问层统一补默认值。
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.workspace.core.constants import NODE_SCHEMA_VERSION_CURRENT, NODE_SCHEMA_VERSION_LEGACY
from app.packages.workspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Node(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "nodes"

    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("nodes.id", ondelete="CASCADE"), index=True, nullable=True
    )
    parent_key: Mapped[str] = mapped_column(String(36), nullable=False, default="", server_default="")
    # "file" | "folder"
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, server_default=expression.false(), default=False, nullable=False)
    # "viewer" | "editor" | NULL
    public_access_role: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    schema_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=NODE_SCHEMA_VERSION_CURRENT, server_default=str(NODE_SCHEMA_VERSION_LEGACY)
    )

    __table_args__ = (
        UniqueConstraint("project_id", "parent_key", "name", "type", name="uq_nodes_project_parent_name_type"),
    )
