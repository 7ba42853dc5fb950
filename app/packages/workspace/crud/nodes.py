"""Node CRUD。

读取时统一转换为 ``NodeRecord``：public_access_role 的默认值只在这里补齐一次，
上层服务不再关心行是否来自旧的数据结构版本。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.constants import NODE_SCHEMA_VERSION_CURRENT
from app.packages.workspace.core.enums import NodeTypeEnum, PublicAccessRoleEnum
from app.packages.workspace.core.logger import logger
from app.packages.workspace.crud.base import CRUDBase
from app.packages.workspace.models.node import Node

_ACCESS_ROLES = {role.value for role in PublicAccessRoleEnum}


@dataclass(frozen=True)
class NodeRecord:
    id: str
    project_id: str
    parent_id: Optional[str]
    type: str
    name: str
    is_public: bool
    public_access_role: str
    created_at: Optional[datetime]
    schema_version: int

    @property
    def is_file(self) -> bool:
        return self.type == NodeTypeEnum.FILE.value


def resolve_public_access_role(node: Node) -> str:
    """旧版本行（或列值为空）按配置的默认角色处理。"""
    role = node.public_access_role if node.schema_version >= NODE_SCHEMA_VERSION_CURRENT else None
    if role not in _ACCESS_ROLES:
        role = None
    return role or get_settings().default_public_access_role


def to_record(node: Node) -> NodeRecord:
    return NodeRecord(
        id=node.id,
        project_id=node.project_id,
        parent_id=node.parent_id,
        type=node.type,
        name=node.name,
        is_public=bool(node.is_public),
        public_access_role=resolve_public_access_role(node),
        created_at=node.created_at,
        schema_version=node.schema_version,
    )


class CRUDNode(CRUDBase[Node]):
    def get_record(self, db: Session, node_id: str) -> Optional[NodeRecord]:
        node = self.get(db, node_id)
        return to_record(node) if node is not None else None

    def get_parent_ref(self, db: Session, node_id: str) -> Optional[Tuple[str, Optional[str]]]:
        """返回 ``(name, parent_id)``，只查询面包屑需要的两列。"""
        row = db.query(Node.name, Node.parent_id).filter(Node.id == node_id).first()
        if row is None:
            return None
        return row[0], row[1]

    def find_file(self, db: Session, *, project_id: str, parent_id: Optional[str], name: str) -> Optional[Node]:
        query = (
            self.query(db)
            .filter(Node.project_id == project_id)
            .filter(Node.type == NodeTypeEnum.FILE.value)
            .filter(Node.name == name)
        )
        # 根节点显式比较 IS NULL，不能用默认值代替
        if parent_id is None:
            query = query.filter(Node.parent_id.is_(None))
        else:
            query = query.filter(Node.parent_id == parent_id)
        return query.first()

    def find_or_create_file(
        self, db: Session, *, project_id: str, parent_id: Optional[str], name: str
    ) -> Tuple[Node, bool]:
        """原子地查找或创建文件节点，返回 ``(node, created)``。

        先尝试插入；唯一约束冲突说明同名节点已存在（可能由并发请求刚刚创建），
        此时回滚并复用已有节点。
        """
        try:
            node = self.create(
                db,
                {
                    "project_id": project_id,
                    "parent_id": parent_id,
                    "parent_key": parent_id or "",
                    "type": NodeTypeEnum.FILE.value,
                    "name": name,
                },
            )
            return node, True
        except IntegrityError:
            existing = self.find_file(db, project_id=project_id, parent_id=parent_id, name=name)
            if existing is None:
                raise
            logger.info("Reusing existing file node %s for %r", existing.id, name, extra={"node_id": existing.id})
            return existing, False

    def delete_by_id(self, db: Session, node_id: str) -> bool:
        node = self.get(db, node_id)
        if node is None:
            return False
        self.hard_delete(db, node)
        return True

    def list_by_project(self, db: Session, project_id: str) -> List[Node]:
        """项目下全部节点：文件夹在前，再按名称升序。"""
        folders_first = case((Node.type == NodeTypeEnum.FOLDER.value, 0), else_=1)
        return (
            self.query(db)
            .filter(Node.project_id == project_id)
            .order_by(folders_first, Node.name.asc())
            .all()
        )


node_crud = CRUDNode(Node)
