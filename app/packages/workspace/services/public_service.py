"""公开读取：按可见性规则返回单个节点或整个工作区。

成员访问私有内容时不直接返回数据，而是给出应用内跳转地址；
公开内容对任何人可见，文件内容通过特权存储实例签发读取链接。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.exceptions import NotFoundError, PersistenceError, ValidationError
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_response
from app.packages.workspace.core.timezone import format_datetime
from app.packages.workspace.crud.file_contents import file_content_crud
from app.packages.workspace.crud.nodes import NodeRecord, node_crud
from app.packages.workspace.crud.projects import project_crud
from app.packages.workspace.models.node import Node
from app.packages.workspace.services.access_gate import AccessDecision, AccessGate
from app.packages.workspace.services.content_resolver import ContentResolver
from app.packages.workspace.services.object_store import ObjectStore
from app.packages.workspace.services.tree_walker import breadcrumb_path


def _node_summary(node: NodeRecord) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "type": node.type,
        "isPublic": node.is_public,
        "publicAccessRole": node.public_access_role,
        "createdAt": format_datetime(node.created_at),
    }


def _listing_item(node: Node) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "type": node.type,
        "parentId": node.parent_id,
        "createdAt": format_datetime(node.created_at),
    }


class PublicService:
    def _gate(self, db: Session) -> AccessGate:
        return AccessGate(
            lambda project_id, user_id: project_crud.is_member(db, project_id=project_id, user_id=user_id),
            app_path=get_settings().app_redirect_path,
        )

    @staticmethod
    def _redirect(decision: AccessDecision) -> Dict[str, Any]:
        return create_response(redirectTo=decision.redirect_to, isAuthenticated=decision.is_authenticated)

    def get_public_node(
        self,
        db: Session,
        *,
        node_id: Optional[str],
        user_id: Optional[str],
        store_factory: Callable[[], ObjectStore],
    ) -> Dict[str, Any]:
        """``store_factory`` 只在需要为文件签发读取链接时调用，可见性判定不依赖对象存储配置。"""
        node_id = (node_id or "").strip()
        if not node_id:
            raise ValidationError("缺少节点 ID")

        node = node_crud.get_record(db, node_id)
        if node is None:
            raise NotFoundError("节点不存在")

        decision = self._gate(db).evaluate_node(
            is_public=node.is_public, project_id=node.project_id, node_id=node.id, user_id=user_id
        )
        if not decision.serve:
            return self._redirect(decision)

        content: Optional[str] = None
        signed_url: Optional[str] = None
        if node.is_file:
            text = file_content_crud.get_text(db, node.id)
            resolver = ContentResolver(store_factory(), expires_in=get_settings().signed_url_expires_seconds)
            resolved = resolver.resolve(node, text)
            content, signed_url = resolved.content, resolved.signed_url

        segments = breadcrumb_path(node.id, node.name, node.parent_id, lambda nid: node_crud.get_parent_ref(db, nid))
        logger.debug("Served public node %s", node.id, extra={"node_id": node.id, "project_id": node.project_id})
        return create_response(
            node=_node_summary(node),
            path="/".join(segments),
            content=content,
            signedUrl=signed_url,
            isAuthenticated=decision.is_authenticated,
        )

    def get_public_workspace(
        self, db: Session, *, workspace_id: Optional[str], user_id: Optional[str]
    ) -> Dict[str, Any]:
        workspace_id = (workspace_id or "").strip()
        if not workspace_id:
            raise ValidationError("缺少工作区 ID")

        workspace = project_crud.get(db, workspace_id)
        if workspace is None:
            raise NotFoundError("工作区不存在")

        decision = self._gate(db).evaluate_workspace(
            is_public=bool(workspace.is_public), workspace_id=workspace.id, user_id=user_id
        )
        if not decision.serve:
            return self._redirect(decision)

        try:
            nodes = node_crud.list_by_project(db, workspace.id)
        except SQLAlchemyError as exc:
            logger.error("Failed to list nodes for workspace %s: %s", workspace.id, exc, extra={"project_id": workspace.id})
            raise PersistenceError("获取文件列表失败") from exc

        return create_response(
            workspace={
                "id": workspace.id,
                "name": workspace.name,
                "isPublic": bool(workspace.is_public),
                "createdAt": format_datetime(workspace.created_at),
            },
            nodes=[_listing_item(node) for node in nodes],
            isAuthenticated=decision.is_authenticated,
        )


public_service = PublicService()
