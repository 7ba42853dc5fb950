"""公开读取路由：匿名或已登录用户按可见性规则访问节点与工作区。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.workspace.core.dependencies import get_db, get_elevated_object_store, get_optional_user_id
from app.packages.workspace.services.public_service import public_service

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/node")
def get_public_node(
    node_id: Optional[str] = Query(None, alias="nodeId"),
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    # 特权存储实例在确认要返回文件内容后才构建
    return public_service.get_public_node(
        db, node_id=node_id, user_id=user_id, store_factory=get_elevated_object_store
    )


@router.get("/workspace")
def get_public_workspace(
    workspace_id: Optional[str] = Query(None, alias="workspaceId"),
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    return public_service.get_public_workspace(db, workspace_id=workspace_id, user_id=user_id)
