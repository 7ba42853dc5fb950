"""成员权限校验：写入与下载接口要求调用方是节点所属项目的成员。"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.workspace.core.exceptions import AccessDenied, AuthenticationRequired
from app.packages.workspace.crud.projects import project_crud


def ensure_project_member(db: Session, *, project_id: str, user_id: Optional[str]) -> str:
    if user_id is None:
        raise AuthenticationRequired("缺少认证信息")
    if not project_crud.is_member(db, project_id=project_id, user_id=user_id):
        raise AccessDenied("没有该工作区的访问权限")
    return user_id
