"""成员下载：为文件节点解析出实际的存储对象并返回限时下载链接。"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.exceptions import NotFoundError, ValidationError
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_response
from app.packages.workspace.crud.file_contents import file_content_crud
from app.packages.workspace.crud.nodes import node_crud
from app.packages.workspace.services.content_resolver import ContentResolver
from app.packages.workspace.services.object_store import ObjectStore
from app.packages.workspace.services.permissions import ensure_project_member


class DownloadService:
    def create_download_url(
        self, db: Session, store: ObjectStore, *, user_id: Optional[str], node_id: Optional[str]
    ) -> Dict[str, Any]:
        node_id = (node_id or "").strip()
        if not node_id:
            raise ValidationError("nodeId 为必填项")

        node = node_crud.get_record(db, node_id)
        if node is None:
            raise NotFoundError("节点不存在")
        ensure_project_member(db, project_id=node.project_id, user_id=user_id)
        if not node.is_file:
            raise ValidationError("只能下载文件节点")

        text = file_content_crud.get_text(db, node_id)
        resolver = ContentResolver(store, expires_in=get_settings().download_url_expires_seconds)
        hit = resolver.resolve_download_key(node, text)
        if hit is None:
            raise NotFoundError("无法解析存储路径")

        key, url = hit
        logger.info("Issued download url for node %s", node_id, extra={"node_id": node_id, "storage_key": key})
        return create_response(success=True, url=url)


download_service = DownloadService()
