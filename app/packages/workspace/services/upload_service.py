"""上传流程协调：节点行与对象存储两侧的写入按顺序执行，失败时做补偿回滚。

两侧没有分布式事务，只保证“可发现、可修复”的不一致：
- 签发上传链接失败且节点是本次新建的 → 删除节点；复用的已有节点保持不动；
- 确认上传时对象不存在 → 删除引用它的节点；
- 写入内容引用失败 → 删除刚确认的对象，避免留下无人引用的孤儿对象。

补偿动作尽力而为：补偿自身失败只记录日志，调用方拿到的始终是原始错误。
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.enums import NodeTypeEnum
from app.packages.workspace.core.exceptions import (
    InconsistentState,
    MissingUploadError,
    NotFoundError,
    PersistenceError,
    UpstreamStorageError,
    ValidationError,
)
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_response
from app.packages.workspace.crud.file_contents import file_content_crud
from app.packages.workspace.crud.gc_jobs import gc_job_crud
from app.packages.workspace.crud.nodes import node_crud
from app.packages.workspace.models.node import Node
from app.packages.workspace.services.object_store import ObjectStore
from app.packages.workspace.services.permissions import ensure_project_member
from app.packages.workspace.services.storage_paths import (
    canonical_path,
    node_prefix,
    split_key,
    to_storage_ref,
    upload_staging_path,
)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class UploadService:
    # ----------------------------
    # 签发上传链接
    # ----------------------------
    def issue_upload_slot(
        self,
        db: Session,
        store: ObjectStore,
        *,
        user_id: Optional[str],
        project_id: Optional[str],
        file_name: Optional[str],
        parent_id: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        project_id = _clean(project_id)
        if not project_id or not _clean(file_name):
            raise ValidationError("projectId 和 fileName 为必填项")
        parent_id = _clean(parent_id)
        ensure_project_member(db, project_id=project_id, user_id=user_id)
        self._check_parent(db, project_id=project_id, parent_id=parent_id)

        node, created = self._find_or_create(db, project_id=project_id, parent_id=parent_id, name=file_name)
        storage_key = canonical_path(project_id, node.id)
        try:
            signed = store.create_signed_upload_url(
                storage_key,
                expires_in=get_settings().upload_url_expires_seconds,
                content_type=content_type,
            )
        except UpstreamStorageError as exc:
            if created:
                self._discard_node(db, node.id, reason="upload url issuance failed")
            raise UpstreamStorageError(f"创建上传链接失败: {exc}") from exc

        logger.info(
            "Issued upload slot for node %s (created=%s)",
            node.id,
            created,
            extra={"node_id": node.id, "project_id": project_id, "storage_key": storage_key},
        )
        return create_response(
            success=True,
            nodeId=node.id,
            storagePath=storage_key,
            uploadUrl=signed.url,
            token=signed.token,
        )

    # ----------------------------
    # 确认上传
    # ----------------------------
    def confirm_upload(
        self,
        db: Session,
        store: ObjectStore,
        *,
        user_id: Optional[str],
        node_id: Optional[str],
        storage_key: Optional[str],
    ) -> Dict[str, Any]:
        node_id = _clean(node_id)
        storage_key = _clean(storage_key)
        if not node_id or not storage_key:
            raise ValidationError("nodeId 和 storagePath 为必填项")

        node = node_crud.get_record(db, node_id)
        if node is None:
            raise NotFoundError("节点不存在")
        ensure_project_member(db, project_id=node.project_id, user_id=user_id)
        if not node.is_file:
            raise ValidationError("只能为文件节点确认上传")
        if not storage_key.startswith(node_prefix(node.project_id, node.id) + "/") or ".." in storage_key.split("/"):
            raise ValidationError("storagePath 不属于该节点")

        try:
            self._verify_landed(store, storage_key)
        except InconsistentState as exc:
            self._discard_node(db, node_id, reason=str(exc))
            raise MissingUploadError("上传未确认：存储中找不到该文件") from exc

        try:
            file_content_crud.upsert_text(db, node_id=node_id, text=to_storage_ref(storage_key))
        except SQLAlchemyError as exc:
            self._discard_object(store, storage_key, reason="content reference write failed")
            raise PersistenceError(f"保存内容引用失败: {exc}") from exc

        logger.info("Confirmed upload for node %s", node_id, extra={"node_id": node_id, "storage_key": storage_key})
        return create_response(success=True, nodeId=node_id)

    # ----------------------------
    # 服务端直传（暂存路径）
    # ----------------------------
    def upload_direct(
        self,
        db: Session,
        store: ObjectStore,
        *,
        user_id: Optional[str],
        project_id: Optional[str],
        file_name: Optional[str],
        data: Optional[bytes],
        parent_id: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        project_id = _clean(project_id)
        if data is None or not project_id or not _clean(file_name):
            raise ValidationError(
                f"缺少必填字段 file: {data is not None}, projectId: {bool(project_id)}, fileName: {bool(_clean(file_name))}"
            )
        parent_id = _clean(parent_id)
        ensure_project_member(db, project_id=project_id, user_id=user_id)
        self._check_parent(db, project_id=project_id, parent_id=parent_id)

        node, created = self._find_or_create(db, project_id=project_id, parent_id=parent_id, name=file_name)
        storage_key = upload_staging_path(project_id, node.id, uuid.uuid4().hex)

        try:
            store.upload(storage_key, data, content_type=content_type or "application/octet-stream")
        except UpstreamStorageError as exc:
            if created:
                self._discard_node(db, node.id, reason="object upload failed")
            raise UpstreamStorageError(f"上传文件失败: {exc}") from exc

        try:
            file_content_crud.upsert_text(db, node_id=node.id, text=to_storage_ref(storage_key))
        except SQLAlchemyError as exc:
            self._discard_object(store, storage_key, reason="content reference write failed")
            if created:
                self._discard_node(db, node.id, reason="content reference write failed")
            raise PersistenceError(f"保存内容引用失败: {exc}") from exc

        # 旧的暂存对象交给回收任务清理，入队失败不影响本次上传
        try:
            gc_job_crud.enqueue(db, node_id=node.id, project_id=project_id)
        except SQLAlchemyError:
            logger.warning("Failed to enqueue staging GC for node %s", node.id, exc_info=True)

        logger.info(
            "Stored direct upload for node %s",
            node.id,
            extra={"node_id": node.id, "project_id": project_id, "storage_key": storage_key},
        )
        return create_response(success=True, nodeId=node.id, storagePath=storage_key)

    # ----------------------------
    # 工具方法
    # ----------------------------
    def _check_parent(self, db: Session, *, project_id: str, parent_id: Optional[str]) -> None:
        if parent_id is None:
            return
        parent = node_crud.get(db, parent_id)
        if parent is None or parent.project_id != project_id:
            raise ValidationError("父节点不存在或不属于该工作区")
        if parent.type != NodeTypeEnum.FOLDER.value:
            raise ValidationError("父节点必须是文件夹")

    def _find_or_create(
        self, db: Session, *, project_id: str, parent_id: Optional[str], name: str
    ) -> tuple[Node, bool]:
        try:
            return node_crud.find_or_create_file(db, project_id=project_id, parent_id=parent_id, name=name)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"创建节点失败: {exc}") from exc

    def _verify_landed(self, store: ObjectStore, storage_key: str) -> None:
        """通过列举父目录确认对象已落地；否则节点引用了不存在的对象。"""
        directory, name = split_key(storage_key)
        try:
            entries = store.list(directory)
        except UpstreamStorageError as exc:
            # 无法列举时按“未落地”处理
            raise InconsistentState(f"listing {directory} failed: {exc}") from exc
        if not any(entry.name == name and not entry.is_dir for entry in entries):
            raise InconsistentState(f"object {storage_key} not found")

    def _discard_node(self, db: Session, node_id: str, *, reason: str) -> None:
        logger.warning("Rolling back node %s: %s", node_id, reason, extra={"node_id": node_id})
        try:
            node_crud.delete_by_id(db, node_id)
        except Exception:
            logger.exception("Compensation failed, node %s left behind", node_id, extra={"node_id": node_id})

    def _discard_object(self, store: ObjectStore, storage_key: str, *, reason: str) -> None:
        logger.warning("Rolling back object %s: %s", storage_key, reason, extra={"storage_key": storage_key})
        try:
            store.remove([storage_key])
        except Exception:
            logger.exception("Compensation failed, object %s left behind", storage_key, extra={"storage_key": storage_key})


upload_service = UploadService()
