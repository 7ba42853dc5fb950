"""存储路由：上传链接签发与确认、服务端直传、下载链接、暂存回收，以及本地存储的签名直链。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.packages.workspace.api.v1.schemas.storage import ConfirmUploadBody, CreateUploadUrlBody, DownloadBody
from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.dependencies import (
    get_bearer_token,
    get_db,
    get_elevated_object_store,
    get_object_store,
    get_optional_user_id,
)
from app.packages.workspace.core.enums import TokenPurposeEnum
from app.packages.workspace.core.exceptions import (
    AuthenticationRequired,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_response
from app.packages.workspace.core.security import decode_and_verify_token
from app.packages.workspace.services.download_service import download_service
from app.packages.workspace.services.gc_service import gc_service
from app.packages.workspace.services.object_store import LocalObjectStore, ObjectStore, guess_mime
from app.packages.workspace.services.upload_service import upload_service

router = APIRouter(prefix="/storage", tags=["storage"])


@router.post("/create-upload-url")
def create_upload_url(
    body: CreateUploadUrlBody,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    return upload_service.issue_upload_slot(
        db,
        store,
        user_id=user_id,
        project_id=body.projectId,
        parent_id=body.parentId,
        file_name=body.fileName,
        content_type=body.contentType,
    )


@router.post("/confirm-upload")
def confirm_upload(
    body: ConfirmUploadBody,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    return upload_service.confirm_upload(db, store, user_id=user_id, node_id=body.nodeId, storage_key=body.storagePath)


@router.post("/upload")
def upload_file(
    file: Optional[UploadFile] = File(None),
    project_id: Optional[str] = Form(None, alias="projectId"),
    parent_id: Optional[str] = Form(None, alias="parentId"),
    file_name: Optional[str] = Form(None, alias="fileName"),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """服务端直传：文件写入暂存路径后再更新内容引用。"""
    data = file.file.read() if file is not None else None
    name = file_name or (file.filename if file is not None else None)
    return upload_service.upload_direct(
        db,
        store,
        user_id=user_id,
        project_id=project_id,
        parent_id=parent_id,
        file_name=name,
        data=data,
        content_type=file.content_type if file is not None else None,
    )


@router.post("/download")
def create_download_url(
    body: DownloadBody,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    return download_service.create_download_url(db, store, user_id=user_id, node_id=body.nodeId)


@router.get("/download")
def redirect_download(
    node_id: Optional[str] = Query(None, alias="nodeId"),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    resp = download_service.create_download_url(db, store, user_id=user_id, node_id=node_id)
    return RedirectResponse(resp["url"], status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.post("/gc-worker")
def run_gc_worker(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
):
    gc_service.authorize(token)
    # 回收任务在鉴权通过后才构建特权存储实例
    store = get_elevated_object_store()
    return gc_service.run_batch(db, store)


# ----------------------------
# 本地存储签名直链
# ----------------------------


def _local_store_from_token(t: str, purpose: TokenPurposeEnum) -> tuple[LocalObjectStore, str]:
    payload = decode_and_verify_token(t, verify_exp=True)
    if not payload or payload.get("purpose") != purpose.value:
        raise AuthenticationRequired("签名无效或已过期")
    key = payload.get("key") if isinstance(payload.get("key"), str) else None
    if not key:
        raise ValidationError("签名载荷不完整")
    store = get_object_store()
    if not isinstance(store, LocalObjectStore):
        raise ConfigurationError("当前存储类型不支持签名直链")
    if payload.get("bucket") != store.bucket:
        raise AuthenticationRequired("签名无效或已过期")
    return store, key


@router.get("/object")
def read_signed_object(t: str = Query(..., alias="t", description="短期签名 token")):
    store, key = _local_store_from_token(t, TokenPurposeEnum.OBJECT_READ)
    target = store.resolve(key)
    if not target.is_file():
        raise NotFoundError("对象不存在")
    return FileResponse(target, media_type=guess_mime(key), filename=target.name)


@router.put("/object")
async def write_signed_object(request: Request, t: str = Query(..., alias="t", description="短期签名 token")):
    store, key = _local_store_from_token(t, TokenPurposeEnum.OBJECT_UPLOAD)
    data = await request.body()
    store.upload(key, data, content_type=request.headers.get("content-type"))
    logger.info("Stored object via signed url", extra={"storage_key": key})
    return create_response(success=True, key=key)
