"""存储接口请求体。字段全部可选，缺失时由业务层返回 400 ``{"error": ...}``。"""

from typing import Optional

from pydantic import BaseModel


class CreateUploadUrlBody(BaseModel):
    projectId: Optional[str] = None
    parentId: Optional[str] = None
    fileName: Optional[str] = None
    contentType: Optional[str] = None


class ConfirmUploadBody(BaseModel):
    nodeId: Optional[str] = None
    storagePath: Optional[str] = None


class DownloadBody(BaseModel):
    nodeId: Optional[str] = None
