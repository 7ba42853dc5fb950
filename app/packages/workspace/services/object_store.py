"""对象存储抽象与实现：统一封装本地目录与 S3 的列举、签名链接、写入与删除。

对上层只暴露 list/签名/put/remove 这几类原语，存在性判断一律通过列举父目录完成。
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import parse_qs, quote, urlparse

from app.packages.workspace.core.config import Settings
from app.packages.workspace.core.enums import TokenPurposeEnum
from app.packages.workspace.core.exceptions import (
    ConfigurationError,
    UpstreamStorageError,
    ValidationError,
)
from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.security import create_temporary_token
from app.packages.workspace.services.storage_paths import split_key


def guess_mime(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


# ------------------------------------------
# 公共数据结构
# ------------------------------------------

@dataclass
class ObjectEntry:
    name: str
    is_dir: bool
    size: int
    last_modified: Optional[datetime]


@dataclass
class SignedUpload:
    url: str
    token: str


class ObjectStore:
    """对象存储接口。``elevated`` 标识该实例是否以特权凭证访问存储。"""

    bucket: str
    elevated: bool = False

    def list(self, prefix: str) -> List[ObjectEntry]:
        """列出 ``prefix`` 下一层的条目（对象与子目录），目录不存在时返回空列表。"""
        raise NotImplementedError

    def create_signed_url(self, key: str, *, expires_in: int) -> str:
        """为已存在的对象生成限时读取链接，对象不存在时抛出 ``UpstreamStorageError``。"""
        raise NotImplementedError

    def create_signed_upload_url(self, key: str, *, expires_in: int, content_type: Optional[str] = None) -> SignedUpload:
        raise NotImplementedError

    def upload(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def remove(self, keys: List[str]) -> None:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        directory, name = split_key(key)
        return any(entry.name == name and not entry.is_dir for entry in self.list(directory))


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalObjectStore(ObjectStore):
    """对象落在 ``<root>/<bucket>/<key>``；签名链接由本服务的 ``/storage/object`` 接口兑现。"""

    def __init__(self, root: str | Path, *, bucket: str, public_base_url: str, api_prefix: str, elevated: bool = False):
        self.bucket = bucket
        self.elevated = elevated
        self.root = (Path(root) / bucket).resolve()
        self.object_url = f"{public_base_url.rstrip('/')}{api_prefix.rstrip('/')}/storage/object"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise ConfigurationError(f"无法创建本地存储目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def resolve(self, key: str) -> Path:
        rel = key.strip().lstrip("/")
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ValidationError("非法路径: 越权访问") from exc
        return candidate

    def list(self, prefix: str) -> List[ObjectEntry]:
        base = self.resolve(prefix)
        if not base.is_dir():
            return []
        entries: List[ObjectEntry] = []
        try:
            for item in sorted(base.iterdir(), key=lambda p: p.name):
                if item.is_dir():
                    entries.append(ObjectEntry(name=item.name, is_dir=True, size=0, last_modified=None))
                    continue
                stat = item.stat()
                entries.append(
                    ObjectEntry(
                        name=item.name,
                        is_dir=False,
                        size=int(stat.st_size),
                        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    )
                )
        except OSError as exc:
            raise UpstreamStorageError(f"无法读取存储目录: {exc}") from exc
        return entries

    def _signed_url(self, purpose: TokenPurposeEnum, key: str, expires_in: int) -> str:
        token = create_temporary_token(
            {"purpose": purpose.value, "bucket": self.bucket, "key": key},
            expires_seconds=expires_in,
        )
        return f"{self.object_url}?t={quote(token)}"

    def create_signed_url(self, key: str, *, expires_in: int) -> str:
        target = self.resolve(key)
        if not target.is_file():
            raise UpstreamStorageError(f"对象不存在: {key}")
        return self._signed_url(TokenPurposeEnum.OBJECT_READ, key, expires_in)

    def create_signed_upload_url(self, key: str, *, expires_in: int, content_type: Optional[str] = None) -> SignedUpload:
        self.resolve(key)
        token = create_temporary_token(
            {"purpose": TokenPurposeEnum.OBJECT_UPLOAD.value, "bucket": self.bucket, "key": key},
            expires_seconds=expires_in,
        )
        return SignedUpload(url=f"{self.object_url}?t={quote(token)}", token=token)

    def upload(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        target = self.resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise UpstreamStorageError(f"写入对象失败: {exc}") from exc

    def remove(self, keys: List[str]) -> None:
        for key in keys:
            target = self.resolve(key)
            # 允许幂等：不存在则忽略
            if target.is_file():
                try:
                    target.unlink()
                except OSError as exc:
                    raise UpstreamStorageError(f"删除对象失败: {exc}") from exc


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3ObjectStore(ObjectStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        elevated: bool = False,
    ):
        try:
            import boto3  # type: ignore
        except ImportError as exc:
            raise ConfigurationError("S3 功能不可用：缺少依赖 boto3，请在后端安装后重试") from exc

        self.bucket = bucket
        self.elevated = elevated
        self._client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def list(self, prefix: str) -> List[ObjectEntry]:
        prefix = prefix.strip("/")
        if prefix:
            prefix += "/"
        entries: List[ObjectEntry] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for common in page.get("CommonPrefixes", []):
                    name = common.get("Prefix", "")[len(prefix):].rstrip("/")
                    if name:
                        entries.append(ObjectEntry(name=name, is_dir=True, size=0, last_modified=None))
                for content in page.get("Contents", []):
                    name = (content.get("Key") or "")[len(prefix):]
                    if not name or "/" in name:
                        continue
                    entries.append(
                        ObjectEntry(
                            name=name,
                            is_dir=False,
                            size=int(content.get("Size") or 0),
                            last_modified=content.get("LastModified"),
                        )
                    )
        except Exception as exc:
            raise UpstreamStorageError(f"列举对象失败: {exc}") from exc
        entries.sort(key=lambda e: e.name)
        return entries

    def _object_exists(self, key: str) -> bool:
        resp = self._client.list_objects_v2(Bucket=self.bucket, Prefix=key, MaxKeys=1)
        contents = resp.get("Contents") or []
        return bool(contents) and contents[0].get("Key") == key

    def create_signed_url(self, key: str, *, expires_in: int) -> str:
        # 预签名本身不校验对象是否存在，这里先探测，保证候选路径逐个回退的语义
        try:
            if not self._object_exists(key):
                raise UpstreamStorageError(f"对象不存在: {key}")
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except UpstreamStorageError:
            raise
        except Exception as exc:
            raise UpstreamStorageError(f"预签名 URL 生成失败: {exc}") from exc

    def create_signed_upload_url(self, key: str, *, expires_in: int, content_type: Optional[str] = None) -> SignedUpload:
        params = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        try:
            url = self._client.generate_presigned_url("put_object", Params=params, ExpiresIn=expires_in)
        except Exception as exc:
            raise UpstreamStorageError(f"上传签名生成失败: {exc}") from exc
        query = parse_qs(urlparse(url).query)
        token = (query.get("X-Amz-Signature") or query.get("Signature") or [""])[0]
        return SignedUpload(url=url, token=token)

    def upload(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or guess_mime(key),
                CacheControl="no-cache",
            )
        except Exception as exc:
            raise UpstreamStorageError(f"写入对象失败: {exc}") from exc

    def remove(self, keys: List[str]) -> None:
        objects = [{"Key": key} for key in keys]
        # 批量删除（分批防止一次过多）
        for i in range(0, len(objects), 1000):
            batch = objects[i : i + 1000]
            try:
                resp = self._client.delete_objects(Bucket=self.bucket, Delete={"Objects": batch})
            except Exception as exc:
                raise UpstreamStorageError(f"删除对象失败: {exc}") from exc
            errors = resp.get("Errors") or []
            if errors:
                raise UpstreamStorageError(f"删除对象失败: {errors[0].get('Key')} {errors[0].get('Message')}")


def build_object_store(settings: Settings, *, elevated: bool = False) -> ObjectStore:
    """按配置构建对象存储；``elevated`` 由调用方显式声明，而非根据环境自动切换。"""
    storage_type = (settings.storage_type or "").upper()
    if storage_type == "LOCAL":
        return LocalObjectStore(
            settings.local_storage_directory,
            bucket=settings.storage_bucket,
            public_base_url=settings.public_base_url,
            api_prefix=settings.api_v1_str,
            elevated=elevated,
        )
    if storage_type == "S3":
        if elevated:
            if not (settings.s3_service_access_key_id and settings.s3_service_secret_access_key):
                raise ConfigurationError("缺少 S3 特权访问凭证配置")
            access_key_id = settings.s3_service_access_key_id
            secret_access_key = settings.s3_service_secret_access_key
        else:
            access_key_id = settings.s3_access_key_id
            secret_access_key = settings.s3_secret_access_key
        logger.debug("Building S3 object store for bucket %s (elevated=%s)", settings.storage_bucket, elevated)
        return S3ObjectStore(
            bucket=settings.storage_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            elevated=elevated,
        )
    raise ConfigurationError("不支持的存储类型")
