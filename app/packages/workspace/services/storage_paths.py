"""对象存储 key 的推导规则（纯函数，无 I/O）。

- 规范路径：``{project}/{node}/blob``，与文件名无关，所有新上传使用；
- 旧版路径：``{project}/{node}/{slug}_{hash}{ext}``，由文件名推导，仅用于兼容历史数据；
- 暂存路径：``{project}/{node}/uploads/{upload_id}``，服务端直传时使用。

同一输入必然得到同一 key，重试天然幂等。
"""

from __future__ import annotations

import hashlib
import os
import re
import unicodedata
from typing import Optional, Tuple

from app.packages.workspace.core.constants import (
    CANONICAL_OBJECT_NAME,
    STORAGE_REF_PREFIX,
    UPLOADS_DIR_NAME,
)

_SAFE_EXT_RE = re.compile(r"^\.[a-z0-9]+$", re.IGNORECASE)
_COMBINING_MARKS_RE = re.compile(r"[\u0300-\u036f]")
_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]+")
_UNDERSCORE_RUN_RE = re.compile(r"_+")
_EMBEDDED_REF_RE = re.compile(r"storage:\s*(\S+)")

_HASH_LENGTH = 10


def canonical_path(project_id: str, node_id: str) -> str:
    return f"{project_id}/{node_id}/{CANONICAL_OBJECT_NAME}"


def upload_staging_path(project_id: str, node_id: str, upload_id: str) -> str:
    return f"{project_id}/{node_id}/{UPLOADS_DIR_NAME}/{upload_id}"


def node_prefix(project_id: str, node_id: str) -> str:
    """节点在对象存储中的目录前缀（不含结尾斜杠）。"""
    return f"{project_id}/{node_id}"


def _safe_extension(file_name: str) -> str:
    ext = os.path.splitext(file_name)[1]
    return ext.lower() if _SAFE_EXT_RE.fullmatch(ext) else ""


def _slugify(base: str) -> str:
    normalized = unicodedata.normalize("NFKD", base)
    slug = _COMBINING_MARKS_RE.sub("", normalized)
    slug = _UNSAFE_CHARS_RE.sub("_", slug)
    slug = _UNDERSCORE_RUN_RE.sub("_", slug)
    return slug.strip("_")


def name_hash(file_name: str) -> str:
    """原始文件名（未经任何规范化）的 SHA-256 前 10 位十六进制。"""
    return hashlib.sha256(file_name.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def legacy_path(project_id: str, node_id: str, file_name: str) -> str:
    ext = _safe_extension(file_name)
    base = file_name[: -len(ext)] if ext else file_name
    slug = _slugify(base) or "file"
    return f"{project_id}/{node_id}/{slug}_{name_hash(file_name)}{ext}"


def split_key(storage_key: str) -> Tuple[str, str]:
    """拆分为 ``(目录, 末段名)``，确认上传时按目录列举再比对末段名。"""
    directory, _, name = storage_key.rpartition("/")
    return directory, name


def to_storage_ref(storage_key: str) -> str:
    return f"{STORAGE_REF_PREFIX}{storage_key}"


def is_storage_ref(text: str) -> bool:
    return text.startswith(STORAGE_REF_PREFIX)


def extract_storage_key(text: str) -> Optional[str]:
    """从 text 中提取嵌入的 ``storage:<key>`` 引用，去掉首尾引号。"""
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    match = _EMBEDDED_REF_RE.search(trimmed)
    if match is None:
        return None
    key = re.sub(r"^[\"']|[\"']$", "", match.group(1))
    return key or None
