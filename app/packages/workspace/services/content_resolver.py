"""内容解析：确定文件节点的有效内容是内联文本，还是对象存储中的某个对象。

历史数据可能按规范路径或旧版文件名路径写入，text 字段中也可能显式嵌入了
``storage:<key>``。解析时按固定顺序逐个尝试候选 key，首个成功即返回，
全部失败再退回到列举节点目录。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.packages.workspace.core.constants import CANONICAL_OBJECT_NAME, UPLOADS_DIR_NAME
from app.packages.workspace.core.exceptions import UpstreamStorageError
from app.packages.workspace.core.logger import logger
from app.packages.workspace.crud.nodes import NodeRecord
from app.packages.workspace.services.object_store import ObjectEntry, ObjectStore
from app.packages.workspace.services.storage_paths import (
    canonical_path,
    extract_storage_key,
    is_storage_ref,
    legacy_path,
    node_prefix,
)


@dataclass
class ResolvedContent:
    content: Optional[str] = None
    signed_url: Optional[str] = None


def is_inline_text(text: str) -> bool:
    """非空、非纯空白且不以引用前缀开头的 text 即为内联内容。"""
    return bool(text) and bool(text.strip()) and not is_storage_ref(text)


def candidate_keys(node: NodeRecord, text: str) -> List[str]:
    """有序去重的候选 key：显式引用 → 规范路径 → 旧版路径。"""
    candidates: List[str] = []
    embedded = extract_storage_key(text)
    if embedded:
        candidates.append(embedded)
    candidates.append(canonical_path(node.project_id, node.id))
    candidates.append(legacy_path(node.project_id, node.id, node.name))
    return list(dict.fromkeys(candidates))


def _pick_blob_or_first(entries: Sequence[ObjectEntry]) -> Optional[ObjectEntry]:
    for entry in entries:
        if entry.name == CANONICAL_OBJECT_NAME:
            return entry
    return entries[0] if entries else None


def _newest(entries: Sequence[ObjectEntry]) -> Optional[ObjectEntry]:
    dated = [entry for entry in entries if entry.last_modified is not None]
    if not dated:
        return None
    return max(dated, key=lambda entry: entry.last_modified)


class ContentResolver:
    def __init__(self, store: ObjectStore, *, expires_in: int):
        self.store = store
        self.expires_in = expires_in

    def _try_sign(self, key: str) -> Optional[str]:
        try:
            return self.store.create_signed_url(key, expires_in=self.expires_in)
        except UpstreamStorageError as exc:
            logger.debug("Signed URL candidate %s rejected: %s", key, exc)
            return None

    def _list(self, prefix: str) -> List[ObjectEntry]:
        try:
            return self.store.list(prefix)
        except UpstreamStorageError as exc:
            logger.warning("Listing %s failed: %s", prefix, exc)
            return []

    def sign_first(self, keys: Sequence[str]) -> Optional[tuple[str, str]]:
        """按顺序尝试签名，返回首个成功的 ``(key, url)``。"""
        for key in keys:
            url = self._try_sign(key)
            if url:
                return key, url
        return None

    def resolve(self, node: NodeRecord, text: str) -> ResolvedContent:
        """返回内联内容或签名链接，二者至多一个非空；都解析不到时两者皆为空。"""
        if is_inline_text(text):
            return ResolvedContent(content=text)

        hit = self.sign_first(candidate_keys(node, text))
        if hit is not None:
            return ResolvedContent(signed_url=hit[1])

        prefix = node_prefix(node.project_id, node.id)
        target = _pick_blob_or_first(self._list(prefix))
        if target is not None:
            url = self._try_sign(f"{prefix}/{target.name}")
            if url:
                return ResolvedContent(signed_url=url)

        logger.warning(
            "No storage object resolved for node %s", node.id, extra={"node_id": node.id, "project_id": node.project_id}
        )
        return ResolvedContent()

    def resolve_download_key(self, node: NodeRecord, text: str) -> Optional[tuple[str, str]]:
        """下载场景的解析：候选 key 之后使用更细致的目录回退规则。

        回退顺序：``blob`` → 唯一的非 ``uploads`` 条目 → 时间最新的条目
        → ``uploads/`` 下时间最新的暂存对象。
        """
        hit = self.sign_first(candidate_keys(node, text))
        if hit is not None:
            return hit
        fallback = self._fallback_from_listing(node)
        if fallback is None:
            return None
        url = self._try_sign(fallback)
        return (fallback, url) if url else None

    def _fallback_from_listing(self, node: NodeRecord) -> Optional[str]:
        prefix = node_prefix(node.project_id, node.id)
        entries = self._list(prefix)
        if not entries:
            return None
        if any(entry.name == CANONICAL_OBJECT_NAME for entry in entries):
            return f"{prefix}/{CANONICAL_OBJECT_NAME}"
        if len(entries) == 1 and entries[0].name != UPLOADS_DIR_NAME:
            return f"{prefix}/{entries[0].name}"

        newest = _newest(entries)
        if newest is not None:
            return f"{prefix}/{newest.name}"

        uploads_prefix = f"{prefix}/{UPLOADS_DIR_NAME}"
        staged = [entry for entry in self._list(uploads_prefix) if not entry.is_dir]
        if len(staged) == 1:
            return f"{uploads_prefix}/{staged[0].name}"
        newest_staged = _newest(staged)
        if newest_staged is not None:
            return f"{uploads_prefix}/{newest_staged.name}"

        logger.warning(
            "Storage listing for %s has multiple entries but no timestamps: %s",
            prefix,
            [entry.name for entry in entries],
        )
        return None

