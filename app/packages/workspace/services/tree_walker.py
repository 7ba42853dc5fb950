"""面包屑路径：沿 parent_id 逐级向上查找祖先名称。"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from app.packages.workspace.core.exceptions import ConsistencyError
from app.packages.workspace.core.logger import logger

# node_id -> (name, parent_id)，查不到返回 None
ParentLookup = Callable[[str], Optional[Tuple[str, Optional[str]]]]


def breadcrumb_path(node_id: str, name: str, parent_id: Optional[str], lookup: ParentLookup) -> List[str]:
    """返回从根到当前节点的名称序列。

    父节点查不到时截断返回已解析的部分；遇到环则立即抛出 ``ConsistencyError``。
    """
    segments = [name]
    visited = {node_id}
    current = parent_id
    while current:
        if current in visited:
            raise ConsistencyError(f"节点 {node_id} 的祖先链存在环")
        visited.add(current)
        parent = lookup(current)
        if parent is None:
            logger.warning("Dangling parent reference %s while walking node %s", current, node_id)
            break
        parent_name, current = parent
        segments.insert(0, parent_name)
    return segments
