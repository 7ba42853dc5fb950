"""响应封装：成功响应直接返回业务字段，失败响应统一为 ``{"error": msg}``。"""

from typing import Any


def create_response(**fields: Any) -> dict[str, Any]:
    """按关键字参数组合成功响应体，保持字段顺序。"""
    return dict(fields)


def create_error_response(msg: str) -> dict[str, Any]:
    return {"error": msg}
