"""时区工具方法：统一生成带时区的当前时间与对外输出的时间字符串。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from zoneinfo import ZoneInfo

from app.packages.workspace.core.config import get_settings


def get_timezone() -> ZoneInfo:
    return get_settings().timezone_info


def utcnow() -> datetime:
    """返回 UTC 当前时间，数据库时间字段统一按 UTC 写入。"""
    return datetime.now(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """将 ``datetime`` 转换为配置时区；SQLite 读回的无时区对象按 UTC 处理。"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_timezone())


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """格式化为 ISO-8601 字符串，供 ``createdAt`` 等字段返回。"""
    localized = to_local(value)
    if localized is None:
        return None
    return localized.isoformat()
