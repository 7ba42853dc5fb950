"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.security import resolve_user_id
from app.packages.workspace.db import session as db_session
from app.packages.workspace.services.object_store import ObjectStore, build_object_store

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Optional[str]:
    """解析 ``Authorization`` 头部中的用户 ID；缺失或非法时视为匿名访问。

    是否必须登录由各接口自行判断，公开读取接口允许匿名。
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    return resolve_user_id(credentials.credentials)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Optional[str]:
    if not credentials:
        return None
    return credentials.credentials


def get_object_store() -> ObjectStore:
    """以调用方身份访问存储的实例。"""
    return build_object_store(get_settings())


def get_elevated_object_store() -> ObjectStore:
    """特权存储实例，仅用于公开读取与后台回收。"""
    return build_object_store(get_settings(), elevated=True)
