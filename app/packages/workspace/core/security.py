"""安全模块：解析调用方的访问令牌，并签发/校验对象存储直链使用的临时令牌。"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import get_settings
from .logger import logger


def create_access_token(subject: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """根据传入载荷生成带有过期时间的签名 JWT。

    访问令牌通常由外部身份服务签发，此函数主要供脚本与测试构造调用方身份。
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode = subject.copy()
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_temporary_token(subject: Dict[str, Any], *, expires_seconds: int = 600) -> str:
    """创建一个短期有效的 JWT，用于对象直链（读取/上传）授权。

    注意：该令牌不绑定用户，仅授权载荷中声明的单个对象 key。
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(seconds=max(int(expires_seconds or 0), 1))
    payload = subject.copy()
    payload.update({"exp": expire})
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_and_verify_token(token: str, *, verify_exp: bool = True) -> Optional[Dict[str, Any]]:
    """解码并校验 JWT，非法或过期时返回 ``None``。"""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": verify_exp},
        )
    except JWTError as exc:  # pragma: no cover - logging side effect
        logger.warning("Failed to verify JWT: %s", exc)
        return None


def resolve_user_id(token: str) -> Optional[str]:
    """从访问令牌中取出用户 ID（兼容 ``user_id`` 与 ``sub`` 两种声明）。"""
    payload = decode_and_verify_token(token)
    if payload is None:
        return None
    user_id = payload.get("user_id") or payload.get("sub")
    if user_id is None:
        return None
    return str(user_id)
