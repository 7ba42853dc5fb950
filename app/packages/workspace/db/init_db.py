"""数据库初始化：建表。成员与工作区数据由上游系统维护，这里不写入任何种子数据。"""

from app.packages.workspace import models  # noqa: F401  确保模型全部注册到 metadata
from app.packages.workspace.core.logger import logger
from app.packages.workspace.db import session as db_session
from app.packages.workspace.models.base import Base


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database schema ensured (%s tables)", len(Base.metadata.tables))
