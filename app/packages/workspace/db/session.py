"""Database engine and session factory configuration."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.packages.workspace.core.config import get_settings

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # ``pool_pre_ping`` keeps the connection pool healthy across database restarts.
    return {"pool_pre_ping": True}


def enable_sqlite_foreign_keys(engine: Engine) -> Engine:
    """SQLite 默认不执行外键约束，节点删除依赖 ``ON DELETE CASCADE`` 清理内容行。"""
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - driver glue
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = enable_sqlite_foreign_keys(
    create_engine(
        settings.sql_database_url,
        echo=settings.database_echo,
        **_engine_kwargs(settings.sql_database_url),
    )
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
