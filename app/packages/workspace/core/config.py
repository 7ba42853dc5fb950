"""配置模块：负责加载和缓存基于环境变量的应用设置。"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 探测项目根目录并加载环境文件，支持通过 ENV_FILE/ENVIRONMENT 定制优先级。
def _detect_base_dir() -> Path:
    """向上遍历目录树，寻找包含 `app` 目录的项目根路径。"""
    current = Path(__file__).resolve()
    for candidate in current.parents:
        if (candidate / "app").is_dir():
            return candidate
    return current.parent


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _load_environment() -> None:
    env_file_override = os.getenv("ENV_FILE")
    if env_file_override:
        candidate = BASE_DIR / env_file_override
        if candidate.exists():
            load_dotenv(candidate, override=True, encoding="utf-8")
        return

    base_env = BASE_DIR / ".env"
    if base_env.exists():
        load_dotenv(base_env, override=False, encoding="utf-8")

    environment = os.getenv("ENVIRONMENT")
    if environment is None and _as_bool(os.getenv("DEBUG")):
        environment = "development"

    if environment:
        if environment.startswith(".env"):
            candidate_name = environment
        else:
            candidate_name = f".env.{environment}"
        candidate_path = BASE_DIR / candidate_name
        if candidate_path.exists():
            load_dotenv(candidate_path, override=True, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """
    封装应用运行所需的所有配置项，每个字段都可以通过环境变量重写。
    数据库、对象存储、签名链接有效期与回收任务参数均集中在此处声明。
    """

    project_name: str = Field(default="Workspace Storage API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")

    database_url_override: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="workspace", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    # 对外地址：LOCAL 存储生成签名链接时作为前缀
    public_base_url: str = Field(default="http://127.0.0.1:8000", alias="PUBLIC_BASE_URL")
    app_redirect_path: str = Field(default="/app", alias="APP_REDIRECT_PATH")

    # 对象存储
    storage_type: str = Field(default="LOCAL", alias="STORAGE_TYPE")
    storage_bucket: str = Field(default="files", alias="STORAGE_BUCKET")
    local_storage_root: str = Field(default="storage", alias="LOCAL_STORAGE_ROOT")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_endpoint_url: Optional[str] = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_access_key_id: Optional[str] = Field(default=None, alias="S3_ACCESS_KEY_ID")
    s3_secret_access_key: Optional[str] = Field(default=None, alias="S3_SECRET_ACCESS_KEY")
    s3_service_access_key_id: Optional[str] = Field(default=None, alias="S3_SERVICE_ACCESS_KEY_ID")
    s3_service_secret_access_key: Optional[str] = Field(default=None, alias="S3_SERVICE_SECRET_ACCESS_KEY")

    signed_url_expires_seconds: int = Field(default=3600, alias="SIGNED_URL_EXPIRES_SECONDS")
    upload_url_expires_seconds: int = Field(default=300, alias="UPLOAD_URL_EXPIRES_SECONDS")
    download_url_expires_seconds: int = Field(default=86400, alias="DOWNLOAD_URL_EXPIRES_SECONDS")

    # 旧数据缺少 public_access_role 时的回退角色
    default_public_access_role: str = Field(default="editor", alias="DEFAULT_PUBLIC_ACCESS_ROLE")

    gc_worker_token: Optional[str] = Field(default=None, alias="GC_WORKER_TOKEN")
    gc_keep_count: int = Field(default=3, alias="GC_KEEP_COUNT")
    gc_batch_size: int = Field(default=50, alias="GC_BATCH_SIZE")
    gc_retry_delay_seconds: int = Field(default=60, alias="GC_RETRY_DELAY_SECONDS")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def sql_database_url(self) -> str:
        """优先使用 ``DATABASE_URL``，否则根据各分项拼接 PostgreSQL 连接串。"""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def local_storage_directory(self) -> Path:
        """LOCAL 对象存储的根目录（不含 bucket）。"""
        return self._resolve_path(self.local_storage_root)

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量造成性能浪费。"""
    return Settings()
