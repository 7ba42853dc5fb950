"""测试夹具：为 pytest 提供数据库、本地对象存储与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Generator, Iterable, Optional

TEST_DIR = os.path.dirname(__file__)
TEST_DB_PATH = os.path.join(TEST_DIR, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
TEST_STORAGE_ROOT = tempfile.mkdtemp(prefix="workspace_storage_")
TEST_GC_TOKEN = "test-gc-token"

# 配置在导入应用前写入环境变量，确保缓存的 Settings 使用测试值
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["STORAGE_TYPE"] = "LOCAL"
os.environ["LOCAL_STORAGE_ROOT"] = TEST_STORAGE_ROOT
os.environ["LOG_DIR"] = os.path.join(TEST_STORAGE_ROOT, "logs")
os.environ["GC_WORKER_TOKEN"] = TEST_GC_TOKEN
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.packages.workspace.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from app.main import app  # noqa: E402
from app.packages.workspace.core.dependencies import get_db  # noqa: E402
from app.packages.workspace.core.enums import NodeTypeEnum  # noqa: E402
from app.packages.workspace.core.security import create_access_token  # noqa: E402
from app.packages.workspace.crud.file_contents import file_content_crud  # noqa: E402
from app.packages.workspace.db import session as db_session  # noqa: E402
from app.packages.workspace.db.init_db import init_db  # noqa: E402
from app.packages.workspace.crud.projects import project_crud  # noqa: E402
from app.packages.workspace.models import Node, Project  # noqa: E402
from app.packages.workspace.models.base import Base  # noqa: E402
from app.packages.workspace.services.object_store import LocalObjectStore, build_object_store  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = db_session.enable_sqlite_foreign_keys(
        create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    shutil.rmtree(TEST_STORAGE_ROOT, ignore_errors=True)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def store() -> LocalObjectStore:
    """与应用共用同一目录的本地对象存储，用于预置或检查对象。"""
    return build_object_store(get_settings())


def _auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'user_id': user_id})}"}


@pytest.fixture()
def auth_headers():
    """按用户 ID 构造 Bearer 请求头。"""
    return _auth_headers


class Seeder:
    """直接写库构造测试数据。"""

    def __init__(self, db: Session):
        self.db = db

    def project(self, *, is_public: bool = False, members: Iterable[str] = (), name: str = "demo") -> Project:
        project = Project(name=name, is_public=is_public)
        self.db.add(project)
        self.db.commit()
        for user_id in members:
            project_crud.add_member(self.db, project_id=project.id, user_id=user_id)
        self.db.refresh(project)
        return project

    def node(
        self,
        project: Project,
        name: str,
        *,
        type: str = NodeTypeEnum.FILE.value,
        parent: Optional[Node] = None,
        is_public: bool = False,
        public_access_role: Optional[str] = None,
        schema_version: int = 2,
    ) -> Node:
        node = Node(
            project_id=project.id,
            parent_id=parent.id if parent else None,
            parent_key=parent.id if parent else "",
            type=type,
            name=name,
            is_public=is_public,
            public_access_role=public_access_role,
            schema_version=schema_version,
        )
        self.db.add(node)
        self.db.commit()
        self.db.refresh(node)
        return node

    def folder(self, project: Project, name: str, **kwargs) -> Node:
        return self.node(project, name, type=NodeTypeEnum.FOLDER.value, **kwargs)

    def content(self, node: Node, text: str) -> None:
        file_content_crud.upsert_text(self.db, node_id=node.id, text=text)


@pytest.fixture()
def seed(db_session_fixture) -> Seeder:
    return Seeder(db_session_fixture)


@pytest.fixture()
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"
