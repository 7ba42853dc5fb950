"""FileContent CRUD：每个文件节点至多一行，写入一律走 upsert。"""

from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.packages.workspace.core.timezone import utcnow
from app.packages.workspace.crud.base import CRUDBase
from app.packages.workspace.models.base import new_uuid
from app.packages.workspace.models.file_content import FileContent

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDFileContent(CRUDBase[FileContent]):
    def get_text(self, db: Session, node_id: str) -> str:
        """返回节点的 text 字段，不存在时返回空串。"""
        row = db.query(FileContent.text).filter(FileContent.node_id == node_id).first()
        if row is None:
            return ""
        return row[0] or ""

    def upsert_text(self, db: Session, *, node_id: str, text: str) -> None:
        """以 node_id 为冲突键写入 text，已存在则整体覆盖。"""
        dialect = db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"upsert is not supported on dialect {dialect!r}")
        now = utcnow()
        stmt = insert(FileContent).values(
            id=new_uuid(),
            node_id=node_id,
            text=text,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[FileContent.node_id],
            set_={"text": stmt.excluded.text, "updated_at": stmt.excluded.updated_at},
        )
        try:
            db.execute(stmt)
            db.commit()
        except Exception:
            db.rollback()
            raise


file_content_crud = CRUDFileContent(FileContent)
