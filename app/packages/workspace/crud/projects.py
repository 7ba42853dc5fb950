"""Project 与 ProjectMember CRUD。"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.packages.workspace.crud.base import CRUDBase
from app.packages.workspace.models.project import Project, ProjectMember


class CRUDProject(CRUDBase[Project]):
    def is_member(self, db: Session, *, project_id: str, user_id: str) -> bool:
        row = (
            db.query(ProjectMember.id)
            .filter(ProjectMember.project_id == project_id)
            .filter(ProjectMember.user_id == user_id)
            .first()
        )
        return row is not None

    def add_member(self, db: Session, *, project_id: str, user_id: str, role: str | None = None) -> ProjectMember:
        member = ProjectMember(project_id=project_id, user_id=user_id)
        if role:
            member.role = role
        db.add(member)
        db.commit()
        db.refresh(member)
        return member


project_crud = CRUDProject(Project)
