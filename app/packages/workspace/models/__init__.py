"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.workspace.models.file_content import FileContent
from app.packages.workspace.models.gc_job import GcJob
from app.packages.workspace.models.node import Node
from app.packages.workspace.models.project import Project, ProjectMember

__all__ = [
    "FileContent",
    "GcJob",
    "Node",
    "Project",
    "ProjectMember",
]
