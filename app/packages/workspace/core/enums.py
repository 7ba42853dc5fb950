"""枚举定义：约束节点类型、公开访问角色与回收任务状态的可选值。"""

from enum import Enum


class NodeTypeEnum(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class PublicAccessRoleEnum(str, Enum):
    """公开分享时匿名访问者获得的角色。"""

    VIEWER = "viewer"
    EDITOR = "editor"


class MemberRoleEnum(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    READ_ONLY = "read_only"


class GcJobStatusEnum(str, Enum):
    """暂存上传回收任务的状态标识。"""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class TokenPurposeEnum(str, Enum):
    """LOCAL 存储直链令牌的用途。"""

    OBJECT_READ = "object_read"
    OBJECT_UPLOAD = "object_upload"
