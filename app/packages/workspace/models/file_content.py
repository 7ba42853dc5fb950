"""文件内容模型：与文件节点一对一。

text 要么是文本内容本身，要么是 ``storage:<key>`` 形式的对象存储引用。
"""

from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.workspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class FileContent(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "file_contents"

    node_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("nodes.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
