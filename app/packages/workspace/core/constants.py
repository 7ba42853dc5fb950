"""常量定义：对象存储引用前缀、路径片段与数据结构版本。"""

# file_contents.text 中指向对象存储的引用前缀，例如 ``storage:<key>``
STORAGE_REF_PREFIX = "storage:"

# 规范路径的末段名，``{project}/{node}/blob``
CANONICAL_OBJECT_NAME = "blob"

# 暂存上传目录名，``{project}/{node}/uploads/{upload_id}``
UPLOADS_DIR_NAME = "uploads"

# nodes.schema_version：2 起包含 public_access_role 列
NODE_SCHEMA_VERSION_LEGACY = 1
NODE_SCHEMA_VERSION_CURRENT = 2

# 批量删除对象时每组的数量上限
REMOVE_BATCH_SIZE = 100
