"""异常处理模块：定义上传/读取流程的异常分类，并统一转换为 ``{"error": msg}`` 响应。"""

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.packages.workspace.core.logger import logger
from app.packages.workspace.core.responses import create_error_response


class AppException(HTTPException):
    """业务异常基类：携带提示信息与 HTTP 状态码，由全局处理器转换响应体。"""

    default_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, msg: str, code: int | None = None) -> None:
        super().__init__(status_code=code or self.default_code, detail=msg)
        self.msg = msg

    def __str__(self) -> str:
        return self.msg


class ValidationError(AppException):
    """请求参数缺失或格式错误，始终属于客户端错误。"""

    default_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppException):
    """节点、工作区或存储对象不存在。"""

    default_code = status.HTTP_404_NOT_FOUND


class MissingUploadError(NotFoundError):
    """确认上传时对象存储中找不到文件；对外按客户端错误（400）返回。"""

    default_code = status.HTTP_400_BAD_REQUEST


class AuthenticationRequired(AppException):
    default_code = status.HTTP_401_UNAUTHORIZED


class AccessDenied(AppException):
    """可见性规则未通过。"""

    default_code = status.HTTP_403_FORBIDDEN


class UpstreamStorageError(AppException):
    """对象存储调用失败（签名、列举、写入、删除）。"""

    default_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PersistenceError(AppException):
    """数据库写入失败。"""

    default_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConsistencyError(AppException):
    """数据违反树结构不变式（例如父节点链出现环）。"""

    default_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(AppException):
    default_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InconsistentState(Exception):
    """仅在流程内部使用：两侧存储出现不一致，必须在返回前通过补偿动作消解。"""


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 ``HTTPException``（含业务异常）转换为扁平的错误响应。"""
    return JSONResponse(status_code=exc.status_code, content=create_error_response(str(exc.detail)))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # pragma: no cover - framework glue
    """请求体/查询参数校验失败统一返回 400。"""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "form")]
        if loc:
            fields.append(".".join(loc))
    msg = "请求参数验证失败"
    if fields:
        msg = f"{msg}: {', '.join(fields)}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=create_error_response(msg))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录未捕获异常并返回 500。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response("服务器内部错误"),
    )
