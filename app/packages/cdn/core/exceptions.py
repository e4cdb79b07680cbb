"""异常处理模块：定义核心层的类型化失败，以及边界层的统一响应转换。

核心服务只抛出 ``CdnError`` 的子类，不关心 HTTP；状态码映射只存在于下方的异常处理器中。
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.cdn.core.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_INTERNAL_SERVER_ERROR,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.cdn.core.logger import logger
from app.packages.cdn.core.responses import create_response


class CdnError(Exception):
    """核心层失败的基类，``message`` 可直接展示给调用方。"""

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data


class ValidationFailed(CdnError):
    """类型/大小/缺失输入等校验失败，不重试。"""


class NotFound(CdnError):
    """未知 id、已删除、已过期或不存在的预设。"""


class AccessDenied(CdnError):
    """非公开内容或管理操作被拒绝。"""

    def __init__(self, message: str, *, authenticated: bool = False) -> None:
        super().__init__(message)
        self.authenticated = authenticated


class TransformFailed(CdnError):
    """解码/编码失败或源文件损坏。"""


class StorageIOFailed(CdnError):
    """磁盘读写或删除失败。"""


class AppException(HTTPException):
    """携带统一响应结构的框架层异常（如缺少凭据），方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


def status_code_for(exc: CdnError) -> int:
    """把核心失败映射为 HTTP 状态码。"""
    if isinstance(exc, ValidationFailed):
        return HTTP_STATUS_BAD_REQUEST
    if isinstance(exc, NotFound):
        return HTTP_STATUS_NOT_FOUND
    if isinstance(exc, AccessDenied):
        return HTTP_STATUS_FORBIDDEN if exc.authenticated else HTTP_STATUS_UNAUTHORIZED
    return HTTP_STATUS_INTERNAL_SERVER_ERROR


def public_message_for(exc: CdnError) -> str:
    if isinstance(exc, TransformFailed):
        return "图片处理失败"
    if isinstance(exc, StorageIOFailed):
        return "存储读写失败"
    return exc.message


async def cdn_error_handler(request: Request, exc: CdnError) -> JSONResponse:
    """将核心层失败转换为统一响应格式。"""
    code = status_code_for(exc)
    if code >= HTTP_STATUS_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=code, content=create_response(public_message_for(exc), exc.data, code))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = create_response(str(exc.detail), getattr(exc, "data", None), exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底处理：完整记录堆栈，仅向调用方返回通用错误。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload: dict[str, Optional[Any]] = create_response(
        "服务器内部错误", None, HTTP_STATUS_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=HTTP_STATUS_INTERNAL_SERVER_ERROR, content=payload)
