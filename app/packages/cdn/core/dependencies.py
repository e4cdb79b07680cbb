"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from typing import Optional

from fastapi import Depends, Header, Query, Request, status

from app.packages.cdn.core.constants import API_KEY_HEADER, API_KEY_QUERY
from app.packages.cdn.core.exceptions import AppException
from app.packages.cdn.core.guards import AccessContext
from app.packages.cdn.services.container import CdnServices


def get_services(request: Request) -> CdnServices:
    """返回启动时挂载在 ``app.state`` 上的服务容器。"""
    services: Optional[CdnServices] = getattr(request.app.state, "services", None)
    if services is None:
        raise AppException("服务尚未初始化", status.HTTP_503_SERVICE_UNAVAILABLE)
    return services


def get_access_context(
    services: CdnServices = Depends(get_services),
    header_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
    query_key: Optional[str] = Query(None, alias=API_KEY_QUERY),
) -> AccessContext:
    """从 ``X-API-Key`` 头或 ``apiKey`` 参数解析调用方身份；未知的 Key 视为匿名。"""
    api_key = header_key or query_key or ""
    settings = services.settings
    is_admin = api_key in settings.admin_api_keys
    return AccessContext(is_authenticated=is_admin or api_key in settings.api_keys, is_admin=is_admin)


def require_authenticated(access: AccessContext = Depends(get_access_context)) -> AccessContext:
    if not access.is_authenticated:
        raise AppException(
            "需要有效的 API Key（X-API-Key 头或 apiKey 参数）",
            status.HTTP_401_UNAUTHORIZED,
        )
    return access


def require_admin(access: AccessContext = Depends(get_access_context)) -> AccessContext:
    """管理员操作；未认证返回 401，非管理员返回 403。"""
    if not access.is_authenticated:
        raise AppException("需要有效的 API Key（X-API-Key 头或 apiKey 参数）", status.HTTP_401_UNAUTHORIZED)
    if not access.is_admin:
        raise AppException("需要管理员权限", status.HTTP_403_FORBIDDEN)
    return access
