"""响应封装：构建系统统一的返回结构。"""

from typing import Any

from app.packages.cdn.core.constants import HTTP_STATUS_OK


def create_response(msg: str, data: Any = None, code: int = HTTP_STATUS_OK) -> dict[str, Any]:
    """按照 ``msg``、``data``、``code`` 组合出统一响应体。"""
    return {"msg": msg, "data": data, "code": code}


def create_page_response(msg: str, items: list, *, page: int, limit: int, total: int, total_pages: int) -> dict[str, Any]:
    """列表接口的分页响应体。"""
    return create_response(
        msg,
        {"items": items, "page": page, "limit": limit, "total": total, "totalPages": total_pages},
    )
