"""访问判定：核心层只接收已解析好的身份布尔值，不做凭据查找。"""

from __future__ import annotations

from dataclasses import dataclass

from app.packages.cdn.core.exceptions import AccessDenied


@dataclass(frozen=True)
class AccessContext:
    is_authenticated: bool = False
    is_admin: bool = False

    def __post_init__(self) -> None:
        if self.is_admin and not self.is_authenticated:
            object.__setattr__(self, "is_authenticated", True)


ANONYMOUS = AccessContext()


def ensure_can_read(record: object, access: AccessContext) -> None:
    """非公开文件只允许已认证调用方读取内容。"""
    if getattr(record, "is_public", True) or access.is_authenticated:
        return
    raise AccessDenied("该文件不公开，需要有效的 API Key", authenticated=False)

