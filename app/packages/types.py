"""业务包元数据定义。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Any, Callable

from fastapi import APIRouter


@dataclass(frozen=True)
class AppPackage:
    """描述一个业务包暴露给主应用的必要接口。"""

    name: str
    api_router: APIRouter
    cdn_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[..., None]
    logger: Logger
    build_services: Callable[..., Any]
    create_response: Callable[..., dict]
    domain_error: type[Exception]
    domain_error_handler: Callable[..., Any]
    http_exception_handler: Callable[..., Any]
    generic_exception_handler: Callable[..., Any]
