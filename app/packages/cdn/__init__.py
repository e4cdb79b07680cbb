"""文件上传与 CDN 业务包：校验分类、派生缓存、元数据索引、列表查询与生命周期管理。"""

from app.packages.types import AppPackage

from .api.v1 import api_router, cdn_router
from .core.config import get_settings
from .core.exceptions import CdnError, cdn_error_handler, generic_exception_handler, http_exception_handler
from .core.logger import logger, setup_logging
from .core.responses import create_response
from .services.container import build_services

package = AppPackage(
    name="cdn",
    api_router=api_router,
    cdn_router=cdn_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    build_services=build_services,
    create_response=create_response,
    domain_error=CdnError,
    domain_error_handler=cdn_error_handler,
    http_exception_handler=http_exception_handler,
    generic_exception_handler=generic_exception_handler,
)

__all__ = ["package", "api_router", "cdn_router", "get_settings"]
