"""应用入口：负责创建 FastAPI 实例并绑定生命周期事件。"""

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.packages import get_active_package

package = get_active_package()
package.setup_logging()
settings = package.get_settings()
logger = package.logger
build_services = package.build_services
create_response = package.create_response

from app.packages.cdn.core.constants import REQUEST_ID_HEADER
from app.packages.cdn.core.logger import set_request_id

app = FastAPI(title=settings.project_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER, "X-Cache", "ETag"],
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """为每个请求分配（或沿用调用方传入的）请求 ID，写入日志上下文并回写到响应头。"""

    async def dispatch(self, request, call_next):  # pragma: no cover - 框架胶水代码
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            set_request_id(None)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


@app.on_event("startup")
async def startup_event() -> None:
    """构建服务容器并从索引恢复记录，确认服务可用后输出成功日志。"""
    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services(settings)
        app.state.services = services
    services.init()
    logger.info("SUCCESS - Application running at http://127.0.0.1:%s", settings.app_port)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    services = getattr(app.state, "services", None)
    if services is not None:
        services.close()


@app.exception_handler(package.domain_error)
async def custom_domain_error_handler(request, exc):  # pragma: no cover - framework glue
    """将核心层失败转换为统一的响应结构。"""
    return await package.domain_error_handler(request, exc)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request, exc):  # pragma: no cover - framework glue
    """将 ``HTTPException`` 转换为统一的响应结构。"""
    return await package.http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def custom_generic_exception_handler(request, exc):  # pragma: no cover - framework glue
    """捕获未预料异常并包装为标准错误响应。"""
    return await package.generic_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):  # pragma: no cover - framework glue
    """统一处理请求参数验证失败的场景。"""
    def _serialize(obj: Any) -> Any:
        if isinstance(obj, Exception):
            return str(obj)
        if isinstance(obj, dict):
            return {key: _serialize(value) for key, value in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [_serialize(item) for item in obj]
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        return obj

    serialized_errors = _serialize(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=create_response("请求参数验证失败", serialized_errors, status.HTTP_422_UNPROCESSABLE_ENTITY),
    )


@app.get("/health")
def health_check() -> dict:
    """提供健康检查接口，附带运行时长与存储概况。"""
    services = app.state.services
    stats = services.lifecycle.get_stats()
    return create_response(
        "OK",
        {
            "status": "healthy",
            "uptime": round(services.uptime, 3),
            "files": stats.total_files,
            "storage": stats.total_size,
        },
    )


@app.get(settings.api_prefix)
def describe_api() -> dict:
    """列出对外提供的接口。"""
    api = settings.api_prefix
    cdn = settings.cdn_prefix
    return create_response(
        "OK",
        {
            "name": settings.project_name,
            "endpoints": {
                "upload": {
                    "single": f"POST {api}/upload/single",
                    "multiple": f"POST {api}/upload/multiple",
                    "url": f"POST {api}/upload/url",
                    "base64": f"POST {api}/upload/base64",
                },
                "files": {
                    "list": f"GET {api}/files",
                    "stats": f"GET {api}/files/stats/overview",
                    "details": f"GET {api}/files/:id",
                    "update": f"PATCH {api}/files/:id",
                    "delete": f"DELETE {api}/files/:id",
                    "deleteMultiple": f"POST {api}/files/delete-multiple",
                    "cleanup": f"POST {api}/files/cleanup",
                },
                "cdn": {
                    "view": f"GET {cdn}/:id",
                    "download": f"GET {cdn}/:id/download",
                    "thumbnail": f"GET {cdn}/thumb/:id",
                    "transform": f"GET {cdn}/:id/transform",
                    "preset": f"GET {cdn}/:id/:preset",
                },
            },
        },
    )


app.include_router(package.api_router, prefix=settings.api_prefix)
app.include_router(package.cdn_router, prefix=settings.cdn_prefix)
