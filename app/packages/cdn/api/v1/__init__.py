"""API 汇总路由：管理接口挂载在 API 前缀下，内容分发挂载在 CDN 前缀下。"""

from fastapi import APIRouter

from app.packages.cdn.api.v1.endpoints import cdn, files, upload

api_router = APIRouter()
api_router.include_router(upload.router)
api_router.include_router(files.router)

cdn_router = APIRouter()
cdn_router.include_router(cdn.router)
