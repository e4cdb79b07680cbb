"""文件管理路由：列表、统计、详情、修改、删除与过期清理。

查询类接口对所有调用方开放；修改与删除需要有效的 API Key，过期清理仅限管理员。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.packages.cdn.api.v1.schemas.files import (
    CleanupResponse,
    DeleteManyBody,
    DeleteManyResponse,
    DeleteResponse,
    FileResponse,
    FilesListResponse,
    StatsResponse,
)
from app.packages.cdn.core.dependencies import get_services, require_admin, require_authenticated
from app.packages.cdn.core.enums import ALL_CATEGORIES
from app.packages.cdn.core.exceptions import NotFound
from app.packages.cdn.core.responses import create_page_response, create_response
from app.packages.cdn.models.file_record import FileUpdate
from app.packages.cdn.services.container import CdnServices

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=FilesListResponse)
def list_files(
    category: str = Query(ALL_CATEGORIES),
    search: Optional[str] = Query(None),
    sort_by: str = Query("uploadedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    services: CdnServices = Depends(get_services),
):
    result = services.query.list_files(
        category=category,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return create_page_response(
        "获取文件列表成功",
        [record.to_public() for record in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get("/stats/overview", response_model=StatsResponse)
def storage_stats(services: CdnServices = Depends(get_services)):
    return create_response("获取存储统计成功", services.lifecycle.get_stats().to_public())


@router.post("/cleanup", response_model=CleanupResponse, dependencies=[Depends(require_admin)])
def cleanup_expired(services: CdnServices = Depends(get_services)):
    count = services.lifecycle.cleanup_expired()
    return create_response(f"已清理 {count} 个过期文件", {"count": count})


@router.post("/delete-multiple", response_model=DeleteManyResponse, dependencies=[Depends(require_authenticated)])
def delete_multiple(body: DeleteManyBody, services: CdnServices = Depends(get_services)):
    result = services.lifecycle.delete_many(body.ids)
    return create_response(
        f"已删除 {len(result['deleted'])} 个文件，失败 {len(result['failed'])} 个",
        result,
    )


@router.get("/{file_id}", response_model=FileResponse)
def get_file(file_id: str, services: CdnServices = Depends(get_services)):
    record = services.lifecycle.get_file(file_id)
    return create_response("获取文件详情成功", record.to_public())


@router.patch("/{file_id}", response_model=FileResponse, dependencies=[Depends(require_authenticated)])
def update_file(file_id: str, body: FileUpdate, services: CdnServices = Depends(get_services)):
    record = services.lifecycle.update_file(file_id, body)
    return create_response("文件更新成功", record.to_public())


@router.delete("/{file_id}", response_model=DeleteResponse, dependencies=[Depends(require_authenticated)])
def delete_file(file_id: str, services: CdnServices = Depends(get_services)):
    report = services.lifecycle.delete_file(file_id)
    if not report.deleted:
        raise NotFound("文件不存在")
    return create_response("文件删除成功", {"id": file_id, "warnings": report.errors or None})
