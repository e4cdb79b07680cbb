"""CDN 路由：原文件、下载、缩略图、参数变换与预设。

注意路由顺序：``/thumb/{id}``、``/{id}/download``、``/{id}/transform`` 必须先于 ``/{id}/{preset}`` 注册。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, Response

from app.packages.cdn.core.constants import CDN_CACHE_CONTROL, PRIVATE_CACHE_CONTROL
from app.packages.cdn.core.dependencies import get_access_context, get_services
from app.packages.cdn.core.guards import AccessContext
from app.packages.cdn.models.results import ContentResult
from app.packages.cdn.services.cdn_service import parse_transform_params
from app.packages.cdn.services.container import CdnServices

router = APIRouter(tags=["cdn"])


def _cache_control(is_public: bool) -> str:
    return CDN_CACHE_CONTROL if is_public else PRIVATE_CACHE_CONTROL


def _content_response(result: ContentResult, *, download: bool = False) -> Response:
    record = result.record
    if result.data is not None:
        return Response(
            content=result.data,
            media_type=result.media_type,
            headers={
                "Cache-Control": _cache_control(record.is_public),
                "X-Cache": "HIT" if result.cache_hit else "MISS",
            },
        )
    return FileResponse(
        result.path,
        media_type=result.media_type,
        filename=record.original_name,
        content_disposition_type="attachment" if download else "inline",
        headers={"Cache-Control": _cache_control(record.is_public), "ETag": f'"{record.checksum}"'},
    )


@router.get("/thumb/{file_id}")
def get_thumbnail(
    file_id: str,
    services: CdnServices = Depends(get_services),
    access: AccessContext = Depends(get_access_context),
):
    return _content_response(services.lifecycle.get_thumbnail(file_id, access))


@router.get("/{file_id}")
def get_raw(
    file_id: str,
    download: bool = Query(False),
    services: CdnServices = Depends(get_services),
    access: AccessContext = Depends(get_access_context),
):
    return _content_response(services.cdn.raw(file_id, access), download=download)


@router.get("/{file_id}/download")
def download_file(
    file_id: str,
    services: CdnServices = Depends(get_services),
    access: AccessContext = Depends(get_access_context),
):
    return _content_response(services.cdn.raw(file_id, access), download=True)


@router.get("/{file_id}/transform")
def transform_image(
    file_id: str,
    w: Optional[str] = Query(None),
    h: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    f: Optional[str] = Query(None),
    fit: Optional[str] = Query(None),
    blur: Optional[str] = Query(None),
    grayscale: Optional[str] = Query(None),
    services: CdnServices = Depends(get_services),
    access: AccessContext = Depends(get_access_context),
):
    descriptor = parse_transform_params(w=w, h=h, q=q, f=f, fit=fit, blur=blur, grayscale=grayscale)
    return _content_response(services.cdn.transform(file_id, descriptor, access))


@router.get("/{file_id}/{preset}")
def get_preset(
    file_id: str,
    preset: str,
    services: CdnServices = Depends(get_services),
    access: AccessContext = Depends(get_access_context),
):
    return _content_response(services.cdn.preset(file_id, preset, access))
