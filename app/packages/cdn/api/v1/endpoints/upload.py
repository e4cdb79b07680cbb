"""上传路由：单文件、多文件、远程 URL 与 base64。

上传选项通过查询参数传入（thumbnail/public/tags/maxWidth/maxHeight/quality/expiresIn），
内容相同的文件只保存一份，重复上传直接返回已有记录。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.packages.cdn.api.v1.schemas.upload import (
    Base64UploadBody,
    MultiUploadResponse,
    UploadResponse,
    UrlUploadBody,
)
from app.packages.cdn.core.dependencies import get_services
from app.packages.cdn.core.exceptions import ValidationFailed
from app.packages.cdn.core.responses import create_response
from app.packages.cdn.models.base import build_model
from app.packages.cdn.models.file_record import UploadOptions
from app.packages.cdn.models.results import UploadOutcome
from app.packages.cdn.services.container import CdnServices
from app.packages.cdn.services.validation import check_policy, resolve_mime_type

router = APIRouter(prefix="/upload", tags=["upload"])


def get_upload_options(
    thumbnail: bool = Query(True),
    public: bool = Query(True),
    tags: Optional[str] = Query(None, description="逗号分隔"),
    max_width: Optional[int] = Query(None, alias="maxWidth"),
    max_height: Optional[int] = Query(None, alias="maxHeight"),
    quality: Optional[int] = Query(None),
    expires_in: Optional[int] = Query(None, alias="expiresIn", description="秒"),
) -> UploadOptions:
    return build_model(
        UploadOptions,
        "上传参数无效",
        generate_thumbnail=thumbnail,
        is_public=public,
        tags=tags.split(",") if tags else None,
        max_width=max_width,
        max_height=max_height,
        quality=quality,
        expires_in=expires_in,
    )


async def _read_upload(upload: UploadFile) -> tuple[str, bytes, Optional[str]]:
    """已知大小时先做策略校验，超限文件不读入内存。"""
    name = upload.filename or ""
    if upload.size is not None:
        check_policy(resolve_mime_type(upload.content_type, name), upload.size)
    data = await upload.read()
    return name, data, upload.content_type


@router.post("/single", response_model=UploadResponse)
async def upload_single(
    file: Optional[UploadFile] = File(None),
    options: UploadOptions = Depends(get_upload_options),
    services: CdnServices = Depends(get_services),
):
    if file is None:
        raise ValidationFailed("未提供文件")
    name, data, content_type = await _read_upload(file)
    record = await run_in_threadpool(services.lifecycle.upload, data, name, content_type, options)
    return create_response("文件上传成功", record.to_public())


@router.post("/multiple", response_model=MultiUploadResponse)
async def upload_multiple(
    files: Optional[list[UploadFile]] = File(None),
    options: UploadOptions = Depends(get_upload_options),
    services: CdnServices = Depends(get_services),
):
    """逐个上传，返回每个文件的结果；单个失败不影响其它文件。"""
    if not files:
        raise ValidationFailed("未提供文件")
    outcomes: list[UploadOutcome] = []
    for upload in files:
        try:
            payload = await _read_upload(upload)
        except ValidationFailed as exc:
            outcomes.append(UploadOutcome(name=upload.filename or "", status="failure", message=exc.message))
            continue
        outcomes.extend(await run_in_threadpool(services.lifecycle.upload_many, [payload], options))
    succeeded = sum(1 for outcome in outcomes if outcome.status == "success")
    return create_response(
        f"成功上传 {succeeded} 个文件，失败 {len(outcomes) - succeeded} 个",
        [outcome.to_public() for outcome in outcomes],
    )


@router.post("/url", response_model=UploadResponse)
def upload_from_url(
    body: UrlUploadBody,
    options: UploadOptions = Depends(get_upload_options),
    services: CdnServices = Depends(get_services),
):
    record = services.lifecycle.upload_from_url(body.url, filename=body.filename, options=options)
    return create_response("远程文件上传成功", record.to_public())


@router.post("/base64", response_model=UploadResponse)
def upload_from_base64(
    body: Base64UploadBody,
    options: UploadOptions = Depends(get_upload_options),
    services: CdnServices = Depends(get_services),
):
    record = services.lifecycle.upload_base64(body.data, body.filename, body.mime_type, options)
    return create_response("base64 文件上传成功", record.to_public())
