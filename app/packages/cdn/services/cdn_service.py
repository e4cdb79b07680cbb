"""CDN 读取：原文件、显式变换与预设变换。

每次内容读取都会先做可见性校验，再增加下载计数。
显式变换要求源文件是图片；预设作用在非图片文件上时直接返回原文件。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from app.packages.cdn.core.constants import PRESETS
from app.packages.cdn.core.exceptions import NotFound, ValidationFailed
from app.packages.cdn.core.guards import ANONYMOUS, AccessContext
from app.packages.cdn.models.base import build_model
from app.packages.cdn.models.file_record import FileRecord
from app.packages.cdn.models.results import ContentResult
from app.packages.cdn.models.transform import TransformDescriptor
from app.packages.cdn.services.lifecycle_service import LifecycleService
from app.packages.cdn.services.transform_cache import TransformCache

_TRUTHY = {"1", "true", "yes", "on"}


def preset_descriptor(name: str) -> TransformDescriptor:
    fields = PRESETS.get(name)
    if fields is None:
        raise NotFound(f"预设不存在: {name}")
    return TransformDescriptor(**fields)


def parse_transform_params(
    *,
    w: Optional[Any] = None,
    h: Optional[Any] = None,
    q: Optional[Any] = None,
    f: Optional[str] = None,
    fit: Optional[str] = None,
    blur: Optional[Any] = None,
    grayscale: Optional[Any] = None,
) -> TransformDescriptor:
    """把 CDN 查询参数（w/h/q/f/fit/blur/grayscale）转换为变换描述；空字符串视为未设置。"""
    if isinstance(grayscale, str):
        grayscale = grayscale.strip().lower() in _TRUTHY
    values = {
        "width": w,
        "height": h,
        "quality": q,
        "format": f.lower() if isinstance(f, str) else f,
        "fit": fit.lower() if isinstance(fit, str) else fit,
        "blur": blur,
    }
    values = {key: (None if value == "" else value) for key, value in values.items()}
    return build_model(TransformDescriptor, "图片变换参数无效", grayscale=grayscale, **values)


class CdnService:
    def __init__(self, lifecycle: LifecycleService, cache: TransformCache) -> None:
        self.lifecycle = lifecycle
        self.cache = cache

    def raw(self, file_id: str, access: AccessContext = ANONYMOUS) -> ContentResult:
        return self.lifecycle.read_content(file_id, access)

    def transform(
        self,
        file_id: str,
        descriptor: TransformDescriptor,
        access: AccessContext = ANONYMOUS,
    ) -> ContentResult:
        record = self.lifecycle.authorize(file_id, access)
        if not record.is_image:
            raise ValidationFailed("该文件不是图片，无法进行变换")
        return self._render(record, descriptor)

    def preset(self, file_id: str, name: str, access: AccessContext = ANONYMOUS) -> ContentResult:
        descriptor = preset_descriptor(name)
        record = self.lifecycle.authorize(file_id, access)
        if not record.is_image:
            updated = self.lifecycle.record_download(file_id)
            return ContentResult(record=updated, media_type=updated.mime_type, path=Path(updated.path))
        return self._render(record, descriptor)

    def _render(self, record: FileRecord, descriptor: TransformDescriptor) -> ContentResult:
        artifact = self.cache.get(record.id, Path(record.path), descriptor)
        updated = self.lifecycle.record_download(record.id)
        return ContentResult(
            record=updated,
            media_type=artifact.media_type,
            data=artifact.data,
            cache_hit=artifact.hit,
        )
