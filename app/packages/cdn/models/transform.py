"""图片变换描述：一组参数唯一确定一个派生产物。"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from app.packages.cdn.core.enums import FitPolicy, ImageFormat
from app.packages.cdn.models.base import FrozenCamelModel

DEFAULT_FORMAT = ImageFormat.JPEG

# 序列化缓存键时使用的字段名；按字典序排列
_KEY_FIELDS = {
    "blur": "blur",
    "enlarge": "allow_enlargement",
    "fit": "fit",
    "format": "format",
    "grayscale": "grayscale",
    "height": "height",
    "quality": "quality",
    "width": "width",
}


class TransformDescriptor(FrozenCamelModel):
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    format: Optional[ImageFormat] = None
    fit: Optional[FitPolicy] = None
    blur: Optional[float] = Field(default=None, ge=0)
    grayscale: bool = False
    # 仅内部使用（缩略图需要固定尺寸）；CDN 参数无法设置
    allow_enlargement: bool = False

    @property
    def target_format(self) -> ImageFormat:
        return self.format or DEFAULT_FORMAT

    @property
    def resizes(self) -> bool:
        return bool(self.width or self.height)

    def key_fields(self) -> str:
        """已设置字段的规范化串：``k=v`` 以 ``_`` 连接，字段名按字典序。"""
        parts: list[str] = []
        for key in sorted(_KEY_FIELDS):
            value: Any = getattr(self, _KEY_FIELDS[key])
            if value is None or value is False:
                continue
            if isinstance(value, (FitPolicy, ImageFormat)):
                value = value.value
            elif value is True:
                value = "true"
            elif isinstance(value, float) and value.is_integer():
                value = int(value)
            parts.append(f"{key}={value}")
        return "_".join(parts)

    def cache_key(self, file_id: str) -> str:
        """缓存键 = 文件 id + 参数串 + 目标编码。"""
        fields = self.key_fields() or "original"
        return f"{file_id}_{fields}.{self.target_format.value}"
