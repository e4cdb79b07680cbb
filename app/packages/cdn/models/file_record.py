"""文件记录模型：每个已存储对象对应一条，主键为 12 位短 id。"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.packages.cdn.core.constants import MAX_EXPIRES_IN
from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.core.timezone import now, to_aware
from app.packages.cdn.models.base import CamelModel, FrozenCamelModel


def normalize_tags(value: Optional[list[str] | tuple[str, ...]]) -> Optional[tuple[str, ...]]:
    """去除空白与重复标签，保留首次出现的顺序；结果为空时返回 ``None``。"""
    if value is None:
        return None
    seen: dict[str, None] = {}
    for raw in value:
        tag = str(raw).strip()
        if tag and tag not in seen:
            seen[tag] = None
    return tuple(seen) or None


class FileRecord(FrozenCamelModel):
    # 标识
    id: str
    checksum: str
    # 描述
    original_name: str
    stored_name: str
    mime_type: str
    category: FileCategory
    size: int = Field(ge=0)
    tags: Optional[tuple[str, ...]] = None
    # 派生
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail_present: bool = False
    # 访问与生命周期
    uploaded_at: datetime
    expires_at: Optional[datetime] = None
    downloads: int = Field(default=0, ge=0)
    is_public: bool = True
    # 物理位置
    path: str
    public_url: str
    thumbnail_url: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value):
        return normalize_tags(value)

    @field_validator("uploaded_at", "expires_at")
    @classmethod
    def ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_aware(value)

    @property
    def is_image(self) -> bool:
        return self.category == FileCategory.IMAGES

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        """``expires_at`` 早于 ``at``（默认当前时间）即视为过期。"""
        if self.expires_at is None:
            return False
        return self.expires_at < (at or now())


class UploadOptions(CamelModel):
    """上传选项，对应上传接口的查询参数。"""

    generate_thumbnail: bool = True
    max_width: Optional[int] = Field(default=None, gt=0)
    max_height: Optional[int] = Field(default=None, gt=0)
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    is_public: bool = True
    expires_in: Optional[int] = Field(default=None, gt=0, le=MAX_EXPIRES_IN)
    tags: Optional[tuple[str, ...]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value):
        return normalize_tags(value)

    @property
    def wants_resize(self) -> bool:
        return bool(self.max_width or self.max_height)


class FileUpdate(CamelModel):
    """可修改字段：公开标记、标签、过期时间（相对当前的秒数）。"""

    is_public: Optional[bool] = None
    tags: Optional[list[str]] = None
    expires_in: Optional[int] = Field(default=None, gt=0, le=MAX_EXPIRES_IN)
