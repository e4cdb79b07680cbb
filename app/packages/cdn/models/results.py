"""服务层返回给边界层的结果结构。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.models.file_record import FileRecord


@dataclass
class ListPage:
    items: list[FileRecord]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class CategoryUsage:
    count: int = 0
    size: int = 0


@dataclass
class StorageStats:
    total_files: int = 0
    total_size: int = 0
    by_category: dict[FileCategory, CategoryUsage] = field(
        default_factory=lambda: {category: CategoryUsage() for category in FileCategory}
    )

    def to_public(self) -> dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "totalSize": self.total_size,
            "byCategory": {
                category.value: {"count": usage.count, "size": usage.size}
                for category, usage in self.by_category.items()
            },
        }


@dataclass
class DeleteReport:
    """删除结果：``deleted`` 表示记录已移除；``errors`` 为尽力清理步骤中的失败。"""

    file_id: str
    deleted: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class ArtifactResult:
    data: bytes
    hit: bool
    media_type: str


@dataclass
class ContentResult:
    """内容读取结果：原始文件路径或变换后的字节。"""

    record: FileRecord
    media_type: str
    path: Optional[Path] = None
    data: Optional[bytes] = None
    cache_hit: Optional[bool] = None


@dataclass
class UploadOutcome:
    name: str
    status: str  # "success" | "failure"
    message: str
    record: Optional[FileRecord] = None

    def to_public(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "data": self.record.to_public() if self.record else None,
        }
