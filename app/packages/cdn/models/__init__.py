"""模型包初始化，便于统一导入。"""

from app.packages.cdn.models.file_record import FileRecord, FileUpdate, UploadOptions
from app.packages.cdn.models.results import (
    ArtifactResult,
    CategoryUsage,
    ContentResult,
    DeleteReport,
    ListPage,
    StorageStats,
    UploadOutcome,
)
from app.packages.cdn.models.transform import TransformDescriptor

__all__ = [
    "ArtifactResult",
    "CategoryUsage",
    "ContentResult",
    "DeleteReport",
    "FileRecord",
    "FileUpdate",
    "ListPage",
    "StorageStats",
    "TransformDescriptor",
    "UploadOptions",
    "UploadOutcome",
]
