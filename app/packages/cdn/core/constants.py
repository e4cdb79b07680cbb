"""常量定义：HTTP 状态码、分类策略表与图片变换预设。"""

from app.packages.cdn.core.enums import FileCategory, FitPolicy, ImageFormat

HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_INTERNAL_SERVER_ERROR = 500

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "apiKey"
REQUEST_ID_HEADER = "X-Request-ID"

DEFAULT_MIME_TYPE = "application/octet-stream"

MB = 1024 * 1024

# 过期时间上限：十年（秒）
MAX_EXPIRES_IN = 10 * 365 * 24 * 3600

# 各分类的单文件大小上限（字节）
MAX_SIZES: dict[FileCategory, int] = {
    FileCategory.IMAGES: 10 * MB,
    FileCategory.DOCUMENTS: 50 * MB,
    FileCategory.VIDEOS: 500 * MB,
    FileCategory.AUDIO: 50 * MB,
    FileCategory.OTHERS: 25 * MB,
}

# 各分类允许的 MIME 类型；空集合表示不限制
ALLOWED_TYPES: dict[FileCategory, frozenset[str]] = {
    FileCategory.IMAGES: frozenset(
        {"image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml", "image/avif"}
    ),
    FileCategory.DOCUMENTS: frozenset(
        {
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "application/vnd.ms-powerpoint",
            "application/vnd.openxmlformats-officedocument.presentationml.presentation",
            "text/plain",
            "text/csv",
            "text/markdown",
        }
    ),
    FileCategory.VIDEOS: frozenset(
        {"video/mp4", "video/webm", "video/ogg", "video/quicktime", "video/x-msvideo"}
    ),
    FileCategory.AUDIO: frozenset(
        {"audio/mpeg", "audio/wav", "audio/ogg", "audio/webm", "audio/aac", "audio/flac"}
    ),
    FileCategory.OTHERS: frozenset(),
}

# 命中任一子串即归为文档
DOCUMENT_MARKERS = ("document", "text", "spreadsheet", "presentation")

FILE_ID_LENGTH = 12

# 变换预设：名称 -> 完整描述字段
PRESETS: dict[str, dict] = {
    "small": {"width": 150, "height": 150, "fit": FitPolicy.COVER, "quality": 80},
    "medium": {"width": 400, "height": 400, "fit": FitPolicy.INSIDE, "quality": 85},
    "large": {"width": 800, "height": 800, "fit": FitPolicy.INSIDE, "quality": 90},
    "avatar": {"width": 100, "height": 100, "fit": FitPolicy.COVER, "quality": 80, "format": ImageFormat.WEBP},
    "banner": {"width": 1200, "height": 400, "fit": FitPolicy.COVER, "quality": 85, "format": ImageFormat.WEBP},
    "og": {"width": 1200, "height": 630, "fit": FitPolicy.COVER, "quality": 85},
    "blur": {"width": 20, "blur": 10, "quality": 30},
}

CDN_CACHE_CONTROL = "public, max-age=31536000, immutable"
PRIVATE_CACHE_CONTROL = "private, no-store"
