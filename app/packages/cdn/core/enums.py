"""枚举定义：约束文件分类、排序字段以及图片变换参数的可选值。"""

from enum import Enum


class FileCategory(str, Enum):
    """文件分类（封闭集合）。"""

    IMAGES = "images"
    DOCUMENTS = "documents"
    VIDEOS = "videos"
    AUDIO = "audio"
    OTHERS = "others"


class SortField(str, Enum):
    UPLOADED_AT = "uploadedAt"
    SIZE = "size"
    ORIGINAL_NAME = "originalName"
    DOWNLOADS = "downloads"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FitPolicy(str, Enum):
    """缩放时的适配策略，语义与常见 CDN 一致。"""

    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"


ALL_CATEGORIES = "all"
