"""校验与分类：纯函数集合，不触达磁盘。

- MIME -> 分类映射；
- 按分类的大小/类型策略检查；
- 文件名清洗、扩展名提取、内容校验和、短 id 生成。
"""

from __future__ import annotations

import hashlib
import mimetypes
import re
import secrets
import string
from pathlib import PurePath
from typing import Final, Optional

from app.packages.cdn.core.constants import (
    ALLOWED_TYPES,
    DEFAULT_MIME_TYPE,
    DOCUMENT_MARKERS,
    FILE_ID_LENGTH,
    MAX_SIZES,
)
from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.core.exceptions import ValidationFailed

_ID_ALPHABET: Final = string.ascii_lowercase + string.digits
_DISALLOWED = re.compile(r"[^a-z0-9.-]")
_REPEATED_SEPARATORS = re.compile(r"_+")


def classify(mime_type: str) -> FileCategory:
    """根据 MIME 类型判断文件分类。"""
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return FileCategory.IMAGES
    if mime.startswith("video/"):
        return FileCategory.VIDEOS
    if mime.startswith("audio/"):
        return FileCategory.AUDIO
    if mime == "application/pdf" or any(marker in mime for marker in DOCUMENT_MARKERS):
        return FileCategory.DOCUMENTS
    return FileCategory.OTHERS


def format_bytes(size: int) -> str:
    """把字节数格式化为易读字符串，如 ``10 MB``。"""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def check_policy(mime_type: str, size: int) -> FileCategory:
    """检查大小与类型策略，通过时返回分类，否则抛出 ``ValidationFailed``。"""
    category = classify(mime_type)

    max_size = MAX_SIZES[category]
    if size > max_size:
        raise ValidationFailed(
            f"文件大小超过 {category.value} 类别的上限（{format_bytes(max_size)}）",
            data={"reason": "size", "category": category.value, "limit": max_size, "size": size},
        )

    allowed = ALLOWED_TYPES[category]
    if allowed and mime_type not in allowed:
        raise ValidationFailed(
            f"{category.value} 类别不允许上传 {mime_type} 类型的文件",
            data={"reason": "type", "category": category.value, "mimeType": mime_type},
        )
    return category


def sanitize_name(name: str) -> str:
    """小写化，非法字符替换为 ``_``，合并连续分隔符并去掉首尾分隔符。"""
    lowered = (name or "").lower()
    replaced = _DISALLOWED.sub("_", lowered)
    collapsed = _REPEATED_SEPARATORS.sub("_", replaced)
    return collapsed.strip("_")


def get_extension(filename: str) -> str:
    """返回不带点的小写扩展名；没有扩展名时返回空串。"""
    return PurePath(filename or "").suffix.lstrip(".").lower()


def normalize_mime(value: Optional[str]) -> str:
    """去掉参数部分（如 ``; charset=utf-8``）并小写化。"""
    return (value or "").split(";", 1)[0].strip().lower()


def resolve_mime_type(declared: Optional[str], filename: str) -> str:
    """优先使用声明的类型，其次按扩展名推断，最后回退为通用二进制类型。"""
    mime = normalize_mime(declared)
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or DEFAULT_MIME_TYPE


def compute_checksum(content: bytes) -> str:
    """计算 SHA-256 十六进制摘要。"""
    return hashlib.sha256(content).hexdigest()


def generate_file_id() -> str:
    """生成 12 位小写字母数字 id；与文件内容无关。"""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(FILE_ID_LENGTH))


def stored_name_for(file_id: str, original_name: str) -> str:
    """存储文件名由 id 与原扩展名组成，并经过清洗。"""
    extension = sanitize_name(get_extension(original_name))
    return sanitize_name(f"{file_id}.{extension}") if extension else file_id
