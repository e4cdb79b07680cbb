"""图片处理：基于 Pillow 的固定顺序变换管线。

顺序固定为 缩放 -> 模糊 -> 灰度 -> 编码，未设置的步骤直接跳过，保证同样的输入得到同样的字节。
默认不放大原图；只有描述中显式允许（缩略图）时才会放大到目标尺寸。
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError, features

from app.packages.cdn.core.enums import FitPolicy, ImageFormat
from app.packages.cdn.core.exceptions import TransformFailed
from app.packages.cdn.models.transform import TransformDescriptor

DEFAULT_FIT = FitPolicy.INSIDE

_DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError)


def encoder_available(fmt: ImageFormat) -> bool:
    """当前 Pillow 是否支持该格式的编码。"""
    if fmt in (ImageFormat.JPEG, ImageFormat.PNG):
        return True
    try:
        return bool(features.check(fmt.value))
    except ValueError:
        # 旧版本 Pillow 不认识该特性名
        return False


def effective_format(requested: ImageFormat) -> ImageFormat:
    """根据运行时能力决定最终输出格式：webp/avif 不可用时回退到 jpeg。"""
    return requested if encoder_available(requested) else ImageFormat.JPEG


def read_dimensions(path: Path) -> Tuple[int, int]:
    """只读取文件头获取宽高。"""
    try:
        with Image.open(path) as img:
            return img.size
    except _DECODE_ERRORS as exc:
        raise TransformFailed(f"无法识别图片尺寸: {path.name}") from exc


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA", "L", "LA"):
        return img
    has_alpha = img.mode in ("PA", "RGBa", "La") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def _scaled(size: Tuple[int, int], scale: float) -> Tuple[int, int]:
    return max(1, round(size[0] * scale)), max(1, round(size[1] * scale))


def _resize(img: Image.Image, descriptor: TransformDescriptor) -> Image.Image:
    src_w, src_h = img.size
    enlarge = descriptor.allow_enlargement
    fit = descriptor.fit or DEFAULT_FIT

    # 只给了一个边：按比例缩放，fit 策略不影响结果
    if not (descriptor.width and descriptor.height):
        if descriptor.width:
            scale = descriptor.width / src_w
        else:
            scale = descriptor.height / src_h
        if not enlarge:
            scale = min(scale, 1.0)
        return img.resize(_scaled(img.size, scale), Image.LANCZOS)

    box_w, box_h = descriptor.width, descriptor.height

    if fit in (FitPolicy.INSIDE, FitPolicy.OUTSIDE):
        pick = min if fit == FitPolicy.INSIDE else max
        scale = pick(box_w / src_w, box_h / src_h)
        if not enlarge:
            scale = min(scale, 1.0)
        return img.resize(_scaled(img.size, scale), Image.LANCZOS)

    if not enlarge:
        box_w, box_h = min(box_w, src_w), min(box_h, src_h)

    if fit == FitPolicy.FILL:
        return img.resize((box_w, box_h), Image.LANCZOS)

    if fit == FitPolicy.COVER:
        return ImageOps.fit(img, (box_w, box_h), Image.LANCZOS, centering=(0.5, 0.5))

    # contain：等比缩进框内，其余部分以透明/黑色填充
    scale = min(box_w / src_w, box_h / src_h)
    inner = img.resize(_scaled(img.size, scale), Image.LANCZOS)
    background = tuple(0 for _ in img.getbands())
    canvas = Image.new(img.mode, (box_w, box_h), background)
    canvas.paste(inner, ((box_w - inner.width) // 2, (box_h - inner.height) // 2))
    return canvas


def _encode(img: Image.Image, fmt: ImageFormat, quality: int) -> bytes:
    out = io.BytesIO()
    if fmt == ImageFormat.JPEG:
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(out, format="JPEG", quality=quality, optimize=True)
    elif fmt == ImageFormat.PNG:
        img.save(out, format="PNG", optimize=True)
    elif fmt == ImageFormat.WEBP:
        img.save(out, format="WEBP", quality=quality, method=6)
    else:
        img.save(out, format="AVIF", quality=quality)
    return out.getvalue()


def transform(
    data: bytes,
    descriptor: TransformDescriptor,
    *,
    default_quality: int = 80,
    max_blur: float = 100.0,
) -> Tuple[bytes, ImageFormat]:
    """执行变换管线，返回编码后的字节与实际输出格式。"""
    fmt = effective_format(descriptor.target_format)
    quality = descriptor.quality or default_quality
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            img = _normalize_mode(source)

            if descriptor.resizes:
                img = _resize(img, descriptor)

            if descriptor.blur:
                img = img.filter(ImageFilter.GaussianBlur(radius=min(descriptor.blur, max_blur)))

            if descriptor.grayscale:
                img = img.convert("LA" if "A" in img.mode else "L")

            return _encode(img, fmt, quality), fmt
    except _DECODE_ERRORS as exc:
        raise TransformFailed(f"图片变换失败: {exc}") from exc


def transform_file(path: Path, descriptor: TransformDescriptor, **kwargs) -> Tuple[bytes, ImageFormat]:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise TransformFailed(f"无法读取源文件: {path.name}") from exc
    return transform(data, descriptor, **kwargs)


def media_type_for(fmt: Optional[ImageFormat]) -> str:
    return (fmt or ImageFormat.JPEG).media_type
