"""图片变换管线的单元测试。"""

import io

import pytest
from PIL import Image

from app.packages.cdn.core.enums import FitPolicy, ImageFormat
from app.packages.cdn.core.exceptions import TransformFailed
from app.packages.cdn.models.transform import TransformDescriptor
from app.packages.cdn.services import image_ops


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


@pytest.mark.parametrize(
    ("fit", "expected"),
    [
        (FitPolicy.COVER, (100, 100)),
        (FitPolicy.CONTAIN, (100, 100)),
        (FitPolicy.FILL, (100, 100)),
        (FitPolicy.INSIDE, (100, 50)),
        (FitPolicy.OUTSIDE, (200, 100)),
    ],
)
def test_fit_policies(make_image, fit, expected):
    source = make_image(400, 200)
    data, fmt = image_ops.transform(source, TransformDescriptor(width=100, height=100, fit=fit))
    assert fmt == ImageFormat.JPEG
    assert _open(data).size == expected


def test_single_dimension_keeps_aspect_ratio(make_image):
    data, _ = image_ops.transform(make_image(400, 200), TransformDescriptor(width=100))
    assert _open(data).size == (100, 50)


def test_never_enlarges_by_default(make_image):
    data, _ = image_ops.transform(
        make_image(50, 40),
        TransformDescriptor(width=100, height=100, fit=FitPolicy.INSIDE),
    )
    assert _open(data).size == (50, 40)

    data, _ = image_ops.transform(make_image(50, 40), TransformDescriptor(width=300))
    assert _open(data).size == (50, 40)


def test_enlargement_when_explicitly_allowed(make_image):
    descriptor = TransformDescriptor(width=200, height=200, fit=FitPolicy.COVER, allow_enlargement=True)
    data, _ = image_ops.transform(make_image(50, 40), descriptor)
    assert _open(data).size == (200, 200)


def test_grayscale_and_png_output(make_image):
    data, fmt = image_ops.transform(
        make_image(60, 60),
        TransformDescriptor(grayscale=True, format=ImageFormat.PNG),
    )
    img = _open(data)
    assert fmt == ImageFormat.PNG
    assert img.format == "PNG"
    assert img.mode in ("L", "LA")


def test_output_is_deterministic(make_image):
    source = make_image(120, 80)
    descriptor = TransformDescriptor(width=60, blur=2.5, quality=70)
    first, _ = image_ops.transform(source, descriptor)
    second, _ = image_ops.transform(source, descriptor)
    assert first == second


def test_blur_radius_is_capped(make_image):
    source = make_image(40, 40)
    capped, _ = image_ops.transform(source, TransformDescriptor(blur=500), max_blur=5)
    at_cap, _ = image_ops.transform(source, TransformDescriptor(blur=5), max_blur=5)
    assert capped == at_cap


def test_webp_request_reports_effective_format(make_image):
    data, fmt = image_ops.transform(make_image(30, 30), TransformDescriptor(format=ImageFormat.WEBP))
    assert fmt == image_ops.effective_format(ImageFormat.WEBP)
    assert _open(data).format == ("WEBP" if fmt == ImageFormat.WEBP else "JPEG")


def test_transparent_png_encodes_to_jpeg(make_image):
    data, _ = image_ops.transform(make_image(30, 30, color=(10, 20, 30, 128)), TransformDescriptor())
    assert _open(data).format == "JPEG"


def test_undecodable_input_raises_transform_failed():
    with pytest.raises(TransformFailed):
        image_ops.transform(b"definitely not an image", TransformDescriptor(width=10))


def test_read_dimensions(tmp_path, make_image):
    path = tmp_path / "a.png"
    path.write_bytes(make_image(33, 21))
    assert image_ops.read_dimensions(path) == (33, 21)

    broken = tmp_path / "b.png"
    broken.write_bytes(b"garbage")
    with pytest.raises(TransformFailed):
        image_ops.read_dimensions(broken)
