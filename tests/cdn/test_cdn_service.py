"""CDN 读取测试：预设、显式变换、参数解析与缓存命中。"""

import io

import pytest
from PIL import Image

from app.packages.cdn.core.constants import PRESETS
from app.packages.cdn.core.enums import FitPolicy, ImageFormat
from app.packages.cdn.core.exceptions import AccessDenied, NotFound, ValidationFailed
from app.packages.cdn.models.file_record import UploadOptions
from app.packages.cdn.services.cdn_service import parse_transform_params, preset_descriptor


def test_preset_on_non_image_returns_original(services):
    record = services.lifecycle.upload(b"plain text body", "readme.txt", "text/plain")

    result = services.cdn.preset(record.id, "avatar")
    assert result.data is None
    assert result.path.read_bytes() == b"plain text body"
    assert result.media_type == "text/plain"
    assert result.record.downloads == 1


def test_preset_on_image(services, make_image):
    record = services.lifecycle.upload(make_image(640, 480), "p.png", "image/png")

    result = services.cdn.preset(record.id, "small")
    with Image.open(io.BytesIO(result.data)) as img:
        assert img.size == (150, 150)
    assert result.cache_hit is False
    assert services.cdn.preset(record.id, "small").cache_hit is True
    assert services.lifecycle.get_file(record.id).downloads == 2


def test_unknown_preset(services, make_image):
    record = services.lifecycle.upload(make_image(20, 20), "p.png", "image/png")
    with pytest.raises(NotFound):
        services.cdn.preset(record.id, "gigantic")


def test_transform_rejects_non_image(services):
    record = services.lifecycle.upload(b"%PDF-1.4", "doc.pdf", "application/pdf")
    with pytest.raises(ValidationFailed):
        services.cdn.transform(record.id, parse_transform_params(w="100"))
    assert services.lifecycle.get_file(record.id).downloads == 0


def test_transform_private_image_requires_authentication(services, make_image):
    record = services.lifecycle.upload(
        make_image(50, 50), "p.png", "image/png", UploadOptions(is_public=False)
    )
    with pytest.raises(AccessDenied):
        services.cdn.transform(record.id, parse_transform_params(w="10"))


def test_transform_output_format(services, make_image):
    record = services.lifecycle.upload(make_image(120, 60), "p.png", "image/png")
    result = services.cdn.transform(record.id, parse_transform_params(w="60", f="png", grayscale="true"))
    assert result.media_type == "image/png"
    with Image.open(io.BytesIO(result.data)) as img:
        assert img.size == (60, 30)
        assert img.mode in ("L", "LA")


def test_parse_transform_params():
    descriptor = parse_transform_params(w="100", h="50", q="70", f="WEBP", fit="Cover", blur="2.5", grayscale="1")
    assert descriptor.width == 100
    assert descriptor.height == 50
    assert descriptor.quality == 70
    assert descriptor.format == ImageFormat.WEBP
    assert descriptor.fit == FitPolicy.COVER
    assert descriptor.blur == 2.5
    assert descriptor.grayscale is True
    assert descriptor.allow_enlargement is False

    empty = parse_transform_params(w="", f="", grayscale="false")
    assert empty.width is None and empty.format is None and empty.grayscale is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"w": "abc"},
        {"w": "0"},
        {"q": "101"},
        {"f": "gif"},
        {"fit": "stretch"},
        {"blur": "-1"},
    ],
)
def test_parse_transform_params_rejects_bad_values(kwargs):
    with pytest.raises(ValidationFailed):
        parse_transform_params(**kwargs)


def test_every_preset_is_a_valid_descriptor():
    for name in PRESETS:
        descriptor = preset_descriptor(name)
        assert descriptor.resizes
    assert preset_descriptor("avatar").format == ImageFormat.WEBP
    assert preset_descriptor("blur").blur == 10
