"""测试夹具：为 pytest 提供隔离的存储目录、服务容器与客户端。"""

import io
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.packages.cdn.core.config import Settings
from app.packages.cdn.services.container import CdnServices, build_services

USER_KEY = "test-api-key-123"
ADMIN_KEY = "admin-api-key-001"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """所有目录都指向 ``tmp_path``，测试之间互不影响。"""
    return Settings(
        uploads_dir=str(tmp_path / "uploads"),
        data_dir=str(tmp_path / "data"),
        cache_dir=str(tmp_path / "cache"),
        log_dir=str(tmp_path / "log"),
        base_url="http://testserver",
        api_keys_raw=USER_KEY,
        admin_api_keys_raw=ADMIN_KEY,
    )


@pytest.fixture()
def services(settings: Settings) -> Generator[CdnServices, None, None]:
    container = build_services(settings)
    container.init()
    try:
        yield container
    finally:
        container.close()


@pytest.fixture()
def client(services: CdnServices) -> Generator[TestClient, None, None]:
    """构建 FastAPI TestClient，并注入测试专用的服务容器。"""
    app.state.services = services
    with TestClient(app) as test_client:
        yield test_client
    app.state.services = None


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    """在内存中生成指定尺寸与格式的图片字节。"""

    def _make(width: int = 64, height: int = 48, fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        mode = "RGBA" if fmt == "PNG" and len(color) == 4 else "RGB"
        Image.new(mode, (width, height), color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
