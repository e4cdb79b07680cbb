"""配置模块：负责加载和缓存基于环境变量的应用设置。"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 探测项目根目录并加载环境文件，支持通过 ENV_FILE/ENVIRONMENT 定制优先级。
def _detect_base_dir() -> Path:
    """向上遍历目录树，寻找包含 `app` 目录的项目根路径。"""
    current = Path(__file__).resolve()
    for candidate in current.parents:
        if (candidate / "app").is_dir():
            return candidate
    # 回退到文件所在目录，避免在极端情况下抛异常
    return current.parent


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _load_environment() -> None:
    env_file_override = os.getenv("ENV_FILE")
    if env_file_override:
        candidate = BASE_DIR / env_file_override
        if candidate.exists():
            load_dotenv(candidate, override=True, encoding="utf-8")
        return

    base_env = BASE_DIR / ".env"
    if base_env.exists():
        load_dotenv(base_env, override=False, encoding="utf-8")

    environment = os.getenv("ENVIRONMENT")
    if environment is None and _as_bool(os.getenv("DEBUG")):
        environment = "development"

    if environment:
        if environment.startswith(".env"):
            candidate_name = environment
        else:
            candidate_name = f".env.{environment}"
        candidate_path = BASE_DIR / candidate_name
        if candidate_path.exists():
            load_dotenv(candidate_path, override=True, encoding="utf-8")


_load_environment()


def _split_csv(raw: Optional[str]) -> list[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """
    封装文件 CDN 服务运行所需的所有配置项，每个字段都可以通过环境变量重写。
    服务容器在启动时读取一次，并通过依赖注入传递给各组件。
    """

    project_name: str = Field(default="File Upload & CDN API", alias="PROJECT_NAME")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    cdn_prefix: str = Field(default="/cdn", alias="CDN_PREFIX")
    debug: bool = Field(default=False, alias="DEBUG")
    app_port: int = Field(default=3000, alias="APP_PORT")
    base_url: str = Field(default="http://localhost:3000", alias="BASE_URL")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # 存储目录
    uploads_dir: str = Field(default="uploads", alias="UPLOADS_DIR")
    data_dir: str = Field(default="data", alias="DATA_DIR")
    cache_dir: str = Field(default="cache", alias="CACHE_DIR")
    index_file_name: str = Field(default="files.json", alias="INDEX_FILE_NAME")

    # 列表分页
    default_page_size: int = Field(default=20, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")

    # 图片处理
    thumbnail_size: int = Field(default=200, alias="THUMBNAIL_SIZE")
    thumbnail_quality: int = Field(default=80, alias="THUMBNAIL_QUALITY")
    default_transform_quality: int = Field(default=80, alias="DEFAULT_TRANSFORM_QUALITY")
    default_resize_quality: int = Field(default=85, alias="DEFAULT_RESIZE_QUALITY")
    max_blur: float = Field(default=100.0, alias="MAX_BLUR")

    # 远程 URL 拉取
    remote_fetch_timeout: float = Field(default=30.0, alias="REMOTE_FETCH_TIMEOUT")
    remote_fetch_max_bytes: int = Field(default=500 * 1024 * 1024, alias="REMOTE_FETCH_MAX_BYTES")

    # 访问凭据（逗号分隔）
    api_keys_raw: str = Field(
        default="test-api-key-123,dev-api-key-456,user-api-key-789",
        alias="API_KEYS",
    )
    admin_api_keys_raw: str = Field(
        default="admin-api-key-001,super-admin-key-002",
        alias="ADMIN_API_KEYS",
    )

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        """组合日志目录与文件名，得到完整的日志文件路径。"""
        return self.log_directory / self.log_file_name

    @property
    def uploads_directory(self) -> Path:
        return self._resolve_path(self.uploads_dir)

    @property
    def data_directory(self) -> Path:
        return self._resolve_path(self.data_dir)

    @property
    def cache_directory(self) -> Path:
        return self._resolve_path(self.cache_dir)

    @property
    def index_file_path(self) -> Path:
        """元数据索引文件的完整路径。"""
        return self.data_directory / self.index_file_name

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")

    @property
    def api_keys(self) -> set[str]:
        return set(_split_csv(self.api_keys_raw))

    @property
    def admin_api_keys(self) -> set[str]:
        return set(_split_csv(self.admin_api_keys_raw))


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量造成性能浪费。"""
    return Settings()
