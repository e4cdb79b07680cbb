"""服务装配：根据配置构建存储、缓存与业务服务，并管理启动/关闭。"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from app.packages.cdn.core.config import Settings, get_settings
from app.packages.cdn.core.logger import logger
from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.services.cdn_service import CdnService
from app.packages.cdn.services.lifecycle_service import LifecycleService, thumbnail_descriptor
from app.packages.cdn.services.metadata_store import MetadataStore
from app.packages.cdn.services.query_service import QueryService
from app.packages.cdn.services.transform_cache import TransformCache


@dataclass
class CdnServices:
    settings: Settings
    store: MetadataStore
    cache: TransformCache
    lifecycle: LifecycleService
    query: QueryService
    cdn: CdnService
    started_at: float = field(default_factory=time.monotonic)

    def init(self) -> None:
        """创建存储目录并从索引文件恢复记录。"""
        for category in FileCategory:
            (self.settings.uploads_directory / category.value).mkdir(parents=True, exist_ok=True)
        self.settings.data_directory.mkdir(parents=True, exist_ok=True)
        self.settings.cache_directory.mkdir(parents=True, exist_ok=True)
        self.store.load()
        self.started_at = time.monotonic()
        logger.info(
            "Storage ready: uploads=%s data=%s cache=%s",
            self.settings.uploads_directory,
            self.settings.data_directory,
            self.settings.cache_directory,
        )

    def close(self) -> None:
        self.store.close()

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at


def build_services(settings: Optional[Settings] = None) -> CdnServices:
    settings = settings or get_settings()
    store = MetadataStore(settings.index_file_path)
    cache = TransformCache(
        settings.cache_directory,
        default_quality=settings.default_transform_quality,
        max_blur=settings.max_blur,
    )
    lifecycle = LifecycleService(
        store,
        cache,
        uploads_dir=settings.uploads_directory,
        base_url=settings.base_url,
        cdn_prefix=settings.cdn_prefix,
        thumbnail=thumbnail_descriptor(settings.thumbnail_size, settings.thumbnail_quality),
        default_resize_quality=settings.default_resize_quality,
        remote_timeout=settings.remote_fetch_timeout,
        remote_max_bytes=settings.remote_fetch_max_bytes,
    )
    return CdnServices(
        settings=settings,
        store=store,
        cache=cache,
        lifecycle=lifecycle,
        query=QueryService(store, default_limit=settings.default_page_size, max_limit=settings.max_page_size),
        cdn=CdnService(lifecycle, cache),
    )
