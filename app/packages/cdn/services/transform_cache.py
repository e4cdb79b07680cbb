"""派生产物缓存：懒生成 + 磁盘持久化。

- 接口：get(file_id, source_path, descriptor) -> ArtifactResult(data, hit, media_type)
  - 首次生成并落盘，之后直接读取；
  - 文件放在 <cache_dir>/<file_id>/<file_id>_<参数串>.<格式>
- purge(file_id)：删除该文件 id 下的全部产物，源文件删除时同步调用。

缓存只通过 file id 弱引用源记录，不参与记录的生命周期。
未命中时按 file id 加锁：同一参数集只计算一次，purge 与计算互斥，删除后不会残留新写入的产物。
产物先写临时文件再原子改名，读方不会看到半截内容。
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from app.packages.cdn.core.exceptions import StorageIOFailed
from app.packages.cdn.core.logger import logger
from app.packages.cdn.models.results import ArtifactResult
from app.packages.cdn.models.transform import TransformDescriptor
from app.packages.cdn.services import image_ops
from app.packages.cdn.utils.fileio import atomic_write_bytes
from app.packages.cdn.utils.keyed_lock import KeyedLock


class TransformCache:
    def __init__(self, cache_dir: Path, *, default_quality: int = 80, max_blur: float = 100.0) -> None:
        self.cache_dir = Path(cache_dir)
        self.default_quality = default_quality
        self.max_blur = max_blur
        self._inflight = KeyedLock()

    def artifact_path(self, file_id: str, descriptor: TransformDescriptor) -> Path:
        return self.cache_dir / file_id / descriptor.cache_key(file_id)

    def contains(self, file_id: str, descriptor: TransformDescriptor) -> bool:
        return self.artifact_path(file_id, descriptor).is_file()

    def get(self, file_id: str, source_path: Path, descriptor: TransformDescriptor) -> ArtifactResult:
        """返回缓存的产物；未命中时计算、落盘后返回。"""
        path = self.artifact_path(file_id, descriptor)
        media_type = image_ops.media_type_for(image_ops.effective_format(descriptor.target_format))

        cached = self._read(path)
        if cached is not None:
            return ArtifactResult(data=cached, hit=True, media_type=media_type)

        with self._inflight.hold(file_id):
            # 等锁期间可能已有其它请求完成了同一计算
            cached = self._read(path)
            if cached is not None:
                return ArtifactResult(data=cached, hit=True, media_type=media_type)

            data, fmt = image_ops.transform_file(
                Path(source_path),
                descriptor,
                default_quality=self.default_quality,
                max_blur=self.max_blur,
            )
            try:
                atomic_write_bytes(path, data)
            except OSError as exc:
                raise StorageIOFailed(f"写入缓存失败: {path.name}") from exc
            logger.debug("Cached artifact %s (%d bytes)", path.name, len(data))
            return ArtifactResult(data=data, hit=False, media_type=fmt.media_type)

    def purge(self, file_id: str) -> int:
        """删除 ``file_id`` 的全部产物，返回删除的文件数。"""
        directory = self.cache_dir / file_id
        with self._inflight.hold(file_id):
            if not directory.is_dir():
                return 0
            removed = sum(1 for entry in directory.iterdir() if entry.is_file())
            try:
                shutil.rmtree(directory)
            except OSError as exc:
                raise StorageIOFailed(f"清理缓存失败: {file_id}") from exc
        if removed:
            logger.info("Purged %d cached artifact(s) for file %s", removed, file_id)
        return removed

    @staticmethod
    def _read(path: Path) -> Optional[bytes]:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageIOFailed(f"读取缓存失败: {path.name}") from exc
