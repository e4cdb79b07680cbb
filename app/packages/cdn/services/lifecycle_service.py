"""生命周期管理：上传编排、删除、过期清理与内容读取。

上传流程：解析 MIME -> 策略校验 -> 计算校验和 -> 去重 -> 写盘 -> 图片派生数据 -> 写入索引。
去重检查在写盘之前，并且按校验和串行化，同样内容的并发上传只会得到一条记录。
缩略图、尺寸、上传时缩放属于"参考性"数据：失败只记录到 advisory 日志，上传照常完成。

删除流程：删除磁盘文件 -> 清空派生缓存 -> 删除索引记录。
前两步尽力而为，失败会记录并写入报告，但不会阻止记录删除。
过期清理与读取时的惰性淘汰都走同一条删除路径。
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Iterable, Optional, Tuple

import httpx

from app.packages.cdn.core.enums import FileCategory, FitPolicy, ImageFormat
from app.packages.cdn.core.exceptions import CdnError, NotFound, StorageIOFailed, ValidationFailed
from app.packages.cdn.core.guards import ANONYMOUS, AccessContext, ensure_can_read
from app.packages.cdn.core.logger import log_advisory_failure, logger
from app.packages.cdn.core.timezone import after_seconds, now
from app.packages.cdn.models.file_record import FileRecord, FileUpdate, UploadOptions, normalize_tags
from app.packages.cdn.models.results import (
    ContentResult,
    DeleteReport,
    StorageStats,
    UploadOutcome,
)
from app.packages.cdn.models.transform import TransformDescriptor
from app.packages.cdn.services import image_ops
from app.packages.cdn.services.metadata_store import MetadataStore
from app.packages.cdn.services.remote_fetch import fetch_remote
from app.packages.cdn.services.transform_cache import TransformCache
from app.packages.cdn.services.validation import (
    check_policy,
    compute_checksum,
    generate_file_id,
    resolve_mime_type,
    stored_name_for,
)
from app.packages.cdn.utils.fileio import atomic_write_bytes, remove_file, resolve_within
from app.packages.cdn.utils.keyed_lock import KeyedLock

_RESIZABLE_FORMATS = {
    "image/jpeg": ImageFormat.JPEG,
    "image/png": ImageFormat.PNG,
    "image/webp": ImageFormat.WEBP,
    "image/avif": ImageFormat.AVIF,
}


def thumbnail_descriptor(size: int = 200, quality: int = 80) -> TransformDescriptor:
    """固定尺寸的居中裁剪缩略图。"""
    return TransformDescriptor(
        width=size,
        height=size,
        fit=FitPolicy.COVER,
        quality=quality,
        format=ImageFormat.JPEG,
        allow_enlargement=True,
    )


class LifecycleService:
    def __init__(
        self,
        store: MetadataStore,
        cache: TransformCache,
        *,
        uploads_dir: Path,
        base_url: str = "http://localhost:3000",
        cdn_prefix: str = "/cdn",
        thumbnail: Optional[TransformDescriptor] = None,
        default_resize_quality: int = 85,
        remote_timeout: float = 30.0,
        remote_max_bytes: int = 500 * 1024 * 1024,
    ) -> None:
        self.store = store
        self.cache = cache
        self.uploads_dir = Path(uploads_dir)
        self.base_url = base_url.rstrip("/")
        self.cdn_prefix = "/" + cdn_prefix.strip("/")
        self.thumbnail = thumbnail or thumbnail_descriptor()
        self.default_resize_quality = default_resize_quality
        self.remote_timeout = remote_timeout
        self.remote_max_bytes = remote_max_bytes
        self._upload_locks = KeyedLock()

    # ----------------------------
    # 上传
    # ----------------------------
    def storage_path(self, category: FileCategory, stored_name: str) -> Path:
        try:
            return resolve_within(self.uploads_dir, f"{category.value}/{stored_name}")
        except ValueError as exc:
            raise ValidationFailed("非法的存储路径") from exc

    def upload(
        self,
        data: bytes,
        original_name: str,
        declared_mime: Optional[str] = None,
        options: Optional[UploadOptions] = None,
    ) -> FileRecord:
        """上传单个文件；内容已存在时直接返回已有记录。"""
        options = options or UploadOptions()
        if data is None:
            raise ValidationFailed("未提供文件")
        if not (original_name or "").strip():
            raise ValidationFailed("文件名不能为空")

        mime_type = resolve_mime_type(declared_mime, original_name)
        category = check_policy(mime_type, len(data))
        checksum = compute_checksum(data)
        uploaded_at = now()
        expires_at = after_seconds(options.expires_in, start=uploaded_at) if options.expires_in else None

        with self._upload_locks.hold(checksum):
            existing = self.store.find_by_checksum(checksum)
            if existing is not None:
                logger.info("Duplicate upload '%s' resolved to existing file %s", original_name, existing.id)
                return existing

            file_id = self.store.reserve_id(generate_file_id)
            stored_name = stored_name_for(file_id, original_name)
            path = self.storage_path(category, stored_name)
            try:
                atomic_write_bytes(path, data)
            except OSError as exc:
                logger.exception("Failed to write upload %s to %s", file_id, path)
                raise StorageIOFailed("文件写入失败") from exc

            try:
                width: Optional[int] = None
                height: Optional[int] = None
                thumbnail_present = False
                if category == FileCategory.IMAGES:
                    width, height, thumbnail_present = self._derive_image_data(file_id, path, mime_type, options)

                record = FileRecord(
                    id=file_id,
                    checksum=checksum,
                    original_name=original_name,
                    stored_name=stored_name,
                    mime_type=mime_type,
                    category=category,
                    size=self._stored_size(path, len(data)),
                    tags=options.tags,
                    width=width,
                    height=height,
                    thumbnail_present=thumbnail_present,
                    uploaded_at=uploaded_at,
                    expires_at=expires_at,
                    downloads=0,
                    is_public=options.is_public,
                    path=str(path),
                    public_url=f"{self.base_url}{self.cdn_prefix}/{file_id}",
                    thumbnail_url=f"{self.base_url}{self.cdn_prefix}/thumb/{file_id}" if thumbnail_present else None,
                )
                self.store.put(record)
            except Exception:
                # 记录未落盘：回收已写入的文件与缓存，避免留下无主对象
                self._discard_files(file_id, path)
                raise

        logger.info("Uploaded %s as %s (%s, %d bytes)", original_name, file_id, category.value, record.size)
        return record

    def upload_many(
        self,
        files: Iterable[Tuple[str, bytes, Optional[str]]],
        options: Optional[UploadOptions] = None,
    ) -> list[UploadOutcome]:
        """逐个上传，单个文件失败不影响其余文件。"""
        outcomes: list[UploadOutcome] = []
        for name, data, mime_type in files:
            try:
                record = self.upload(data, name, mime_type, options)
            except CdnError as exc:
                logger.warning("Upload of %s rejected: %s", name, exc.message)
                outcomes.append(UploadOutcome(name=name, status="failure", message=exc.message))
                continue
            outcomes.append(UploadOutcome(name=name, status="success", message="文件上传成功", record=record))
        return outcomes

    def upload_from_url(
        self,
        url: str,
        *,
        filename: Optional[str] = None,
        options: Optional[UploadOptions] = None,
        client: Optional[httpx.Client] = None,
    ) -> FileRecord:
        remote = fetch_remote(
            url,
            filename=filename,
            timeout=self.remote_timeout,
            max_bytes=self.remote_max_bytes,
            client=client,
        )
        return self.upload(remote.data, remote.name, remote.content_type, options)

    def upload_base64(
        self,
        payload: str,
        filename: str,
        mime_type: Optional[str] = None,
        options: Optional[UploadOptions] = None,
    ) -> FileRecord:
        """支持纯 base64 或 ``data:<mime>;base64,<data>`` 形式。"""
        raw = (payload or "").strip()
        if raw.startswith("data:") and "," in raw:
            header, raw = raw.split(",", 1)
            declared = header[len("data:"):].split(";", 1)[0]
            mime_type = mime_type or declared or None
        try:
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationFailed("base64 数据格式不正确") from exc
        return self.upload(data, filename, mime_type, options)

    def _derive_image_data(
        self,
        file_id: str,
        path: Path,
        mime_type: str,
        options: UploadOptions,
    ) -> Tuple[Optional[int], Optional[int], bool]:
        width: Optional[int] = None
        height: Optional[int] = None
        thumbnail_present = False

        try:
            width, height = image_ops.read_dimensions(path)
        except CdnError as exc:
            log_advisory_failure("dimensions", file_id, exc)

        if options.generate_thumbnail:
            try:
                self.cache.get(file_id, path, self.thumbnail)
                thumbnail_present = True
            except CdnError as exc:
                log_advisory_failure("thumbnail", file_id, exc)

        if options.wants_resize:
            try:
                width, height = self._resize_in_place(path, mime_type, options)
            except (CdnError, OSError) as exc:
                log_advisory_failure("resize", file_id, exc)

        return width, height, thumbnail_present

    def _resize_in_place(self, path: Path, mime_type: str, options: UploadOptions) -> Tuple[int, int]:
        """按 maxWidth/maxHeight 等比缩小并覆盖原文件，保持原编码格式。"""
        fmt = _RESIZABLE_FORMATS.get(mime_type)
        if fmt is None or image_ops.effective_format(fmt) != fmt:
            raise ValidationFailed(f"不支持对 {mime_type} 做上传时缩放")
        descriptor = TransformDescriptor(
            width=options.max_width,
            height=options.max_height,
            fit=FitPolicy.INSIDE,
            quality=options.quality or self.default_resize_quality,
            format=fmt,
        )
        data, _ = image_ops.transform_file(path, descriptor)
        atomic_write_bytes(path, data)
        return image_ops.read_dimensions(path)

    @staticmethod
    def _stored_size(path: Path, fallback: int) -> int:
        try:
            return path.stat().st_size
        except OSError:
            return fallback

    def _discard_files(self, file_id: str, path: Path) -> None:
        try:
            remove_file(path)
            self.cache.purge(file_id)
        except (OSError, StorageIOFailed):
            logger.exception("Failed to roll back files of aborted upload %s; leaving orphan", file_id)

    # ----------------------------
    # 查询与读取
    # ----------------------------
    def get_file(self, file_id: str) -> FileRecord:
        """按 id 获取存活记录；已过期的记录在此处被物理删除。"""
        record = self.store.get(file_id, include_expired=True)
        if record is None:
            raise NotFound("文件不存在")
        if record.is_expired():
            logger.info("File %s expired at %s, evicting on read", file_id, record.expires_at)
            self.delete_file(file_id)
            raise NotFound("文件不存在")
        return record

    def authorize(self, file_id: str, access: AccessContext = ANONYMOUS) -> FileRecord:
        """获取存活记录并校验调用方是否可以读取其内容。"""
        record = self.get_file(file_id)
        ensure_can_read(record, access)
        path = Path(record.path)
        if not path.is_file():
            logger.error("File %s is indexed but missing on disk: %s", file_id, path)
            raise StorageIOFailed("文件内容丢失")
        return record

    def record_download(self, file_id: str) -> FileRecord:
        updated = self.store.increment_downloads(file_id)
        if updated is None:
            raise NotFound("文件不存在")
        return updated

    def read_content(self, file_id: str, access: AccessContext = ANONYMOUS) -> ContentResult:
        """读取原始内容：校验可见性，下载计数 +1，返回文件路径。"""
        record = self.authorize(file_id, access)
        updated = self.record_download(file_id)
        return ContentResult(record=updated, media_type=updated.mime_type, path=Path(record.path))

    def get_thumbnail(self, file_id: str, access: AccessContext = ANONYMOUS) -> ContentResult:
        """返回缩略图；缓存产物丢失时按原图重新生成。缩略图读取不计入下载次数。"""
        record = self.authorize(file_id, access)
        if not record.thumbnail_present:
            raise NotFound("缩略图不存在")
        artifact = self.cache.get(file_id, Path(record.path), self.thumbnail)
        return ContentResult(record=record, media_type=artifact.media_type, data=artifact.data, cache_hit=artifact.hit)

    def get_stats(self) -> StorageStats:
        stats = StorageStats()
        for record in self.store.enumerate():
            usage = stats.by_category[record.category]
            usage.count += 1
            usage.size += record.size
            stats.total_files += 1
            stats.total_size += record.size
        return stats

    # ----------------------------
    # 修改
    # ----------------------------
    def update_file(self, file_id: str, update: FileUpdate) -> FileRecord:
        record = self.get_file(file_id)
        changes: dict = {}
        if update.is_public is not None:
            changes["is_public"] = update.is_public
        if update.tags is not None:
            changes["tags"] = normalize_tags(update.tags)
        if update.expires_in is not None:
            changes["expires_at"] = after_seconds(update.expires_in)
        if not changes:
            return record
        updated = self.store.update(file_id, **changes)
        if updated is None:
            raise NotFound("文件不存在")
        logger.info("Updated file %s: %s", file_id, ", ".join(sorted(changes)))
        return updated

    # ----------------------------
    # 删除与过期清理
    # ----------------------------
    def delete_file(self, file_id: str) -> DeleteReport:
        """删除磁盘文件、派生缓存与记录；记录不存在时 ``deleted=False``。

        与上传共用按校验和的锁，去重命中的记录不会在返回途中被删除。
        """
        record = self.store.get(file_id, include_expired=True)
        if record is None:
            return DeleteReport(file_id=file_id, deleted=False)

        with self._upload_locks.hold(record.checksum):
            if self.store.get(file_id, include_expired=True) is None:
                return DeleteReport(file_id=file_id, deleted=False)

            report = DeleteReport(file_id=file_id, deleted=False)
            try:
                remove_file(Path(record.path))
            except OSError as exc:
                logger.warning("Failed to delete %s from disk: %s", record.path, exc)
                report.errors.append(f"磁盘文件删除失败: {exc}")
            try:
                self.cache.purge(file_id)
            except StorageIOFailed as exc:
                logger.warning("Failed to purge cache for %s: %s", file_id, exc.message)
                report.errors.append(exc.message)

            report.deleted = self.store.delete(file_id)
        if report.deleted:
            logger.info("Deleted file %s", file_id)
        return report

    def delete_many(self, file_ids: Iterable[str]) -> dict[str, list[str]]:
        deleted: list[str] = []
        failed: list[str] = []
        for file_id in file_ids:
            try:
                report = self.delete_file(file_id)
            except StorageIOFailed as exc:
                logger.error("Failed to delete %s: %s", file_id, exc.message)
                failed.append(file_id)
                continue
            (deleted if report.deleted else failed).append(file_id)
        return {"deleted": deleted, "failed": failed}

    def cleanup_expired(self) -> int:
        """删除所有已过期的记录，返回本次实际删除的数量。"""
        moment = now()
        count = 0
        for record in self.store.enumerate(include_expired=True):
            if not record.is_expired(moment):
                continue
            if self.delete_file(record.id).deleted:
                count += 1
        if count:
            logger.info("Expiration sweep removed %d file(s)", count)
        return count
