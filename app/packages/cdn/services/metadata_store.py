"""元数据存储：进程内权威索引 + 单个 JSON 文件全量落盘。

约定：
- 所有变更（插入/覆盖/更新/删除/计数自增）在同一把写锁内完成，并在返回前把整个索引重写到磁盘；
  落盘失败时回滚内存中的变更，索引永远不会领先于磁盘；
- 记录对象不可变，变更时整体替换，读操作无需加锁也不会看到"改了一半"的记录；
- 过期记录对所有读路径不可见（``include_expired=True`` 仅供生命周期管理做物理删除）；
- 启动时索引文件是唯一事实来源；文件不存在即为空库。
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from app.packages.cdn.core.exceptions import StorageIOFailed
from app.packages.cdn.core.logger import logger
from app.packages.cdn.core.timezone import now
from app.packages.cdn.models.file_record import FileRecord
from app.packages.cdn.utils.fileio import atomic_write_text


class MetadataStore:
    def __init__(self, index_path: Path) -> None:
        self.index_path = Path(index_path)
        self._records: dict[str, FileRecord] = {}
        self._by_checksum: dict[str, str] = {}
        self._issued_ids: set[str] = set()
        self._write_lock = threading.RLock()

    # ----------------------------
    # 启动 / 关闭
    # ----------------------------
    def load(self) -> int:
        """从索引文件重建内存状态，返回加载的记录数。"""
        with self._write_lock:
            records = self._read_index()
            self._records = records
            self._by_checksum = {record.checksum: record.id for record in records.values()}
            self._issued_ids.update(records)

        missing = [record.id for record in records.values() if not Path(record.path).exists()]
        if missing:
            logger.warning("Index references %d file(s) missing on disk: %s", len(missing), ", ".join(missing[:10]))
        logger.info("Metadata store loaded %d record(s) from %s", len(records), self.index_path)
        return len(records)

    def close(self) -> None:
        # 每次变更都已同步落盘，这里只需等待正在进行的写操作结束
        with self._write_lock:
            logger.info("Metadata store closed with %d record(s)", len(self._records))

    def _read_index(self) -> dict[str, FileRecord]:
        if not self.index_path.exists():
            return {}
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("index root must be an object keyed by id")
            return {key: FileRecord.model_validate(value) for key, value in raw.items()}
        except (ValueError, ValidationError, UnicodeDecodeError) as exc:
            # json.JSONDecodeError 是 ValueError 的子类
            quarantine = self.index_path.with_name(
                f"{self.index_path.name}.corrupt-{now().strftime('%Y%m%d%H%M%S')}"
            )
            self.index_path.replace(quarantine)
            logger.error("Metadata index unreadable, moved to %s; starting empty: %s", quarantine, exc)
            return {}

    def _persist(self) -> None:
        payload = {
            file_id: record.model_dump(mode="json", by_alias=True)
            for file_id, record in self._records.items()
        }
        atomic_write_text(self.index_path, json.dumps(payload, ensure_ascii=False, indent=2))

    # ----------------------------
    # id 分配
    # ----------------------------
    def reserve_id(self, generate: Callable[[], str]) -> str:
        """生成本进程内从未出现过的 id（包括已删除记录的 id）。"""
        with self._write_lock:
            file_id = generate()
            while file_id in self._issued_ids:
                file_id = generate()
            self._issued_ids.add(file_id)
            return file_id

    # ----------------------------
    # 写操作
    # ----------------------------
    def put(self, record: FileRecord) -> FileRecord:
        """按 id 插入或覆盖，落盘成功后返回。"""
        with self._write_lock:
            previous = self._records.get(record.id)
            self._apply(record.id, record)
            try:
                self._persist()
            except OSError as exc:
                self._apply(record.id, previous)
                raise StorageIOFailed(f"元数据索引写入失败: {record.id}") from exc
            self._issued_ids.add(record.id)
            return record

    def delete(self, file_id: str) -> bool:
        """删除记录；不存在时返回 ``False``。"""
        with self._write_lock:
            previous = self._records.get(file_id)
            if previous is None:
                return False
            self._apply(file_id, None)
            try:
                self._persist()
            except OSError as exc:
                self._apply(file_id, previous)
                raise StorageIOFailed(f"元数据索引写入失败: {file_id}") from exc
            return True

    def update(self, file_id: str, **changes: Any) -> Optional[FileRecord]:
        """对存活记录做读-改-写，整个过程持有写锁。"""
        with self._write_lock:
            current = self.get(file_id)
            if current is None:
                return None
            return self.put(current.model_copy(update=changes))

    def increment_downloads(self, file_id: str) -> Optional[FileRecord]:
        with self._write_lock:
            current = self.get(file_id)
            if current is None:
                return None
            return self.put(current.model_copy(update={"downloads": current.downloads + 1}))

    def _apply(self, file_id: str, record: Optional[FileRecord]) -> None:
        previous = self._records.get(file_id)
        if previous is not None and self._by_checksum.get(previous.checksum) == file_id:
            del self._by_checksum[previous.checksum]
        if record is None:
            self._records.pop(file_id, None)
            return
        self._records[file_id] = record
        self._by_checksum[record.checksum] = file_id

    # ----------------------------
    # 读操作
    # ----------------------------
    def get(self, file_id: str, *, include_expired: bool = False, at: Optional[datetime] = None) -> Optional[FileRecord]:
        record = self._records.get(file_id)
        if record is None:
            return None
        if not include_expired and record.is_expired(at):
            return None
        return record

    def find_by_checksum(self, checksum: str, *, at: Optional[datetime] = None) -> Optional[FileRecord]:
        """只有未过期的记录才能作为去重候选。"""
        file_id = self._by_checksum.get(checksum)
        if file_id is None:
            return None
        return self.get(file_id, at=at)

    def enumerate(self, *, include_expired: bool = False, at: Optional[datetime] = None) -> list[FileRecord]:
        """返回记录快照，顺序不作保证。"""
        moment = at or now()
        records = list(self._records.values())
        if include_expired:
            return records
        return [record for record in records if not record.is_expired(moment)]

    def __len__(self) -> int:
        return len(self._records)
