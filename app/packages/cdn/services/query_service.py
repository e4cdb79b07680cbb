"""列表查询：分类过滤、名称/标签搜索、排序与分页。

排序是稳定的：先按 id 升序排一遍，再按主键排序，主键相同的记录始终按 id 升序出现，
因此多次分页拼接的结果确定且无重复、无遗漏。
"""

from __future__ import annotations

import math
from typing import Any, Callable, Optional, Union

from app.packages.cdn.core.enums import ALL_CATEGORIES, FileCategory, SortField, SortOrder
from app.packages.cdn.core.exceptions import ValidationFailed
from app.packages.cdn.models.file_record import FileRecord
from app.packages.cdn.models.results import ListPage
from app.packages.cdn.services.metadata_store import MetadataStore

_SORT_KEYS: dict[SortField, Callable[[FileRecord], Any]] = {
    SortField.UPLOADED_AT: lambda record: record.uploaded_at,
    SortField.SIZE: lambda record: record.size,
    SortField.ORIGINAL_NAME: lambda record: record.original_name.lower(),
    SortField.DOWNLOADS: lambda record: record.downloads,
}


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationFailed(f"{label} 取值无效，可选：{choices}") from exc


def matches_search(record: FileRecord, needle: str) -> bool:
    """大小写不敏感：原始文件名或任一标签包含关键字即命中。"""
    if needle in record.original_name.lower():
        return True
    return any(needle in tag.lower() for tag in record.tags or ())


class QueryService:
    def __init__(self, store: MetadataStore, *, default_limit: int = 20, max_limit: int = 100) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    def list_files(
        self,
        *,
        category: Union[FileCategory, str, None] = ALL_CATEGORIES,
        search: Optional[str] = None,
        sort_by: Union[SortField, str, None] = SortField.UPLOADED_AT,
        sort_order: Union[SortOrder, str, None] = SortOrder.DESC,
        page: Optional[int] = 1,
        limit: Optional[int] = None,
    ) -> ListPage:
        page = 1 if page is None else page
        limit = self.default_limit if limit is None else limit
        if page < 1:
            raise ValidationFailed("page 必须大于等于 1")
        if limit < 1 or limit > self.max_limit:
            raise ValidationFailed(f"limit 必须在 1 到 {self.max_limit} 之间")

        sort_field = _coerce(SortField, sort_by or SortField.UPLOADED_AT, "sortBy")
        order = _coerce(SortOrder, sort_order or SortOrder.DESC, "sortOrder")

        records = self.store.enumerate()

        if category and category != ALL_CATEGORIES:
            wanted = _coerce(FileCategory, category, "category")
            records = [record for record in records if record.category == wanted]

        needle = (search or "").strip().lower()
        if needle:
            records = [record for record in records if matches_search(record, needle)]

        records.sort(key=lambda record: record.id)
        records.sort(key=_SORT_KEYS[sort_field], reverse=order == SortOrder.DESC)

        total = len(records)
        total_pages = math.ceil(total / limit)
        start = (page - 1) * limit
        return ListPage(
            items=records[start:start + limit],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
        )
