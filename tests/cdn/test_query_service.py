"""列表查询测试：分页不变量、稳定排序、过滤与参数校验。"""

from datetime import timedelta

import pytest

from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.core.exceptions import ValidationFailed
from app.packages.cdn.core.timezone import now
from app.packages.cdn.models.file_record import FileRecord
from app.packages.cdn.services.metadata_store import MetadataStore
from app.packages.cdn.services.query_service import QueryService

BASE_TIME = now()


def make_record(index: int, **overrides) -> FileRecord:
    file_id = f"id{index:010d}"
    values = {
        "id": file_id,
        "checksum": f"sum-{index}",
        "original_name": f"file-{index}.txt",
        "stored_name": f"{file_id}.txt",
        "mime_type": "text/plain",
        "category": FileCategory.DOCUMENTS,
        "size": 100,
        "uploaded_at": BASE_TIME + timedelta(seconds=index),
        "path": f"/nonexistent/{file_id}",
        "public_url": f"http://testserver/cdn/{file_id}",
    }
    values.update(overrides)
    return FileRecord(**values)


@pytest.fixture()
def store(tmp_path) -> MetadataStore:
    store = MetadataStore(tmp_path / "files.json")
    store.load()
    return store


@pytest.fixture()
def query(store) -> QueryService:
    return QueryService(store, default_limit=20, max_limit=100)


def test_pages_partition_the_result_set(store, query):
    for index in range(45):
        store.put(make_record(index, size=index % 3))

    seen = []
    first = query.list_files(sort_by="size", sort_order="asc", page=1, limit=10)
    assert first.total == 45
    assert first.total_pages == 5
    for page in range(1, first.total_pages + 1):
        result = query.list_files(sort_by="size", sort_order="asc", page=page, limit=10)
        seen.extend(record.id for record in result.items)

    assert len(seen) == 45
    assert len(set(seen)) == 45


def test_ties_are_broken_by_id(store, query):
    for index in (3, 1, 2):
        store.put(make_record(index, size=7))

    for order in ("asc", "desc"):
        result = query.list_files(sort_by="size", sort_order=order)
        assert [record.id for record in result.items] == ["id0000000001", "id0000000002", "id0000000003"]


def test_default_order_is_newest_first(store, query):
    for index in range(3):
        store.put(make_record(index))
    result = query.list_files()
    assert [record.id for record in result.items] == ["id0000000002", "id0000000001", "id0000000000"]
    assert result.limit == 20


def test_page_past_the_end_is_empty(store, query):
    store.put(make_record(1))
    result = query.list_files(page=5, limit=10)
    assert result.items == []
    assert result.total == 1
    assert result.total_pages == 1


def test_empty_store(query):
    result = query.list_files()
    assert result.total == 0
    assert result.total_pages == 0


def test_category_and_search_filters(store, query):
    store.put(make_record(1, original_name="Holiday.JPG", category=FileCategory.IMAGES, mime_type="image/jpeg"))
    store.put(make_record(2, original_name="report.pdf", tags=["Holiday", "work"]))
    store.put(make_record(3, original_name="notes.txt"))

    images = query.list_files(category="images")
    assert [record.id for record in images.items] == ["id0000000001"]

    found = query.list_files(search="HOLIDAY", sort_order="asc")
    assert [record.id for record in found.items] == ["id0000000001", "id0000000002"]

    both = query.list_files(category=FileCategory.DOCUMENTS, search="holi")
    assert [record.id for record in both.items] == ["id0000000002"]


def test_expired_records_are_not_listed(store, query):
    store.put(make_record(1, expires_at=now() - timedelta(seconds=1)))
    store.put(make_record(2))
    result = query.list_files()
    assert result.total == 1
    assert result.items[0].id == "id0000000002"


def test_sort_by_name_downloads(store, query):
    store.put(make_record(1, original_name="b.txt", downloads=5))
    store.put(make_record(2, original_name="A.txt", downloads=9))
    by_name = query.list_files(sort_by="originalName", sort_order="asc")
    assert [record.original_name for record in by_name.items] == ["A.txt", "b.txt"]
    by_downloads = query.list_files(sort_by="downloads", sort_order="desc")
    assert [record.downloads for record in by_downloads.items] == [9, 5]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"page": 0},
        {"limit": 0},
        {"limit": 101},
        {"sort_by": "name"},
        {"sort_order": "sideways"},
        {"category": "pictures"},
    ],
)
def test_invalid_arguments(query, kwargs):
    with pytest.raises(ValidationFailed):
        query.list_files(**kwargs)
