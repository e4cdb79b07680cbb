"""元数据存储测试：写穿持久化、重启恢复、过期可见性与并发计数。"""

import json
import threading
from datetime import timedelta

import pytest

from app.packages.cdn.core.enums import FileCategory
from app.packages.cdn.core.exceptions import StorageIOFailed
from app.packages.cdn.core.timezone import now
from app.packages.cdn.models.file_record import FileRecord
from app.packages.cdn.services import metadata_store as metadata_store_module
from app.packages.cdn.services.metadata_store import MetadataStore


def make_record(file_id: str, **overrides) -> FileRecord:
    values = {
        "id": file_id,
        "checksum": f"sum-{file_id}",
        "original_name": f"{file_id}.txt",
        "stored_name": f"{file_id}.txt",
        "mime_type": "text/plain",
        "category": FileCategory.DOCUMENTS,
        "size": 10,
        "uploaded_at": now(),
        "path": f"/nonexistent/{file_id}.txt",
        "public_url": f"http://testserver/cdn/{file_id}",
    }
    values.update(overrides)
    return FileRecord(**values)


@pytest.fixture()
def index_path(tmp_path):
    return tmp_path / "data" / "files.json"


@pytest.fixture()
def store(index_path) -> MetadataStore:
    store = MetadataStore(index_path)
    store.load()
    return store


def test_missing_index_means_empty_store(store):
    assert len(store) == 0
    assert store.enumerate() == []


def test_put_is_written_through_and_survives_restart(store, index_path):
    record = make_record("aaaaaaaaaaaa", tags=["b", "a", "b", " "], downloads=3)
    store.put(record)

    raw = json.loads(index_path.read_text(encoding="utf-8"))
    assert raw["aaaaaaaaaaaa"]["originalName"] == "aaaaaaaaaaaa.txt"
    assert raw["aaaaaaaaaaaa"]["tags"] == ["b", "a"]

    reloaded = MetadataStore(index_path)
    assert reloaded.load() == 1
    loaded = reloaded.get("aaaaaaaaaaaa")
    assert loaded is not None
    assert loaded.tags == ("b", "a")
    assert loaded.downloads == 3
    assert loaded.category == FileCategory.DOCUMENTS
    assert loaded.uploaded_at == record.uploaded_at


def test_delete(store, index_path):
    store.put(make_record("bbbbbbbbbbbb"))
    assert store.delete("bbbbbbbbbbbb") is True
    assert store.delete("bbbbbbbbbbbb") is False

    reloaded = MetadataStore(index_path)
    reloaded.load()
    assert "bbbbbbbbbbbb" not in reloaded


def test_expired_records_are_invisible_to_reads(store):
    past = now() - timedelta(seconds=5)
    store.put(make_record("expired00000", expires_at=past))
    store.put(make_record("alive0000000", expires_at=now() + timedelta(hours=1)))

    assert store.get("expired00000") is None
    assert store.get("expired00000", include_expired=True) is not None
    assert store.find_by_checksum("sum-expired00000") is None
    assert [record.id for record in store.enumerate()] == ["alive0000000"]
    assert len(store.enumerate(include_expired=True)) == 2


def test_update_replaces_whole_record(store):
    original = store.put(make_record("cccccccccccc"))
    updated = store.update("cccccccccccc", is_public=False)

    assert updated.is_public is False
    assert original.is_public is True
    assert store.get("cccccccccccc") is updated
    assert store.update("missing00000", is_public=False) is None


def test_concurrent_download_increments_are_not_lost(store, index_path):
    store.put(make_record("dddddddddddd"))

    def worker():
        for _ in range(20):
            store.increment_downloads("dddddddddddd")

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get("dddddddddddd").downloads == 200
    reloaded = MetadataStore(index_path)
    reloaded.load()
    assert reloaded.get("dddddddddddd").downloads == 200


def test_failed_persist_rolls_back(store, monkeypatch):
    store.put(make_record("eeeeeeeeeeee"))

    def boom(path, text):
        raise OSError("disk full")

    monkeypatch.setattr(metadata_store_module, "atomic_write_text", boom)

    with pytest.raises(StorageIOFailed):
        store.put(make_record("ffffffffffff"))
    assert store.get("ffffffffffff") is None

    with pytest.raises(StorageIOFailed):
        store.delete("eeeeeeeeeeee")
    assert store.get("eeeeeeeeeeee") is not None


def test_corrupt_index_is_quarantined(index_path):
    index_path.parent.mkdir(parents=True)
    index_path.write_text("{not json", encoding="utf-8")

    store = MetadataStore(index_path)
    assert store.load() == 0
    assert not index_path.exists()
    assert len(list(index_path.parent.glob("files.json.corrupt-*"))) == 1


def test_reserved_ids_are_never_reissued(store):
    candidates = iter(["samesame0000", "samesame0000", "other0000000"])
    first = store.reserve_id(lambda: next(candidates))
    second = store.reserve_id(lambda: next(candidates))
    assert first == "samesame0000"
    assert second == "other0000000"


def test_deleted_id_is_not_reused(store):
    store.put(make_record("gggggggggggg"))
    store.delete("gggggggggggg")
    candidates = iter(["gggggggggggg", "hhhhhhhhhhhh"])
    assert store.reserve_id(lambda: next(candidates)) == "hhhhhhhhhhhh"


def test_checksum_index_follows_replacement(store):
    store.put(make_record("iiiiiiiiiiii", checksum="shared"))
    assert store.find_by_checksum("shared").id == "iiiiiiiiiiii"
    store.delete("iiiiiiiiiiii")
    assert store.find_by_checksum("shared") is None
