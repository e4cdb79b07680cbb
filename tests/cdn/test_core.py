"""基础设施测试：错误映射、日志配置与运行配置。"""

import json
import logging

import pytest

from app.packages.cdn.core.config import Settings
from app.packages.cdn.core.exceptions import (
    AccessDenied,
    NotFound,
    StorageIOFailed,
    TransformFailed,
    ValidationFailed,
    public_message_for,
    status_code_for,
)
from app.packages.cdn.core.guards import ANONYMOUS, AccessContext
from app.packages.cdn.core.logger import JsonFormatter, build_logging_config


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ValidationFailed("bad"), 400),
        (NotFound("missing"), 404),
        (AccessDenied("no"), 401),
        (AccessDenied("no", authenticated=True), 403),
        (TransformFailed("codec"), 500),
        (StorageIOFailed("disk"), 500),
    ],
)
def test_status_code_mapping(exc, expected):
    assert status_code_for(exc) == expected


def test_internal_failures_hide_details():
    assert public_message_for(TransformFailed("decoder exploded at offset 12")) == "图片处理失败"
    assert public_message_for(StorageIOFailed("/var/data/files.json")) == "存储读写失败"
    assert public_message_for(NotFound("文件不存在")) == "文件不存在"


def test_admin_implies_authenticated():
    assert AccessContext(is_admin=True).is_authenticated is True
    assert ANONYMOUS.is_authenticated is False


def test_settings_paths_and_keys(tmp_path):
    settings = Settings(
        data_dir=str(tmp_path / "data"),
        api_keys_raw=" a , b,,",
        admin_api_keys_raw="root",
    )
    assert settings.index_file_path == tmp_path / "data" / "files.json"
    assert settings.api_keys == {"a", "b"}
    assert settings.admin_api_keys == {"root"}
    assert settings.uploads_directory.is_absolute()


def test_logging_config_switches_to_json(tmp_path):
    settings = Settings(log_dir=str(tmp_path / "log"), log_json=True)
    config = build_logging_config(settings)
    assert config["handlers"]["console"]["formatter"] == "json"
    assert config["handlers"]["file"]["formatter"] == "json"
    assert config["handlers"]["file"]["filename"] == str(tmp_path / "log" / "app.log")
    assert config["loggers"]["app"]["propagate"] is False


def test_json_formatter_carries_advisory_fields():
    record = logging.LogRecord("app.advisory", logging.WARNING, __file__, 1, "thumbnail failed", None, None)
    record.stage = "thumbnail"
    record.file_id = "abc123def456"
    record.request_id = "req-1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["stage"] == "thumbnail"
    assert payload["file_id"] == "abc123def456"
    assert payload["request_id"] == "req-1"
    assert payload["level"] == "WARNING"
