"""日志配置模块：统一控制台/文件输出格式，并提供"旁路失败"专用通道。

- 控制台：彩色文本（非 TTY 自动关闭颜色）或 JSON；
- 文件：按天轮转，保留 14 份；
- ``app.advisory``：缩略图、尺寸提取、上传时缩放等非关键步骤的失败只记录在此，不向调用方抛出。
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Optional

from .config import Settings, get_settings

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class _TZFormatter(logging.Formatter):
    """Formatter that renders timestamps in Settings.timezone."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: D401
        dt = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """按日志级别着色的文本格式化器。"""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: Optional[bool] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{message}{self.RESET}" if color else message


class JsonFormatter(_TZFormatter):
    """Structured JSON formatter; advisory records carry their stage and file id."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record),
            "logger": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for extra in ("stage", "file_id"):
            value = getattr(record, extra, None)
            if value is not None:
                payload[extra] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class RequestIdFilter(logging.Filter):
    """Injects request_id from contextvars into every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = _request_id_ctx.get()
        return True


def _app_logger_entry(settings: Settings) -> dict[str, Any]:
    return {"handlers": ["console", "file"], "level": settings.log_level, "propagate": False}


def build_logging_config(settings: Settings) -> dict[str, Any]:
    """根据配置生成 ``dictConfig`` 所需的字典。"""
    console_formatter = "json" if settings.log_json else "color"
    file_formatter = "json" if settings.log_json else "plain"
    text_format = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "color": {"()": ColorFormatter, "fmt": text_format},
            "plain": {"()": _TZFormatter, "fmt": text_format},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "console": {
                "level": settings.log_level,
                "class": "logging.StreamHandler",
                "formatter": console_formatter,
                "filters": ["request_id"],
            },
            "file": {
                "level": settings.log_level,
                "class": "logging.handlers.TimedRotatingFileHandler",
                "formatter": file_formatter,
                "filename": str(settings.log_file_path),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
                "delay": True,
                "filters": ["request_id"],
            },
        },
        "loggers": {
            "uvicorn": _app_logger_entry(settings),
            "uvicorn.access": _app_logger_entry(settings),
            "app": _app_logger_entry(settings),
        },
        "root": {"handlers": ["console", "file"], "level": settings.log_level},
    }


def setup_logging(settings: Optional[Settings] = None) -> None:
    """初始化日志系统，确保项目所有模块使用统一的输出格式与级别。"""
    settings = settings or get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))


logger = logging.getLogger("app")
advisory_logger = logging.getLogger("app.advisory")


def log_advisory_failure(stage: str, file_id: str, exc: BaseException) -> None:
    """记录非关键步骤的失败；调用方随后继续执行，不向上抛出。"""
    advisory_logger.warning(
        "Advisory step '%s' failed for file %s: %s",
        stage,
        file_id,
        exc,
        exc_info=exc,
        extra={"stage": stage, "file_id": file_id},
    )


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)
