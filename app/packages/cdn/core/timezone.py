"""时区工具方法：统一"当前时间"的来源，便于过期判断与测试替换。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from zoneinfo import ZoneInfo

from app.packages.cdn.core.config import get_settings


def get_timezone() -> ZoneInfo:
    """返回配置指定的时区信息。"""
    return get_settings().timezone_info


def now() -> datetime:
    """返回当前时区的时间（带时区信息）。"""
    return datetime.now(get_timezone())


def to_aware(value: Optional[datetime]) -> Optional[datetime]:
    """无时区的时间按 UTC 解释，保证比较时不会抛 ``TypeError``。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def after_seconds(seconds: int, *, start: Optional[datetime] = None) -> datetime:
    """返回 ``start``（默认当前时间）之后 ``seconds`` 秒的时间点。"""
    return (start or now()) + timedelta(seconds=seconds)
