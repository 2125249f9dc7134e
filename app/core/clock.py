# -*- coding: utf-8 -*-
"""
时钟模块

令牌过期、不活跃检查和审计时间戳都通过时钟对象读取当前时间，
测试时可替换为固定时钟
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


class SystemClock:
    """系统时钟（UTC）"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def timestamp(self) -> int:
        """当前 Unix 时间戳（秒）"""
        return int(self.now().timestamp())

    def isoformat(self) -> str:
        """当前时间的 ISO 8601 字符串（毫秒精度，Z 结尾）"""
        return format_iso(self.now())


class FrozenClock(SystemClock):
    """固定时钟，只在显式调用 advance() 时前进"""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        """
        拨快时钟

        Args:
            **kwargs: 传给 timedelta 的参数，例如 days=61

        Returns:
            datetime: 拨快后的时间
        """
        self._now = self._now + timedelta(**kwargs)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment


def format_iso(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_iso(value) -> Optional[datetime]:
    """
    解析 ISO 8601 时间字符串

    Args:
        value: 时间字符串（可能为空或格式错误）

    Returns:
        Optional[datetime]: 带时区的时间，无法解析返回 None
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
