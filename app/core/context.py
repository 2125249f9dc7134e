# -*- coding: utf-8 -*-
"""
应用上下文

进程启动时构建一次，持有配置、存储、时钟、邮件服务以及联系表单的限流状态，
通过依赖注入传给各个请求处理函数
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .clock import SystemClock
from .config import Settings, get_settings
from .mailer import Mailer, get_mailer
from .store import KeyValueStore, get_store


class SlidingWindowRateLimiter:
    """按 key（客户端 IP）计数的滑动窗口限流器"""

    def __init__(self, max_hits: int, window_seconds: float):
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self._buckets: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float) -> bool:
        """
        记录一次请求

        Args:
            key: 限流维度
            now: 当前时间戳（秒）

        Returns:
            bool: 未超限返回 True；超限返回 False 且不计入本次
        """
        with self._lock:
            self._prune(now)
            recent = self._buckets.get(key, [])
            if len(recent) >= self.max_hits:
                return False
            recent.append(now)
            self._buckets[key] = recent
            return True

    def _prune(self, now: float) -> None:
        # 去掉窗口外的时间戳，空桶直接删除
        for key in list(self._buckets):
            recent = [ts for ts in self._buckets[key] if now - ts < self.window_seconds]
            if recent:
                self._buckets[key] = recent
            else:
                del self._buckets[key]

    def tracked_keys(self) -> int:
        """当前仍在窗口内的 key 数量"""
        with self._lock:
            return len(self._buckets)


@dataclass
class AppContext:
    """进程级上下文"""

    settings: Settings
    store: KeyValueStore
    mailer: Mailer
    clock: SystemClock = field(default_factory=SystemClock)
    contact_limiter: Optional[SlidingWindowRateLimiter] = None

    def __post_init__(self):
        if self.contact_limiter is None:
            self.contact_limiter = SlidingWindowRateLimiter(
                self.settings.CONTACT_RATE_MAX,
                self.settings.CONTACT_RATE_WINDOW_SECONDS,
            )

    def close(self) -> None:
        self.store.close()
        close = getattr(self.mailer, "close", None)
        if close is not None:
            close()


def create_context(settings: Optional[Settings] = None, **overrides) -> AppContext:
    """
    构建应用上下文

    Args:
        settings: 配置对象，默认读取环境变量
        **overrides: 替换默认组件（store / mailer / clock）

    Returns:
        AppContext: 上下文实例
    """
    settings = settings or get_settings()
    store = overrides.pop("store", None) or get_store(settings)
    mailer = overrides.pop("mailer", None) or get_mailer(settings)
    return AppContext(settings=settings, store=store, mailer=mailer, **overrides)
