# -*- coding: utf-8 -*-
"""
键值存储模块

门户的所有集合（用户、目录、文件）都以 JSON 数组的形式保存在
远程键值存储中，协议为 Upstash / Vercel KV 风格的 REST 接口:

    GET  {url}/get/{key}            -> {"result": "<string>" | null}
    POST {url}/set/{key}/{value}    -> {"result": "OK"}
"""

import json
import logging
import threading
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from .config import Settings
from .exceptions import ConfigurationError, StorageError


logger = logging.getLogger(__name__)


USERS_KEY = "portal_users_v1"
FOLDERS_KEY = "portal_file_folders_v1"
FILES_KEY = "portal_files_v1"


class KeyValueStore:
    """键值存储接口"""

    enabled = True

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def get_json_list(self, key: str) -> list:
        """
        读取 JSON 数组

        值为空、不是合法 JSON 或不是数组时返回空列表
        """
        raw = self.get(key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(f"键 {key} 的内容不是合法 JSON，按空集合处理")
            return []
        return parsed if isinstance(parsed, list) else []

    def set_json(self, key: str, value) -> None:
        self.set(key, json.dumps(value, separators=(",", ":")))


class RestKeyValueStore(KeyValueStore):
    """基于 httpx 的 REST 键值存储客户端"""

    def __init__(self, url: str, token: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        初始化客户端

        Args:
            url: REST 接口根地址
            token: Bearer Token
            timeout: 请求超时（秒）
            transport: 可选的 httpx 传输层（测试时注入 MockTransport）
        """
        self.url = url.rstrip("/")
        self._client = httpx.Client(
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    def get(self, key: str) -> Optional[str]:
        try:
            response = self._client.get(f"{self.url}/get/{quote(key, safe='')}")
            response.raise_for_status()
            return response.json().get("result")
        except httpx.HTTPError as e:
            logger.error(f"键值存储读取失败 ({key}): {e}")
            raise StorageError("KV get failed") from e
        except ValueError as e:
            logger.error(f"键值存储返回无法解析的内容 ({key}): {e}")
            raise StorageError("KV get failed") from e

    def set(self, key: str, value: str) -> None:
        try:
            response = self._client.post(
                f"{self.url}/set/{quote(key, safe='')}/{quote(value, safe='')}"
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"键值存储写入失败 ({key}): {e}")
            raise StorageError("KV set failed") from e

    def close(self) -> None:
        self._client.close()


class MemoryKeyValueStore(KeyValueStore):
    """进程内键值存储（测试模式使用）"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value


class DisabledKeyValueStore(KeyValueStore):
    """未配置存储时的占位实现：读为空，写报配置错误"""

    enabled = False

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        raise ConfigurationError(
            "User database is not configured. Add KV_REST_API_URL and KV_REST_API_TOKEN."
        )


def get_store(settings: Settings) -> KeyValueStore:
    """
    根据配置创建存储实例

    Args:
        settings: 配置对象

    Returns:
        KeyValueStore: 存储实例
    """
    # 测试模式使用内存存储
    if settings.TESTING:
        return MemoryKeyValueStore()

    if settings.kv_enabled:
        return RestKeyValueStore(
            settings.KV_URL,
            settings.KV_TOKEN,
            timeout=settings.HTTP_TIMEOUT,
        )

    logger.warning("未配置键值存储，用户与文件功能不可用")
    return DisabledKeyValueStore()
