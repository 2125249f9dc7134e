# -*- coding: utf-8 -*-
"""
用户目录

用户集合整体保存在键值存储的一个键下（JSON 数组）。
读取时丢弃格式不正确的条目；写入时整体覆盖（无合并、无版本控制，后写者胜出）
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from app.core.exceptions import ConfigurationError
from app.core.store import KeyValueStore, USERS_KEY
from app.models.user import UserRecord


logger = logging.getLogger(__name__)


@dataclass
class UserCollection:
    """一次读取得到的用户集合"""
    enabled: bool
    users: List[UserRecord] = field(default_factory=list)

    def find_by_email(self, email: str, active_only: bool = True) -> Optional[UserRecord]:
        target = str(email or "").strip().lower()
        if not target:
            return None
        for user in self.users:
            if user.email == target and (user.active or not active_only):
                return user
        return None

    def find_by_id(self, user_id: str, active_only: bool = False) -> Optional[UserRecord]:
        for user in self.users:
            if user.id == user_id and (user.active or not active_only):
                return user
        return None

    def email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        """邮箱是否已被其他用户使用（不区分大小写）"""
        target = str(email or "").strip().lower()
        return any(u.email == target and u.id != exclude_id for u in self.users)


class UserDirectory:
    """用户目录"""

    def __init__(self, store: KeyValueStore):
        """
        初始化用户目录

        Args:
            store: 键值存储实例
        """
        self.store = store

    @property
    def enabled(self) -> bool:
        return self.store.enabled

    def load(self) -> UserCollection:
        """
        读取用户集合

        Returns:
            UserCollection: 存储未配置时 enabled=False 且集合为空
        """
        if not self.enabled:
            return UserCollection(enabled=False)

        users = []
        dropped = 0
        for raw in self.store.get_json_list(USERS_KEY):
            record = UserRecord.from_raw(raw)
            if record is None:
                dropped += 1
                continue
            users.append(record)

        if dropped:
            logger.warning(f"用户集合中有 {dropped} 条无效记录被忽略")

        return UserCollection(enabled=True, users=users)

    def save(self, users: List[UserRecord]) -> None:
        """
        整体覆盖保存用户集合

        Raises:
            ConfigurationError: 存储未配置
            StorageError: 写入失败
        """
        if not self.enabled:
            raise ConfigurationError(
                "User database is not configured. Add KV_REST_API_URL and KV_REST_API_TOKEN."
            )
        self.store.set_json(USERS_KEY, [u.to_storage() for u in users])


def new_user_id() -> str:
    return str(uuid.uuid4())
