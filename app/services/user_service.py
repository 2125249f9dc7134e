# -*- coding: utf-8 -*-
"""
用户服务

处理管理员对用户的增删改查以及重置审计汇总
"""

import logging
from typing import Any, List

from app.core.clock import parse_iso
from app.core.context import AppContext
from app.core.exceptions import InvalidInputError, NotFoundError
from app.core.security import hash_password
from app.models.user import (
    ROLES,
    AuditEvent,
    PortalDownload,
    ResetAuditEntry,
    UserCreate,
    UserRecord,
    UserResponse,
    UserUpdate
)
from app.services.file_service import FileService
from app.services.user_directory import UserDirectory, new_user_id


logger = logging.getLogger(__name__)


MIN_PASSWORD_LENGTH = 8

PROFILE_FIELDS = (
    "full_name",
    "company",
    "phone",
    "project",
    "notes",
    "portal_title",
    "portal_message",
)


def normalize_portal_downloads(raw: Any) -> List[PortalDownload]:
    """
    规范化下载链接

    支持对象列表，或每行 "标题|链接|备注" 格式的文本；没有链接的条目被丢弃
    """
    items = []
    if isinstance(raw, list):
        for item in raw:
            item = item if isinstance(item, dict) else {}
            items.append((item.get("label"), item.get("url"), item.get("note")))
    elif isinstance(raw, str):
        for line in raw.split("\n"):
            line = line.strip()
            if not line:
                continue
            parts = line.split("|")
            items.append(tuple(parts[i] if i < len(parts) else "" for i in range(3)))

    downloads = []
    for label, url, note in items:
        url = str(url or "").strip()
        if url:
            downloads.append(PortalDownload(
                label=str(label or "").strip(),
                url=url,
                note=str(note or "").strip()
            ))
    return downloads


def _validate_email(email: str) -> str:
    clean = str(email or "").strip().lower()
    if not clean or "@" not in clean:
        raise InvalidInputError("Valid email is required.")
    return clean


def _validate_password(password: str) -> str:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise InvalidInputError("Password must be at least 8 characters.")
    return password


def _validate_role(role: str) -> str:
    clean = str(role or "").strip().lower()
    if clean not in ROLES:
        raise InvalidInputError("Role must be admin or client.")
    return clean


class UserService:
    """用户服务"""

    def __init__(self, ctx: AppContext):
        """
        初始化用户服务

        Args:
            ctx: 应用上下文
        """
        self.ctx = ctx
        self.clock = ctx.clock
        self.directory = UserDirectory(ctx.store)

    def list_users(self) -> List[UserResponse]:
        """
        列出所有用户（不含密码与令牌字段）

        配置了内置管理员邮箱时在最前面加入一条 env-admin 记录
        """
        users = [UserResponse.from_record(u) for u in self.directory.load().users]

        admin_email = self.ctx.settings.ADMIN_EMAIL.strip().lower()
        if admin_email:
            users.insert(0, UserResponse(
                id="env-admin",
                email=admin_email,
                role="admin",
                active=True,
                source="env"
            ))
        return users

    def create_user(self, data: UserCreate, created_by: str = "") -> UserRecord:
        """
        创建新用户

        Args:
            data: 用户创建数据
            created_by: 操作的管理员邮箱

        Returns:
            UserRecord: 新用户

        Raises:
            InvalidInputError: 校验失败或邮箱已存在
        """
        email = _validate_email(data.email)
        password = _validate_password(data.password)
        role = _validate_role(data.role or "client")

        collection = self.directory.load()
        if collection.email_taken(email):
            raise InvalidInputError("A user with this email already exists.")

        user_id = new_user_id()
        project = str(data.project or "").strip()

        user = UserRecord(
            id=user_id,
            email=email,
            role=role,
            password_hash=hash_password(password),
            active=data.active,
            created_at=self.clock.isoformat(),
            full_name=str(data.full_name or "").strip(),
            company=str(data.company or "").strip(),
            phone=str(data.phone or "").strip(),
            project=project,
            notes=str(data.notes or "").strip(),
            portal_title=str(data.portal_title or "").strip(),
            portal_message=str(data.portal_message or "").strip(),
            portal_downloads=normalize_portal_downloads(data.portal_downloads),
            source="kv"
        )
        collection.users.append(user)
        self.directory.save(collection.users)

        # 用户保存成功后再授权项目目录
        if role == "client" and project:
            FileService(self.ctx).ensure_project_folder(user_id, project, created_by)

        logger.info(f"创建用户: {email} (ID: {user_id}, 角色: {role})")
        return user

    def update_user(self, data: UserUpdate, updated_by: str = "") -> UserRecord:
        """
        更新用户信息

        只修改请求中出现的字段；修改密码会清除不活跃标记并记录审计

        Raises:
            NotFoundError: 用户不存在
            InvalidInputError: 校验失败
        """
        user_id = str(data.id or "").strip()
        collection = self.directory.load()
        user = collection.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")

        present = data.model_fields_set

        if data.email:
            email = _validate_email(data.email)
            if collection.email_taken(email, exclude_id=user_id):
                raise InvalidInputError("Email already in use.")
            user.email = email

        if data.password:
            user.password_hash = hash_password(_validate_password(data.password))
            user.last_password_reset_at = self.clock.isoformat()
            user.inactivity_reset_required_at = None
            user.append_audit(AuditEvent(
                at=user.last_password_reset_at,
                action="admin_reset",
                by=updated_by
            ))

        if data.role:
            user.role = _validate_role(data.role)

        for name in PROFILE_FIELDS:
            if name in present:
                setattr(user, name, str(getattr(data, name) or "").strip())

        if "portal_downloads" in present:
            user.portal_downloads = normalize_portal_downloads(data.portal_downloads)

        if isinstance(data.active, bool) and "active" in present:
            user.active = data.active

        self.directory.save(collection.users)

        logger.info(f"更新用户 {user_id}")
        return user

    def delete_user(self, user_id: str) -> None:
        """
        删除用户

        Raises:
            NotFoundError: 用户不存在
        """
        user_id = str(user_id or "").strip()
        collection = self.directory.load()
        remaining = [u for u in collection.users if u.id != user_id]
        if len(remaining) == len(collection.users):
            raise NotFoundError("User not found.")

        self.directory.save(remaining)
        logger.info(f"删除用户 {user_id}")

    def reset_audit(self) -> List[ResetAuditEntry]:
        """汇总所有用户的重置审计记录，按时间倒序"""
        entries = []
        for user in self.directory.load().users:
            for event in user.reset_audit:
                entries.append(ResetAuditEntry(
                    **event.model_dump(),
                    user_id=user.id,
                    name=user.full_name,
                    email=user.email,
                    role=user.role
                ))

        def sort_key(entry: ResetAuditEntry) -> float:
            moment = parse_iso(entry.at)
            return moment.timestamp() if moment else 0.0

        entries.sort(key=sort_key, reverse=True)
        return entries
