# -*- coding: utf-8 -*-
"""
认证服务

处理登录（含不活跃策略）、会话校验、角色检查和修改密码
"""

import logging
from typing import Mapping, Optional

from pydantic import ValidationError

from app.core.clock import parse_iso
from app.core.config import get_portal_secret
from app.core.context import AppContext
from app.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InactivityResetRequired,
    InvalidInputError,
    StorageError
)
from app.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    parse_duration,
    safe_equals,
    verify_password
)
from app.models.auth import LoginResult, TokenData
from app.models.user import AuditEvent, UserProfile, UserRecord
from app.services.user_directory import UserCollection, UserDirectory


logger = logging.getLogger(__name__)


MIN_PASSWORD_LENGTH = 8
INVALID_LOGIN = "Invalid login details."


class SessionGuard:
    """从 Cookie 中提取并校验会话"""

    def __init__(self, ctx: AppContext):
        self.settings = ctx.settings
        self.clock = ctx.clock

    def authenticate(self, cookies: Mapping[str, str]) -> Optional[TokenData]:
        """
        校验会话 Cookie

        缺少 Cookie、未配置密钥、签名错误或过期都统一返回 None

        Args:
            cookies: 请求 Cookie

        Returns:
            Optional[TokenData]: 会话声明
        """
        token = cookies.get(self.settings.SESSION_COOKIE_NAME, "")
        if not token:
            return None

        secret = get_portal_secret(self.settings)
        if not secret:
            return None

        claims = decode_access_token(token, secret, clock=self.clock)
        if claims is None:
            return None

        try:
            return TokenData.from_claims(claims)
        except ValidationError:
            return None

    def require_any(self, cookies: Mapping[str, str]) -> TokenData:
        """
        要求已登录（任意角色）

        Raises:
            AuthenticationError: 未登录或会话无效
        """
        session = self.authenticate(cookies)
        if session is None:
            raise AuthenticationError()
        return session

    def require_role(self, role: str, cookies: Mapping[str, str]) -> TokenData:
        """
        要求指定角色

        Raises:
            AuthenticationError: 未登录或角色不符（不区分原因）
        """
        session = self.authenticate(cookies)
        if session is None or session.role != role:
            raise AuthenticationError()
        return session


class AuthService:
    """认证服务"""

    def __init__(self, ctx: AppContext):
        """
        初始化认证服务

        Args:
            ctx: 应用上下文
        """
        self.settings = ctx.settings
        self.clock = ctx.clock
        self.directory = UserDirectory(ctx.store)

    def hash_password(self, password: str) -> str:
        """对密码进行哈希"""
        return hash_password(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """验证密码"""
        return verify_password(
            plain_password,
            hashed_password,
            allow_legacy=self.settings.ALLOW_LEGACY_PLAINTEXT
        )

    def _configured_account(self, role: str, email: str, password: str) -> Optional[dict]:
        """匹配环境变量中配置的内置账户"""
        settings = self.settings
        admin_email = settings.ADMIN_EMAIL.strip().lower()
        client_email = settings.CLIENT_EMAIL.strip().lower()

        if (
            role in ("admin", "owner")
            and admin_email
            and settings.ADMIN_PASSWORD
            and email == admin_email
            and safe_equals(password, settings.ADMIN_PASSWORD)
        ):
            return {"uid": "env-admin", "role": "admin", "email": email, "src": "env"}

        if (
            role == "client"
            and client_email
            and settings.CLIENT_PASSWORD
            and email == client_email
            and safe_equals(password, settings.CLIENT_PASSWORD)
        ):
            return {"uid": "env-client", "role": "client", "email": email, "src": "env"}

        return None

    def _requires_inactivity_reset(self, user: UserRecord) -> bool:
        if user.inactivity_reset_required_at:
            return True

        moments = [
            parse_iso(user.last_login_at),
            parse_iso(user.last_password_reset_at),
            parse_iso(user.created_at),
        ]
        moments = [m for m in moments if m is not None]
        if not moments:
            return False

        idle_days = (self.clock.now() - max(moments)).total_seconds() / 86400
        return idle_days >= self.settings.INACTIVITY_RESET_DAYS

    def _persist_quietly(self, collection: UserCollection) -> None:
        if not collection.enabled:
            return
        try:
            self.directory.save(collection.users)
        except (StorageError, ConfigurationError) as e:
            logger.warning(f"登录状态保存失败: {e}")

    def _load_users(self) -> UserCollection:
        try:
            return self.directory.load()
        except StorageError as e:
            logger.error(f"读取用户集合失败: {e}")
            return UserCollection(enabled=False)

    def login(self, role: str, email: str, password: str) -> LoginResult:
        """
        用户登录

        Args:
            role: 登录角色（admin / client）
            email: 邮箱
            password: 密码

        Returns:
            LoginResult: Token 与 Cookie 有效期

        Raises:
            ConfigurationError: 未配置签名密钥
            InactivityResetRequired: 长期未活动，需要先重置密码
            AuthenticationError: 其它所有失败情况
        """
        secret = get_portal_secret(self.settings)
        if not secret:
            raise ConfigurationError()

        clean_role = str(role or "").strip().lower()
        clean_email = str(email or "").strip().lower()
        clean_password = str(password or "")

        identity = self._configured_account(clean_role, clean_email, clean_password)

        if identity is None:
            collection = self._load_users()
            user = collection.find_by_email(clean_email)
            if (
                user is not None
                and user.role == clean_role
                and self.verify_password(clean_password, user.password_hash)
            ):
                if self._requires_inactivity_reset(user):
                    days = self.settings.INACTIVITY_RESET_DAYS
                    if not user.inactivity_reset_required_at:
                        user.inactivity_reset_required_at = self.clock.isoformat()
                        user.append_audit(AuditEvent(
                            at=user.inactivity_reset_required_at,
                            action="required_due_inactivity",
                            days=days
                        ))
                        self._persist_quietly(collection)
                        logger.info(f"用户 {user.id} 因 {days} 天未活动需要重置密码")
                    raise InactivityResetRequired(days)

                user.inactivity_reset_required_at = None
                user.last_login_at = self.clock.isoformat()
                self._persist_quietly(collection)
                identity = {"uid": user.id, "role": user.role, "email": user.email, "src": "kv"}

        if identity is None:
            raise AuthenticationError(INVALID_LOGIN)

        ttl = self.settings.SESSION_TTL
        token = create_access_token(identity, secret, expires_in=ttl, clock=self.clock)
        logger.info(f"登录成功: {identity['uid']} ({identity['role']})")

        return LoginResult(token=token, role=identity["role"], max_age=parse_duration(ttl))

    def get_profile(self, session: TokenData) -> Optional[UserProfile]:
        """
        获取当前会话用户的资料

        内置账户没有资料，返回 None

        Raises:
            AuthenticationError: 用户已被删除或停用
        """
        if session.src != "kv" or not session.uid:
            return None

        try:
            collection = self.directory.load()
        except StorageError as e:
            logger.warning(f"读取用户资料失败: {e}")
            return None

        user = collection.find_by_id(session.uid, active_only=True)
        if user is None:
            raise AuthenticationError()
        return UserProfile.from_record(user)

    def change_password(self, session: TokenData, current_password: str, new_password: str) -> None:
        """
        修改当前用户密码

        Args:
            session: 当前会话
            current_password: 原密码
            new_password: 新密码
        """
        if session.src != "kv" or not session.uid:
            raise InvalidInputError("Password changes are not available for this account.")
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidInputError("Password must be at least 8 characters.")

        collection = self.directory.load()
        user = collection.find_by_id(session.uid, active_only=True)
        if user is None:
            raise AuthenticationError()

        if not self.verify_password(current_password or "", user.password_hash):
            raise InvalidInputError("Current password is incorrect.")

        user.password_hash = self.hash_password(new_password)
        user.last_password_reset_at = self.clock.isoformat()
        user.inactivity_reset_required_at = None
        user.append_audit(AuditEvent(at=user.last_password_reset_at, action="self_change"))
        self.directory.save(collection.users)

        logger.info(f"用户 {user.id} 修改密码成功")
