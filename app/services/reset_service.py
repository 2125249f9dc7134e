# -*- coding: utf-8 -*-
"""
密码重置服务

两个阶段:
    1. 申请：生成随机令牌，只保存其 SHA-256 摘要与 1 小时有效期，邮件发送原文
    2. 使用：按摘要查找用户并轮换密码，成功后清除摘要（令牌只能使用一次）

申请阶段无论走哪个分支都返回同样的响应，避免暴露账户是否存在
"""

import logging
from datetime import timedelta
from urllib.parse import quote

from app.core.clock import format_iso, parse_iso
from app.core.context import AppContext
from app.core.exceptions import InvalidInputError, PortalError
from app.core.security import generate_reset_token, hash_password, hash_token
from app.models.user import AuditEvent
from app.services.user_directory import UserDirectory


logger = logging.getLogger(__name__)


RESET_TOKEN_TTL = timedelta(hours=1)
RESET_PATH = "/portal/reset-password.html"
MIN_PASSWORD_LENGTH = 8

GENERIC_RESPONSE = {
    "ok": True,
    "message": "If the account exists, a reset link has been sent."
}
INVALID_TOKEN = "Reset link is invalid or has expired."


class PasswordResetService:
    """密码重置服务"""

    def __init__(self, ctx: AppContext):
        self.settings = ctx.settings
        self.clock = ctx.clock
        self.mailer = ctx.mailer
        self.directory = UserDirectory(ctx.store)

    def request_reset(self, email: str, role: str = "", ip: str = "unknown", origin: str = "") -> dict:
        """
        申请重置密码

        Args:
            email: 账户邮箱
            role: 可选的角色过滤
            ip: 请求方 IP（写入审计）
            origin: 站点根地址，用于拼接重置链接

        Returns:
            dict: 固定的通用响应
        """
        clean_email = str(email or "").strip().lower()
        clean_role = str(role or "").strip().lower()

        if not clean_email or "@" not in clean_email:
            return dict(GENERIC_RESPONSE)

        try:
            collection = self.directory.load()
        except PortalError as e:
            logger.warning(f"重置申请读取用户失败: {e}")
            return dict(GENERIC_RESPONSE)

        user = collection.find_by_email(clean_email)
        if user is None or (clean_role and user.role != clean_role):
            return dict(GENERIC_RESPONSE)

        if not self.mailer.enabled:
            logger.warning("未配置邮件服务，无法发送重置链接")
            return dict(GENERIC_RESPONSE)

        raw_token = generate_reset_token()
        now = self.clock.now()
        user.reset_token_hash = hash_token(raw_token)
        user.reset_token_expires_at = format_iso(now + RESET_TOKEN_TTL)
        user.append_audit(AuditEvent(at=format_iso(now), action="requested", ip=ip))

        try:
            self.directory.save(collection.users)
        except PortalError as e:
            logger.warning(f"重置令牌保存失败: {e}")
            return dict(GENERIC_RESPONSE)

        self._send_reset_email(clean_email, raw_token, origin)
        logger.info(f"用户 {user.id} 申请重置密码")
        return dict(GENERIC_RESPONSE)

    def _send_reset_email(self, to: str, raw_token: str, origin: str) -> None:
        base = (self.settings.PUBLIC_SITE_URL.strip() or origin or "").rstrip("/")
        url = f"{base}{RESET_PATH}?token={quote(raw_token, safe='')}"
        text = "\n".join([
            "We received a password reset request for your Orion GLE portal account.",
            "",
            "Use this secure link to set a new password:",
            url,
            "",
            "This link expires in 1 hour.",
            "If you did not request this, you can ignore this email.",
        ])
        try:
            self.mailer.send(
                self.settings.RESET_FROM,
                [to],
                "Reset your Orion GLE portal password",
                text
            )
        except PortalError as e:
            # 投递失败不影响响应
            logger.warning(f"重置邮件发送失败: {e}")

    def consume_reset(self, token: str, password: str, ip: str = "unknown") -> None:
        """
        使用重置令牌设置新密码

        Args:
            token: 邮件中的令牌原文
            password: 新密码
            ip: 请求方 IP

        Raises:
            InvalidInputError: 缺少令牌、密码太短、令牌无效或已过期/已使用
        """
        clean_token = str(token or "").strip()
        clean_password = str(password or "")

        if not clean_token:
            raise InvalidInputError("Reset token is required.")
        if len(clean_password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError("Password must be at least 8 characters.")

        collection = self.directory.load()
        token_hash = hash_token(clean_token)
        now = self.clock.now()

        user = None
        for candidate in collection.users:
            if not candidate.active or not candidate.reset_token_hash:
                continue
            if candidate.reset_token_hash != token_hash:
                continue
            expiry = parse_iso(candidate.reset_token_expires_at)
            if expiry is not None and expiry > now:
                user = candidate
                break

        if user is None:
            raise InvalidInputError(INVALID_TOKEN)

        user.password_hash = hash_password(clean_password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        user.inactivity_reset_required_at = None
        user.last_password_reset_at = format_iso(now)
        user.append_audit(AuditEvent(at=user.last_password_reset_at, action="completed", ip=ip))
        self.directory.save(collection.users)

        logger.info(f"用户 {user.id} 通过重置链接设置了新密码")
