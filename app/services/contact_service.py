# -*- coding: utf-8 -*-
"""
联系表单服务
"""

import re
import logging

from app.core.context import AppContext
from app.core.exceptions import ConfigurationError, InvalidInputError, RateLimitedError
from app.models.contact import ContactMessage
from app.models.file import sanitize


logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactService:
    """联系表单服务"""

    def __init__(self, ctx: AppContext):
        self.settings = ctx.settings
        self.clock = ctx.clock
        self.mailer = ctx.mailer
        self.limiter = ctx.contact_limiter

    def submit(self, message: ContactMessage, ip: str = "unknown") -> None:
        """
        校验并转发联系表单

        蜜罐字段有值时直接视为成功，不做任何处理

        Raises:
            RateLimitedError: 同一 IP 在时间窗口内提交过多
            InvalidInputError: 字段校验失败
            ConfigurationError: 未配置邮件服务
            DeliveryError: 邮件发送失败
        """
        if message.company:
            return

        if not self.limiter.hit(ip, self.clock.now().timestamp()):
            logger.warning(f"联系表单触发限流: {ip}")
            raise RateLimitedError()

        name = sanitize(message.name, None)
        email = sanitize(message.email, None)
        request_type = sanitize(message.request_type, None)
        app_name = sanitize(message.app, None) or "Not specified"
        text = sanitize(message.message, None)

        if len(name) < 2:
            raise InvalidInputError("Please enter your name.")
        if not EMAIL_PATTERN.match(email):
            raise InvalidInputError("Please enter a valid email.")
        if not request_type:
            raise InvalidInputError("Please select a request type.")
        if len(text) < 10:
            raise InvalidInputError("Please add a longer message.")
        if not self.mailer.enabled:
            raise ConfigurationError("Server is not configured for email yet.")

        body = "\n".join([
            "New website contact request",
            "",
            f"Name: {name}",
            f"Email: {email}",
            f"Request Type: {request_type}",
            f"App: {app_name}",
            "",
            "Message:",
            text,
        ])
        self.mailer.send(
            self.settings.CONTACT_FROM,
            [self.settings.CONTACT_TO],
            f"[Website] {request_type} - {name}",
            body,
            reply_to=email
        )
        logger.info(f"联系表单已转发: {request_type}")
