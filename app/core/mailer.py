# -*- coding: utf-8 -*-
"""
邮件发送模块

通过 Resend HTTP API 发送纯文本邮件
"""

import logging
from typing import List, Optional

import httpx

from .config import Settings
from .exceptions import DeliveryError


logger = logging.getLogger(__name__)


RESEND_ENDPOINT = "https://api.resend.com/emails"


class Mailer:
    """邮件发送接口"""

    enabled = True

    def send(self, sender: str, to: List[str], subject: str, text: str,
             reply_to: Optional[str] = None) -> None:
        raise NotImplementedError


class ResendMailer(Mailer):
    """Resend 邮件服务"""

    def __init__(self, api_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def send(self, sender: str, to: List[str], subject: str, text: str,
             reply_to: Optional[str] = None) -> None:
        """
        发送邮件

        Raises:
            DeliveryError: 网络错误或服务端返回非 2xx
        """
        body = {"from": sender, "to": to, "subject": subject, "text": text}
        if reply_to:
            body["reply_to"] = reply_to

        try:
            response = self._client.post(RESEND_ENDPOINT, json=body)
        except httpx.HTTPError as e:
            raise DeliveryError("Unable to send message right now.") from e

        if response.is_error:
            raise DeliveryError(f"Email provider error: {response.text}")

    def close(self) -> None:
        self._client.close()


class NullMailer(Mailer):
    """未配置邮件服务"""

    enabled = False

    def send(self, sender: str, to: List[str], subject: str, text: str,
             reply_to: Optional[str] = None) -> None:
        raise DeliveryError("Server is not configured for email yet.")


class OutboxMailer(Mailer):
    """只记录不发送的邮件实现，测试中用于检查发出的内容"""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail

    def send(self, sender: str, to: List[str], subject: str, text: str,
             reply_to: Optional[str] = None) -> None:
        if self.fail:
            raise DeliveryError("Email provider error: simulated failure")
        self.sent.append({
            "from": sender,
            "to": list(to),
            "subject": subject,
            "text": text,
            "reply_to": reply_to,
        })


def get_mailer(settings: Settings) -> Mailer:
    if settings.TESTING:
        return OutboxMailer()
    if settings.RESEND_API_KEY:
        return ResendMailer(settings.RESEND_API_KEY, timeout=settings.HTTP_TIMEOUT)
    logger.info("未配置 RESEND_API_KEY，邮件功能关闭")
    return NullMailer()
