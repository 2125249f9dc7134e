# -*- coding: utf-8 -*-
"""
联系表单服务与邮件模块单元测试
"""

import json

import httpx
import pytest
from app.core.context import SlidingWindowRateLimiter, create_context
from app.core.exceptions import ConfigurationError, DeliveryError, InvalidInputError, RateLimitedError
from app.core.mailer import NullMailer, OutboxMailer, ResendMailer
from app.models.contact import ContactMessage
from app.services.contact_service import ContactService


def _message(**fields) -> ContactMessage:
    data = {
        "name": "Carol",
        "email": "carol@example.com",
        "requestType": "Support",
        "app": "Orion Desk",
        "message": "The export button does nothing.",
    }
    data.update(fields)
    return ContactMessage.model_validate(data)


class TestContactService:
    """联系表单测试"""

    def test_submit(self, ctx, outbox):
        """测试正常提交并转发邮件"""
        ContactService(ctx).submit(_message(), ip="1.2.3.4")

        mail = outbox.sent[0]
        assert mail["to"] == [ctx.settings.CONTACT_TO]
        assert mail["subject"] == "[Website] Support - Carol"
        assert mail["reply_to"] == "carol@example.com"
        assert "App: Orion Desk" in mail["text"]

    def test_honeypot(self, ctx, outbox):
        """测试蜜罐字段有值时静默成功"""
        ContactService(ctx).submit(_message(company="Spam Inc"), ip="1.2.3.4")

        assert outbox.sent == []

    def test_rate_limit(self, ctx, outbox):
        """测试同一 IP 第 6 次提交被限流"""
        service = ContactService(ctx)
        for _ in range(5):
            service.submit(_message(), ip="1.2.3.4")

        with pytest.raises(RateLimitedError):
            service.submit(_message(), ip="1.2.3.4")

        # 其它 IP 不受影响
        service.submit(_message(), ip="5.6.7.8")
        assert len(outbox.sent) == 6

    def test_rate_limit_window_slides(self, ctx):
        """测试时间窗口过去后可以再次提交"""
        service = ContactService(ctx)
        for _ in range(5):
            service.submit(_message(), ip="1.2.3.4")

        ctx.clock.advance(minutes=5)

        service.submit(_message(), ip="1.2.3.4")

    @pytest.mark.parametrize("fields, message", [
        ({"name": "C"}, "Please enter your name."),
        ({"email": "carol-at-example"}, "Please enter a valid email."),
        ({"requestType": "<>"}, "Please select a request type."),
        ({"message": "too short"}, "Please add a longer message."),
    ])
    def test_validation(self, ctx, fields, message):
        """测试字段校验"""
        with pytest.raises(InvalidInputError) as exc_info:
            ContactService(ctx).submit(_message(**fields))

        assert exc_info.value.message == message

    def test_mailer_not_configured(self, test_settings, memory_store, clock):
        """测试未配置邮件服务"""
        ctx = create_context(test_settings, store=memory_store, mailer=NullMailer(), clock=clock)

        with pytest.raises(ConfigurationError) as exc_info:
            ContactService(ctx).submit(_message())

        assert exc_info.value.status_code == 500

    def test_provider_failure(self, test_settings, memory_store, clock):
        """测试邮件服务返回错误"""
        ctx = create_context(test_settings, store=memory_store, mailer=OutboxMailer(fail=True), clock=clock)

        with pytest.raises(DeliveryError) as exc_info:
            ContactService(ctx).submit(_message())

        assert exc_info.value.status_code == 502


class TestSlidingWindowRateLimiter:
    """滑动窗口限流器测试"""

    def test_limit_per_key(self):
        """测试每个 key 独立计数"""
        limiter = SlidingWindowRateLimiter(max_hits=2, window_seconds=60)

        assert limiter.hit("1.2.3.4", 0) is True
        assert limiter.hit("1.2.3.4", 1) is True
        assert limiter.hit("1.2.3.4", 2) is False
        assert limiter.hit("5.6.7.8", 2) is True

    def test_expired_keys_removed(self):
        """测试窗口过期后的 key 被清理，不会无限增长"""
        limiter = SlidingWindowRateLimiter(max_hits=5, window_seconds=60)
        for i in range(100):
            limiter.hit(f"10.0.0.{i}", 0)
        assert limiter.tracked_keys() == 100

        limiter.hit("10.0.1.1", 61)

        assert limiter.tracked_keys() == 1


class TestResendMailer:
    """Resend 邮件服务测试（MockTransport，不访问网络）"""

    def test_send(self):
        """测试请求格式"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email-1"})

        mailer = ResendMailer("re_test", transport=httpx.MockTransport(handler))
        mailer.send("from@example.com", ["to@example.com"], "Hi", "Body", reply_to="r@example.com")

        assert seen["url"] == "https://api.resend.com/emails"
        assert seen["auth"] == "Bearer re_test"
        assert seen["body"] == {
            "from": "from@example.com",
            "to": ["to@example.com"],
            "subject": "Hi",
            "text": "Body",
            "reply_to": "r@example.com",
        }

    def test_provider_error(self):
        """测试服务端错误转换为投递错误"""
        mailer = ResendMailer("re_test", transport=httpx.MockTransport(
            lambda request: httpx.Response(422, text="invalid from")
        ))

        with pytest.raises(DeliveryError) as exc_info:
            mailer.send("bad", ["to@example.com"], "Hi", "Body")

        assert "invalid from" in exc_info.value.message
