# -*- coding: utf-8 -*-
"""
异常定义

API 层统一将 PortalError 渲染为 {"error": message} 和对应状态码
"""


class PortalError(Exception):
    """门户异常基类"""

    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(PortalError):
    """密钥或存储未配置"""

    status_code = 500
    default_message = "Portal is not configured yet."


class InvalidInputError(PortalError):
    """输入校验失败"""

    status_code = 400
    default_message = "Invalid request."


class AuthenticationError(PortalError):
    """认证/授权失败（对外统一提示，不区分原因）"""

    status_code = 401
    default_message = "Unauthorized"


class InactivityResetRequired(PortalError):
    """长期未活动，需要重置密码后才能登录"""

    status_code = 403

    def __init__(self, days: int):
        self.days = days
        super().__init__(
            f"Password reset required after {days} days of inactivity. Use Forgot password."
        )


class NotFoundError(PortalError):
    """资源不存在"""

    status_code = 404
    default_message = "Not found."


class RateLimitedError(PortalError):
    """请求过于频繁"""

    status_code = 429
    default_message = "Too many requests. Try again in a few minutes."


class StorageError(PortalError):
    """键值存储读写失败"""

    status_code = 500
    default_message = "Storage request failed."


class DeliveryError(PortalError):
    """邮件服务返回错误"""

    status_code = 502
    default_message = "Email provider error."
