# -*- coding: utf-8 -*-
"""
配置管理模块

使用 Pydantic 模型管理应用配置
配置来源为环境变量，同一配置项支持多个别名（取第一个非空值）
"""

import os
import hashlib
from typing import Dict, Mapping, Optional, Sequence, Tuple
from functools import lru_cache
from pydantic import BaseModel


# 各配置项可识别的环境变量名称（按优先级排列）
ENV_ALIASES: Dict[str, Tuple[str, ...]] = {
    "HOST": ("PORTAL_HOST",),
    "PORT": ("PORTAL_PORT",),
    "ENVIRONMENT": ("PORTAL_ENV", "NODE_ENV"),
    "TESTING": ("PORTAL_TESTING",),
    "LOG_LEVEL": ("PORTAL_LOG_LEVEL",),
    # 签名密钥
    "JWT_SECRET": ("PORTAL_JWT_SECRET", "PORTAL_SECRET", "JWT_SECRET", "AUTH_SECRET"),
    # 内置账户（应急登录 / 兜底密钥推导）
    "ADMIN_EMAIL": ("ADMIN_PORTAL_EMAIL", "OWNER_PORTAL_EMAIL"),
    "ADMIN_PASSWORD": ("ADMIN_PORTAL_PASSWORD", "OWNER_PORTAL_PASSWORD"),
    "CLIENT_EMAIL": ("CLIENT_PORTAL_EMAIL",),
    "CLIENT_PASSWORD": ("CLIENT_PORTAL_PASSWORD",),
    "INACTIVITY_RESET_DAYS": ("PORTAL_INACTIVITY_RESET_DAYS",),
    "ALLOW_LEGACY_PLAINTEXT": ("PORTAL_ALLOW_LEGACY_PLAINTEXT",),
    # 键值存储
    "KV_URL": (
        "KV_REST_API_URL",
        "UPSTASH_REDIS_REST_URL",
        "STORAGE_REST_API_URL",
        "STORAGE_URL",
        "STORAGE_REDIS_REST_URL",
    ),
    "KV_TOKEN": (
        "KV_REST_API_TOKEN",
        "UPSTASH_REDIS_REST_TOKEN",
        "STORAGE_REST_API_TOKEN",
        "STORAGE_TOKEN",
        "STORAGE_REDIS_REST_TOKEN",
    ),
    "HTTP_TIMEOUT": ("PORTAL_HTTP_TIMEOUT",),
    # 邮件
    "RESEND_API_KEY": ("RESEND_API_KEY", "RESEND_KEY", "resend_api_key"),
    "RESET_FROM": ("RESET_FROM", "CONTACT_FROM"),
    "CONTACT_FROM": ("CONTACT_FROM",),
    "CONTACT_TO": ("CONTACT_TO",),
    "PUBLIC_SITE_URL": ("PUBLIC_SITE_URL", "SITE_URL"),
}

DEFAULT_INACTIVITY_DAYS = 60
DEFAULT_FROM = "Orion GLE Website <onboarding@resend.dev>"


class Settings(BaseModel):
    """应用配置"""

    # 应用基本信息
    PROJECT_NAME: str = "Orion Portal"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "客户/管理员门户"

    # 服务器配置
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    ENVIRONMENT: str = "development"

    # 测试模式（使用内存存储）
    TESTING: bool = False

    # 日志配置
    LOG_LEVEL: str = "INFO"

    # 安全配置
    JWT_SECRET: str = ""
    SESSION_COOKIE_NAME: str = "orion_portal_session"
    SESSION_TTL: str = "12h"
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    CLIENT_EMAIL: str = ""
    CLIENT_PASSWORD: str = ""
    INACTIVITY_RESET_DAYS: int = DEFAULT_INACTIVITY_DAYS
    ALLOW_LEGACY_PLAINTEXT: bool = True

    # 键值存储配置
    KV_URL: str = ""
    KV_TOKEN: str = ""
    HTTP_TIMEOUT: float = 10.0

    # 邮件配置
    RESEND_API_KEY: str = ""
    RESET_FROM: str = DEFAULT_FROM
    CONTACT_FROM: str = DEFAULT_FROM
    CONTACT_TO: str = "support@oriongle.co.uk"
    PUBLIC_SITE_URL: str = ""

    # 上传配置
    MAX_FILE_BYTES: int = 2 * 1024 * 1024  # 2MB

    # 联系表单限流
    CONTACT_RATE_WINDOW_SECONDS: int = 300
    CONTACT_RATE_MAX: int = 5

    @property
    def is_production(self) -> bool:
        """是否为生产环境（决定 Cookie 的 Secure 属性）"""
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def kv_enabled(self) -> bool:
        """键值存储是否已配置"""
        return bool(self.KV_URL and self.KV_TOKEN)


def _first_non_empty(environ: Mapping[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _inactivity_days(raw: Optional[str]) -> int:
    """解析不活跃天数，非法或小于 1 时使用默认值"""
    try:
        days = int(float(raw))
    except (TypeError, ValueError):
        return DEFAULT_INACTIVITY_DAYS
    if days < 1:
        return DEFAULT_INACTIVITY_DAYS
    return days


def load_config(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    加载配置

    优先级: 环境变量（按别名顺序） > 默认值

    Args:
        environ: 环境变量映射，默认为 os.environ

    Returns:
        Settings: 配置对象
    """
    if environ is None:
        environ = os.environ

    config_dict = {}
    for field, names in ENV_ALIASES.items():
        value = _first_non_empty(environ, names)
        if value is not None:
            config_dict[field] = value

    config_dict["INACTIVITY_RESET_DAYS"] = _inactivity_days(
        config_dict.get("INACTIVITY_RESET_DAYS")
    )
    if "TESTING" in config_dict:
        config_dict["TESTING"] = config_dict["TESTING"].strip().lower() in {"1", "true", "yes"}
    if "ALLOW_LEGACY_PLAINTEXT" in config_dict:
        config_dict["ALLOW_LEGACY_PLAINTEXT"] = (
            config_dict["ALLOW_LEGACY_PLAINTEXT"].strip().lower() not in {"0", "false", "no"}
        )

    return Settings(**config_dict)


@lru_cache()
def get_settings() -> Settings:
    """
    获取配置单例

    使用 lru_cache 确保只创建一次

    Returns:
        Settings: 配置对象
    """
    return load_config()


def get_portal_secret(settings: Settings) -> str:
    """
    解析会话签名密钥

    未显式配置时，若存在内置管理员/客户密码，则推导一个确定性密钥，
    避免仅因缺少密钥变量而无法登录。

    Args:
        settings: 配置对象

    Returns:
        str: 签名密钥，完全未配置时返回空字符串
    """
    if settings.JWT_SECRET:
        return settings.JWT_SECRET

    admin_pass = settings.ADMIN_PASSWORD
    client_pass = settings.CLIENT_PASSWORD
    if admin_pass or client_pass:
        seed = f"orion-portal:{admin_pass}:{client_pass}"
        return hashlib.sha256(seed.encode("utf-8")).hexdigest()

    return ""
