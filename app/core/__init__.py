# -*- coding: utf-8 -*-
"""
核心模块

包含配置管理、键值存储、安全功能、时钟与应用上下文等核心组件
"""

from .config import load_config, Settings, get_settings, get_portal_secret
from .security import (
    verify_password,
    hash_password,
    create_access_token,
    decode_access_token,
    parse_duration
)
from .context import AppContext, create_context

__all__ = [
    "load_config",
    "Settings",
    "get_settings",
    "get_portal_secret",
    "verify_password",
    "hash_password",
    "create_access_token",
    "decode_access_token",
    "parse_duration",
    "AppContext",
    "create_context",
]
