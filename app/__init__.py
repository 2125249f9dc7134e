# -*- coding: utf-8 -*-
"""
Orion Portal - 客户/管理员门户后端

版本: v1.0.0
"""

__version__ = "1.0.0"
__description__ = "客户/管理员门户：会话认证、用户目录、密码重置与文件共享"

from .core.security import (
    verify_password,
    hash_password,
    create_access_token,
    decode_access_token
)

__all__ = [
    "verify_password",
    "hash_password",
    "create_access_token",
    "decode_access_token",
]
