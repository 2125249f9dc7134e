# -*- coding: utf-8 -*-
"""
API 路由模块

包含所有 FastAPI 路由和依赖注入
"""

from .deps import (
    get_context,
    require_store,
    get_current_session,
    get_current_admin,
    get_current_client
)

__all__ = [
    "get_context",
    "require_store",
    "get_current_session",
    "get_current_admin",
    "get_current_client",
]
