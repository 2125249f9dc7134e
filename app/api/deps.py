# -*- coding: utf-8 -*-
"""
API 依赖注入

提供 FastAPI 依赖注入函数
"""

from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from app.core.context import AppContext
from app.core.exceptions import AuthenticationError, ConfigurationError, InvalidInputError
from app.models.auth import TokenData
from app.services.auth_service import SessionGuard


# =============================================================================
# 上下文依赖
# =============================================================================

def get_context(request: Request) -> AppContext:
    """获取应用上下文（启动时挂在 app.state 上）"""
    return request.app.state.context


def require_store(ctx: AppContext = Depends(get_context)) -> AppContext:
    """
    要求已配置键值存储

    Raises:
        ConfigurationError: 未配置存储
    """
    if not ctx.store.enabled:
        raise ConfigurationError(
            "User database is not configured. Add KV_REST_API_URL and KV_REST_API_TOKEN."
        )
    return ctx


def get_client_ip(request: Request) -> str:
    """取客户端 IP，优先使用 X-Forwarded-For 的第一项"""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_body(model: Type[ModelT], body: Optional[Dict[str, Any]]) -> ModelT:
    """
    把 JSON 请求体校验为请求模型

    Raises:
        InvalidInputError: 字段类型不符
    """
    try:
        return model.model_validate(body or {})
    except ValidationError:
        raise InvalidInputError("Invalid request body.")


def get_request_origin(request: Request) -> str:
    """根据代理头推断站点根地址"""
    proto = request.headers.get("x-forwarded-proto", "https").split(",")[0].strip()
    host = (
        request.headers.get("x-forwarded-host")
        or request.headers.get("host")
        or ""
    ).split(",")[0].strip()
    if not host:
        return ""
    return f"{proto}://{host}".rstrip("/")


# =============================================================================
# 认证依赖
# =============================================================================

def get_current_session(
    request: Request,
    ctx: AppContext = Depends(get_context)
) -> TokenData:
    """
    获取当前会话

    Raises:
        AuthenticationError: 未登录或会话无效
    """
    return SessionGuard(ctx).require_any(request.cookies)


def get_current_admin(
    request: Request,
    ctx: AppContext = Depends(get_context)
) -> TokenData:
    """
    获取当前管理员会话

    Raises:
        AuthenticationError: 未登录或不是管理员（不区分原因）
    """
    return SessionGuard(ctx).require_role("admin", request.cookies)


def get_current_client(
    request: Request,
    ctx: AppContext = Depends(get_context)
) -> TokenData:
    """
    获取当前客户会话（必须带有用户 ID）

    Raises:
        AuthenticationError: 未登录、不是客户或缺少用户 ID
    """
    session = SessionGuard(ctx).require_role("client", request.cookies)
    if not session.uid:
        raise AuthenticationError()
    return session
