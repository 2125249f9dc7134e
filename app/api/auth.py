# -*- coding: utf-8 -*-
"""
认证相关 API 路由
"""

from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import (
    get_client_ip,
    get_context,
    get_current_session,
    get_request_origin
)
from app.core.context import AppContext
from app.models.auth import TokenData
from app.models.user import ForgotPassword, PasswordChange, ResetPassword, UserLogin
from app.services.auth_service import AuthService
from app.services.reset_service import PasswordResetService


router = APIRouter(prefix="/api/auth", tags=["认证"])


def _set_session_cookie(response: Response, ctx: AppContext, token: str, max_age: int) -> None:
    response.set_cookie(
        key=ctx.settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=ctx.settings.is_production,
    )


@router.post("/login")
def login(
    user_data: UserLogin,
    response: Response,
    ctx: AppContext = Depends(get_context)
):
    """
    用户登录

    成功后会话 Token 写入 HttpOnly Cookie

    Args:
        user_data: 登录数据 (role, email, password)
        response: 响应对象（用于写 Cookie）
        ctx: 应用上下文

    Returns:
        dict: {"ok": true, "role": ...}
    """
    service = AuthService(ctx)
    result = service.login(user_data.role, user_data.email, user_data.password)

    _set_session_cookie(response, ctx, result.token, result.max_age)
    return {"ok": True, "role": result.role}


@router.post("/logout")
def logout(response: Response, ctx: AppContext = Depends(get_context)):
    """退出登录（清除 Cookie）"""
    _set_session_cookie(response, ctx, "", 0)
    return {"ok": True}


@router.get("/me")
def get_current_user_info(
    session: TokenData = Depends(get_current_session),
    ctx: AppContext = Depends(get_context)
):
    """
    获取当前会话信息

    目录用户额外返回资料；用户被删除或停用时返回 401
    """
    profile = AuthService(ctx).get_profile(session)

    return {
        "ok": True,
        "role": session.role,
        "email": session.email,
        "uid": session.uid,
        "src": session.src,
        "profile": profile.model_dump(by_alias=True) if profile else None,
    }


@router.post("/password")
def change_password(
    password_data: PasswordChange,
    session: TokenData = Depends(get_current_session),
    ctx: AppContext = Depends(get_context)
):
    """修改当前用户密码"""
    AuthService(ctx).change_password(
        session,
        password_data.current_password,
        password_data.new_password
    )
    return {"ok": True}


@router.post("/forgot-password")
def forgot_password(
    data: ForgotPassword,
    request: Request,
    ctx: AppContext = Depends(get_context)
):
    """
    申请重置密码

    无论账户是否存在都返回相同的响应
    """
    return PasswordResetService(ctx).request_reset(
        data.email,
        data.role,
        ip=get_client_ip(request),
        origin=get_request_origin(request)
    )


@router.post("/reset-password")
def reset_password(
    data: ResetPassword,
    request: Request,
    ctx: AppContext = Depends(get_context)
):
    """使用重置链接中的令牌设置新密码"""
    PasswordResetService(ctx).consume_reset(
        data.token,
        data.password,
        ip=get_client_ip(request)
    )
    return {"ok": True}
