# -*- coding: utf-8 -*-
"""
用户管理相关 API 路由（管理员）
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from app.api.deps import get_current_admin, parse_body, require_store
from app.core.context import AppContext
from app.models.auth import TokenData
from app.models.user import UserCreate, UserDelete, UserUpdate
from app.services.user_service import UserService


router = APIRouter(prefix="/api/admin", tags=["用户管理"])


@router.get("/users")
def list_users(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin)
):
    """
    列出所有用户

    Returns:
        dict: {"ok": true, "users": [...]}，不含密码哈希和重置令牌
    """
    users = UserService(ctx).list_users()
    return {"ok": True, "users": [u.model_dump(by_alias=True) for u in users]}


@router.post("/users")
def create_user(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """
    创建用户

    客户账户带有 project 时会自动建立并授权同名共享目录
    """
    user = UserService(ctx).create_user(parse_body(UserCreate, body), created_by=admin.email)
    return {"ok": True, "id": user.id}


@router.patch("/users")
def update_user(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """更新用户（只修改请求中出现的字段）"""
    UserService(ctx).update_user(parse_body(UserUpdate, body), updated_by=admin.email)
    return {"ok": True}


@router.delete("/users")
def delete_user(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """删除用户"""
    UserService(ctx).delete_user(parse_body(UserDelete, body).id)
    return {"ok": True}


@router.get("/reset-audit")
def reset_audit(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin)
):
    """密码重置审计记录（按时间倒序）"""
    events = UserService(ctx).reset_audit()
    return {"ok": True, "events": [e.model_dump(by_alias=True) for e in events]}
