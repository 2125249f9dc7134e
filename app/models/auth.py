# -*- coding: utf-8 -*-
"""
认证相关数据模型
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel


class TokenData(BaseModel):
    """会话 Token 声明"""
    role: str
    email: str = ""
    uid: str = ""
    src: str = ""
    iat: Optional[int] = None
    exp: Optional[int] = None

    class Config:
        extra = "allow"

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> Optional["TokenData"]:
        """声明中缺少 role 时返回 None"""
        role = claims.get("role")
        if not role or not isinstance(role, str):
            return None
        return cls(
            **{
                **claims,
                "email": str(claims.get("email") or ""),
                "uid": str(claims.get("uid") or ""),
                "src": str(claims.get("src") or ""),
            }
        )


class LoginResult(BaseModel):
    """登录结果（Token 写入 Cookie，不在响应体中返回）"""
    token: str
    role: str
    max_age: int
