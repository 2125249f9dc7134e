# -*- coding: utf-8 -*-
"""
数据模型 (Pydantic Models)

包含持久化记录（用户、目录、文件）与请求/响应模型
"""

from .user import (
    AuditEvent,
    UserRecord,
    UserCreate,
    UserUpdate,
    UserDelete,
    UserLogin,
    UserProfile,
    UserResponse,
    PasswordChange,
    ForgotPassword,
    ResetPassword,
    ResetAuditEntry
)
from .auth import (
    TokenData,
    LoginResult
)
from .file import (
    FolderRecord,
    FileRecord,
    FileMeta,
    FolderCreate,
    FileUpload,
    FileUpdate,
    FileDelete
)
from .contact import ContactMessage

__all__ = [
    # 用户相关
    "AuditEvent",
    "UserRecord",
    "UserCreate",
    "UserUpdate",
    "UserDelete",
    "UserLogin",
    "UserProfile",
    "UserResponse",
    "PasswordChange",
    "ForgotPassword",
    "ResetPassword",
    "ResetAuditEntry",
    # 认证相关
    "TokenData",
    "LoginResult",
    # 文件相关
    "FolderRecord",
    "FileRecord",
    "FileMeta",
    "FolderCreate",
    "FileUpload",
    "FileUpdate",
    "FileDelete",
    # 联系表单
    "ContactMessage",
]
