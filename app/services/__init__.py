# -*- coding: utf-8 -*-
"""
业务服务层

包含所有业务逻辑服务
"""

from .auth_service import AuthService, SessionGuard
from .contact_service import ContactService
from .file_service import FileService, FolderAccessResolver, VisibleScope
from .reset_service import PasswordResetService
from .user_directory import UserCollection, UserDirectory
from .user_service import UserService

__all__ = [
    "AuthService",
    "SessionGuard",
    "ContactService",
    "FileService",
    "FolderAccessResolver",
    "VisibleScope",
    "PasswordResetService",
    "UserCollection",
    "UserDirectory",
    "UserService",
]
