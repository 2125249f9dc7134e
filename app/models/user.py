# -*- coding: utf-8 -*-
"""
用户相关数据模型

存储格式使用 camelCase 字段名（与键值存储中的 JSON 保持一致），
Python 侧使用 snake_case 属性
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.clock import format_iso


logger = logging.getLogger(__name__)


ROLES = ("admin", "client")
RESET_AUDIT_LIMIT = 50


def _coerce_timestamp(value: Any) -> Optional[str]:
    """
    规范化存储中的时间字段

    数字按毫秒时间戳转换为 ISO 字符串，其它无法识别的类型视为未设置
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)):
        try:
            return format_iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return None
    return None


class AuditEvent(BaseModel):
    """密码重置审计条目"""
    at: Optional[str] = None
    action: str = "unknown"
    ip: Optional[str] = None
    by: Optional[str] = None
    days: Optional[int] = None

    @field_validator("action", mode="before")
    @classmethod
    def _coerce_action(cls, value: Any) -> str:
        return str(value) if value not in (None, "") else "unknown"

    @field_validator("ip", "by", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("at", mode="before")
    @classmethod
    def _coerce_at(cls, value: Any) -> Optional[str]:
        return _coerce_timestamp(value)

    @field_validator("days", mode="before")
    @classmethod
    def _coerce_days(cls, value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None


class PortalDownload(BaseModel):
    """客户门户中展示的下载链接"""
    label: str = ""
    url: str
    note: str = ""


class UserRecord(BaseModel):
    """持久化的用户记录"""
    id: str
    email: str
    role: str
    password_hash: str = Field("", alias="passwordHash")
    active: bool = True
    created_at: Optional[str] = Field(None, alias="createdAt")
    last_login_at: Optional[str] = Field(None, alias="lastLoginAt")
    last_password_reset_at: Optional[str] = Field(None, alias="lastPasswordResetAt")
    inactivity_reset_required_at: Optional[str] = Field(None, alias="inactivityResetRequiredAt")
    reset_token_hash: Optional[str] = Field(None, alias="resetTokenHash")
    reset_token_expires_at: Optional[str] = Field(None, alias="resetTokenExpiresAt")
    reset_audit: List[AuditEvent] = Field(default_factory=list, alias="resetAudit")

    # 资料字段
    full_name: str = Field("", alias="fullName")
    company: str = ""
    phone: str = ""
    project: str = ""
    notes: str = ""
    portal_title: str = Field("", alias="portalTitle")
    portal_message: str = Field("", alias="portalMessage")
    portal_downloads: List[PortalDownload] = Field(default_factory=list, alias="portalDownloads")
    source: str = "kv"

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator(
        "id", "password_hash", "full_name", "company", "phone", "project",
        "notes", "portal_title", "portal_message", "source",
        mode="before"
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("role")
    @classmethod
    def _check_role(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ROLES:
            raise ValueError(f"unknown role: {value}")
        return value

    @field_validator("active", mode="before")
    @classmethod
    def _active_default(cls, value: Any) -> bool:
        # 只有显式的 false 才表示停用
        return value is not False

    @field_validator(
        "created_at", "last_login_at", "last_password_reset_at",
        "inactivity_reset_required_at", "reset_token_expires_at",
        mode="before"
    )
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> Optional[str]:
        return _coerce_timestamp(value)

    @field_validator("reset_token_hash", mode="before")
    @classmethod
    def _coerce_token_hash(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator("reset_audit", mode="before")
    @classmethod
    def _audit_dicts(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, AuditEvent))]

    @field_validator("portal_downloads", mode="before")
    @classmethod
    def _downloads_with_url(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        downloads = []
        for item in value:
            if isinstance(item, PortalDownload):
                downloads.append(item)
            elif isinstance(item, dict) and isinstance(item.get("url"), str) and item["url"].strip():
                downloads.append({
                    "label": str(item.get("label") or ""),
                    "url": item["url"].strip(),
                    "note": str(item.get("note") or ""),
                })
        return downloads

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["UserRecord"]:
        """
        从存储数据构建用户记录

        缺少 id / email / role 或角色无效的条目返回 None；
        其它字段中的异常值会被规范化或丢弃，不影响整条记录

        Args:
            raw: 存储中的单个 JSON 对象

        Returns:
            Optional[UserRecord]: 用户记录
        """
        if not isinstance(raw, dict):
            return None
        if not raw.get("id") or not raw.get("email") or not raw.get("role"):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"丢弃无效的用户记录 {raw.get('id')}: {e.error_count()} 个错误")
            return None

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def append_audit(self, event: AuditEvent) -> None:
        """追加审计条目，只保留最近 50 条"""
        self.reset_audit = (self.reset_audit + [event])[-RESET_AUDIT_LIMIT:]


class UserCreate(BaseModel):
    """创建用户请求模型（校验在服务层完成，以返回具体的错误提示）"""
    email: str = ""
    password: str = ""
    role: str = "client"
    active: bool = True
    full_name: str = Field("", alias="fullName")
    company: str = ""
    phone: str = ""
    project: str = ""
    notes: str = ""
    portal_title: str = Field("", alias="portalTitle")
    portal_message: str = Field("", alias="portalMessage")
    portal_downloads: Any = Field(None, alias="portalDownloads")

    class Config:
        populate_by_name = True


class UserUpdate(BaseModel):
    """
    更新用户请求模型

    只有请求中出现的字段才会被修改（见 model_fields_set）
    """
    id: str = ""
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    active: Optional[bool] = None
    full_name: Optional[str] = Field(None, alias="fullName")
    company: Optional[str] = None
    phone: Optional[str] = None
    project: Optional[str] = None
    notes: Optional[str] = None
    portal_title: Optional[str] = Field(None, alias="portalTitle")
    portal_message: Optional[str] = Field(None, alias="portalMessage")
    portal_downloads: Any = Field(None, alias="portalDownloads")

    class Config:
        populate_by_name = True


class UserDelete(BaseModel):
    """删除用户请求模型"""
    id: str = ""


class UserLogin(BaseModel):
    """用户登录请求模型"""
    role: str = ""
    email: str = ""
    password: str = ""


class PasswordChange(BaseModel):
    """修改密码请求模型"""
    current_password: str = Field("", alias="currentPassword")
    new_password: str = Field("", alias="newPassword")

    class Config:
        populate_by_name = True


class ForgotPassword(BaseModel):
    """忘记密码请求模型"""
    email: str = ""
    role: str = ""


class ResetPassword(BaseModel):
    """重置密码请求模型"""
    token: str = ""
    password: str = ""


class UserProfile(BaseModel):
    """客户可见的用户资料（不含任何密码/令牌字段）"""
    id: str
    full_name: str = Field("", serialization_alias="fullName")
    company: str = ""
    phone: str = ""
    project: str = ""
    notes: str = ""
    portal_title: str = Field("", serialization_alias="portalTitle")
    portal_message: str = Field("", serialization_alias="portalMessage")
    portal_downloads: List[PortalDownload] = Field(
        default_factory=list, serialization_alias="portalDownloads"
    )

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserProfile":
        return cls(
            id=user.id,
            full_name=user.full_name,
            company=user.company,
            phone=user.phone,
            project=user.project,
            notes=user.notes,
            portal_title=user.portal_title,
            portal_message=user.portal_message,
            portal_downloads=user.portal_downloads,
        )


class UserResponse(UserProfile):
    """管理员用户列表中的用户视图"""
    email: str
    role: str
    active: bool = True
    created_at: Optional[str] = Field(None, serialization_alias="createdAt")
    last_login_at: Optional[str] = Field(None, serialization_alias="lastLoginAt")
    last_password_reset_at: Optional[str] = Field(None, serialization_alias="lastPasswordResetAt")
    inactivity_reset_required_at: Optional[str] = Field(
        None, serialization_alias="inactivityResetRequiredAt"
    )
    source: str = "kv"

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            **UserProfile.from_record(user).model_dump(),
            email=user.email,
            role=user.role,
            active=user.active,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            last_password_reset_at=user.last_password_reset_at,
            inactivity_reset_required_at=user.inactivity_reset_required_at or None,
            source=user.source or "kv",
        )


class ResetAuditEntry(AuditEvent):
    """重置审计汇总视图中的条目"""
    user_id: str = Field(..., serialization_alias="userId")
    name: str = ""
    email: str = ""
    role: str = ""
