# -*- coding: utf-8 -*-
"""
文件与目录相关数据模型

userId 为空表示共享（全局）范围，folderId / parentId 为空表示根级
"""

import re
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator


_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize(value: Any, max_length: Optional[int] = 200) -> str:
    """去掉尖括号与首尾空白，并截断到指定长度（None 表示不截断）"""
    text = "" if value is None else str(value)
    text = _ANGLE_BRACKETS.sub("", text).strip()
    return text[:max_length] if max_length else text


class FolderRecord(BaseModel):
    """持久化的目录记录"""
    id: str
    name: str
    user_id: str = Field("", alias="userId")
    parent_id: str = Field("", alias="parentId")
    allowed_user_ids: List[str] = Field(default_factory=list, alias="allowedUserIds")
    created_at: Optional[str] = Field(None, alias="createdAt")
    created_by: str = Field("", alias="createdBy")

    class Config:
        populate_by_name = True

    @field_validator("id", "name", "user_id", "parent_id", "created_by", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("allowed_user_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(v) for v in value if v]

    @property
    def is_shared(self) -> bool:
        return not self.user_id

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FolderRecord"]:
        if not isinstance(raw, dict) or not raw.get("id") or not raw.get("name"):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)


class FileRecord(BaseModel):
    """持久化的文件记录（内容以 base64 文本保存）"""
    id: str
    file_name: str = Field(..., alias="fileName")
    title: str = ""
    notes: str = ""
    mime_type: str = Field("application/octet-stream", alias="mimeType")
    size: int = 0
    folder_id: str = Field("", alias="folderId")
    user_id: str = Field("", alias="userId")
    content_base64: str = Field(..., alias="contentBase64")
    created_at: Optional[str] = Field(None, alias="createdAt")
    uploaded_by: str = Field("", alias="uploadedBy")

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("id", "title", "notes", "folder_id", "user_id", "uploaded_by", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("mime_type", mode="before")
    @classmethod
    def _default_mime(cls, value: Any) -> str:
        return str(value) if value else "application/octet-stream"

    @field_validator("size", mode="before")
    @classmethod
    def _coerce_size(cls, value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def is_shared(self) -> bool:
        return not self.user_id

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FileRecord"]:
        if not isinstance(raw, dict):
            return None
        if not raw.get("id") or not raw.get("fileName") or not raw.get("contentBase64"):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)


class FileMeta(BaseModel):
    """文件元数据（不含内容）"""
    id: str
    title: str
    file_name: str = Field(..., serialization_alias="fileName")
    mime_type: str = Field(..., serialization_alias="mimeType")
    size: int
    notes: str = ""
    folder_id: str = Field("", serialization_alias="folderId")
    folder_name: str = Field("", serialization_alias="folderName")
    user_id: str = Field("", serialization_alias="userId")
    created_at: Optional[str] = Field(None, serialization_alias="createdAt")
    uploaded_by: str = Field("", serialization_alias="uploadedBy")

    @classmethod
    def from_record(cls, record: FileRecord, folder_name: str = "") -> "FileMeta":
        return cls(
            id=record.id,
            title=record.title or record.file_name,
            file_name=record.file_name,
            mime_type=record.mime_type,
            size=record.size,
            notes=record.notes,
            folder_id=record.folder_id,
            folder_name=folder_name,
            user_id=record.user_id,
            created_at=record.created_at,
            uploaded_by=record.uploaded_by,
        )


class FolderCreate(BaseModel):
    """创建目录请求模型"""
    name: str = ""
    user_id: str = Field("", alias="userId")
    parent_id: str = Field("", alias="parentId")

    class Config:
        populate_by_name = True


class FileUpload(BaseModel):
    """上传文件请求模型"""
    file_name: str = Field("", alias="fileName")
    title: str = ""
    notes: str = ""
    mime_type: str = Field("", alias="mimeType")
    content_base64: str = Field("", alias="contentBase64")
    folder_id: str = Field("", alias="folderId")
    user_id: str = Field("", alias="userId")

    class Config:
        populate_by_name = True


class FileUpdate(BaseModel):
    """
    更新文件 / 目录授权请求模型

    包含 allowedUserIds 时视为修改目录授权，否则修改文件
    """
    id: str = ""
    user_id: Optional[str] = Field(None, alias="userId")
    folder_id: Optional[str] = Field(None, alias="folderId")
    title: Optional[str] = None
    notes: Optional[str] = None
    allowed_user_ids: Optional[Any] = Field(None, alias="allowedUserIds")

    class Config:
        populate_by_name = True


class FileDelete(BaseModel):
    """删除文件 / 目录请求模型"""
    id: str = ""
    folder_id: str = Field("", alias="folderId")
    user_id: str = Field("", alias="userId")

    class Config:
        populate_by_name = True
