# -*- coding: utf-8 -*-
"""
文件管理相关 API 路由（管理员）
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import Response

from app.api.deps import get_current_admin, parse_body, require_store
from app.core.context import AppContext
from app.models.auth import TokenData
from app.models.file import FileDelete, FileRecord, FileUpdate, FileUpload, FolderCreate, sanitize
from app.services.file_service import FileService


router = APIRouter(prefix="/api/admin/files", tags=["文件管理"])


def content_disposition(disposition: str, file_name: str) -> str:
    """
    构造 Content-Disposition 头

    非 ASCII 文件名额外附带 RFC 5987 的 filename*，filename 中只保留 ASCII 回退名
    """
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in "\\\"" else "_" for ch in file_name
    ) or "download"
    if fallback == file_name:
        return f'{disposition}; filename="{fallback}"'
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


def build_download_response(record: FileRecord, inline: bool = False) -> Response:
    """
    构造文件下载响应

    Args:
        record: 文件记录
        inline: 是否在浏览器中直接打开

    Returns:
        Response: 二进制响应
    """
    payload = FileService.decode_content(record)
    disposition = "inline" if inline else "attachment"
    return Response(
        content=payload,
        media_type=record.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(disposition, record.file_name),
        }
    )


@router.get("")
def list_files(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    file_id: str = Query("", alias="id", description="文件 ID，指定时直接下载"),
    user_id: str = Query("", alias="userId", description="所属用户，空表示共享范围"),
    folder_id: str = Query("", alias="folderId", description="目录过滤"),
    inline: str = Query("", description="为 1 时以 inline 方式返回")
):
    """
    列出文件和目录，或下载单个文件

    Returns:
        dict | Response: 列表数据或文件内容
    """
    service = FileService(ctx)

    file_id = sanitize(file_id, 80)
    if file_id:
        record = service.get_file(file_id)
        return build_download_response(record, inline == "1")

    metas, folders = service.list_scope(user_id, folder_id)
    return {
        "ok": True,
        "files": [m.model_dump(by_alias=True) for m in metas],
        "folders": [f.to_storage() for f in folders],
    }


@router.post("")
def create_item(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """
    创建目录或上传文件

    请求体 type 为 folder 时创建目录，否则按上传文件处理
    """
    service = FileService(ctx)
    body = body or {}
    item_type = sanitize(body.get("type"), 24).lower()

    if item_type == "folder":
        folder = service.create_folder(parse_body(FolderCreate, body), created_by=admin.email)
        return {"ok": True, "id": folder.id}

    record = service.upload_file(parse_body(FileUpload, body), uploaded_by=admin.email)
    return {"ok": True, "id": record.id}


@router.patch("")
def update_item(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """修改目录授权或文件属性"""
    FileService(ctx).update(parse_body(FileUpdate, body))
    return {"ok": True}


@router.delete("")
def delete_item(
    ctx: AppContext = Depends(require_store),
    admin: TokenData = Depends(get_current_admin),
    body: Optional[Dict[str, Any]] = Body(None)
):
    """删除目录（级联）或文件"""
    FileService(ctx).delete(parse_body(FileDelete, body))
    return {"ok": True}
