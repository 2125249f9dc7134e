# -*- coding: utf-8 -*-
"""
客户门户相关 API 路由
"""

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_client, require_store
from app.api.files import build_download_response
from app.core.context import AppContext
from app.models.auth import TokenData
from app.models.file import sanitize
from app.services.file_service import FileService


router = APIRouter(prefix="/api/client", tags=["客户门户"])


@router.get("/files")
def list_my_files(
    ctx: AppContext = Depends(require_store),
    session: TokenData = Depends(get_current_client),
    file_id: str = Query("", alias="id", description="文件 ID，指定时直接下载"),
    inline: str = Query("", description="为 1 时以 inline 方式返回")
):
    """
    列出当前客户可见的文件，或下载其中一个

    可见范围包括私有文件以及被授权共享目录（含下级目录）中的文件；
    范围外的文件与不存在的文件同样返回 404

    Args:
        ctx: 应用上下文
        session: 当前客户会话
        file_id: 文件 ID
        inline: 是否 inline 返回

    Returns:
        dict | Response: 列表数据或文件内容
    """
    service = FileService(ctx)

    file_id = sanitize(file_id, 80)
    if file_id:
        record = service.get_visible_file(session.uid, file_id)
        return build_download_response(record, inline == "1")

    metas, folders = service.list_for_user(session.uid)
    return {
        "ok": True,
        "files": [m.model_dump(by_alias=True) for m in metas],
        "folders": [f.to_storage() for f in folders],
    }
