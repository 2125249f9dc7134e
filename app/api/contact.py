# -*- coding: utf-8 -*-
"""
联系表单 API 路由
"""

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_client_ip, get_context
from app.core.context import AppContext
from app.models.contact import ContactMessage
from app.services.contact_service import ContactService


router = APIRouter(prefix="/api", tags=["联系表单"])


@router.post("/contact")
def submit_contact(
    message: ContactMessage,
    request: Request,
    ctx: AppContext = Depends(get_context)
):
    """提交联系表单，校验通过后通过邮件转发"""
    ContactService(ctx).submit(message, ip=get_client_ip(request))
    return {"ok": True}
