# -*- coding: utf-8 -*-
"""
联系表单数据模型
"""

from pydantic import BaseModel, Field


class ContactMessage(BaseModel):
    """联系表单请求模型"""
    name: str = ""
    email: str = ""
    request_type: str = Field("", alias="requestType")
    app: str = "Not specified"
    message: str = ""
    # 蜜罐字段，正常用户不会填写
    company: str = ""

    class Config:
        populate_by_name = True
