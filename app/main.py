# -*- coding: utf-8 -*-
"""
Orion Portal 主应用入口

FastAPI 应用初始化、异常处理和路由注册
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.context import AppContext, create_context
from app.core.exceptions import PortalError


logger = logging.getLogger(__name__)


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        ctx: 应用上下文，默认根据环境变量构建

    Returns:
        FastAPI: 应用实例
    """
    ctx = ctx or create_context()
    settings = ctx.settings

    # 配置日志
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.DESCRIPTION,
        version=settings.VERSION,
        docs_url="/docs" if not settings.TESTING else None,
        redoc_url="/redoc" if not settings.TESTING else None,
    )
    app.state.context = ctx

    # =========================================================================
    # 异常处理
    # =========================================================================

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} 失败: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body."})

    # =========================================================================
    # CORS 中间件
    # =========================================================================

    # 会话依赖 Cookie，只允许同源站点携带凭据
    origins = [settings.PUBLIC_SITE_URL] if settings.PUBLIC_SITE_URL else []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # 路由注册
    # =========================================================================

    from app.api import auth, client, contact, files, users

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(files.router)
    app.include_router(client.router)
    app.include_router(contact.router)

    # =========================================================================
    # 健康检查
    # =========================================================================

    @app.get("/health")
    def health_check():
        """健康检查端点"""
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "store": ctx.store.enabled,
            "mail": ctx.mailer.enabled,
        }

    # =========================================================================
    # 启动 / 关闭
    # =========================================================================

    @app.on_event("startup")
    async def startup_event():
        """应用启动时执行"""
        if not ctx.store.enabled:
            logger.warning("未配置键值存储，用户与文件功能不可用")
        logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} 启动成功")

    @app.on_event("shutdown")
    async def shutdown_event():
        """应用关闭时执行"""
        ctx.close()
        logger.info(f"{settings.PROJECT_NAME} 正在关闭...")

    return app


app = create_app()
