# -*- coding: utf-8 -*-
"""
Orion Portal 启动脚本
"""

import uvicorn

from app.core.config import get_settings


def main():
    """主函数"""
    settings = get_settings()

    print("\n" + "=" * 50)
    print(f"{settings.PROJECT_NAME} v{settings.VERSION}")
    print("=" * 50)
    print(f"服务地址: http://{settings.HOST}:{settings.PORT}")
    if not settings.TESTING:
        print(f"API 文档: http://{settings.HOST}:{settings.PORT}/docs")
    print("=" * 50 + "\n")

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=not settings.is_production,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
