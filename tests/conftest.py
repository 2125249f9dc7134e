# -*- coding: utf-8 -*-
"""
pytest 配置文件

定义全局 fixtures 和测试配置
"""

import os
import sys
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# 将项目根目录添加到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.clock import FrozenClock
from app.core.config import Settings, get_settings
from app.core.context import AppContext, create_context
from app.core.mailer import OutboxMailer
from app.core.security import hash_password
from app.core.store import MemoryKeyValueStore
from app.models.user import UserRecord
from app.services.user_directory import UserDirectory


TEST_SECRET = "test-secret-key-for-testing-only"


# =============================================================================
# 环境变量 fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
def set_test_env():
    """
    自动设置测试环境变量

    autouse=True 表示所有测试自动使用此 fixture
    """
    original_env = os.environ.copy()

    os.environ["PORTAL_TESTING"] = "true"
    os.environ["PORTAL_JWT_SECRET"] = TEST_SECRET
    get_settings.cache_clear()

    yield

    # 恢复原始环境变量
    for key in set(os.environ.keys()) - set(original_env.keys()):
        del os.environ[key]
    for key, value in original_env.items():
        os.environ[key] = value
    get_settings.cache_clear()


# =============================================================================
# 上下文 fixtures
# =============================================================================

@pytest.fixture(scope="function")
def clock() -> FrozenClock:
    """固定在 2024-01-01T00:00:00Z 的时钟"""
    return FrozenClock()


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    """测试配置（带内置管理员账户）"""
    return Settings(
        TESTING=True,
        JWT_SECRET=TEST_SECRET,
        ADMIN_EMAIL="owner@example.com",
        ADMIN_PASSWORD="owner-password-1",
        PUBLIC_SITE_URL="https://portal.example.com",
    )


@pytest.fixture(scope="function")
def memory_store() -> MemoryKeyValueStore:
    """内存键值存储"""
    return MemoryKeyValueStore()


@pytest.fixture(scope="function")
def outbox() -> OutboxMailer:
    """记录发出邮件的 Mailer"""
    return OutboxMailer()


@pytest.fixture(scope="function")
def ctx(test_settings, memory_store, outbox, clock) -> AppContext:
    """
    测试用应用上下文

    用法:
        def test_something(ctx):
            service = AuthService(ctx)
    """
    return create_context(test_settings, store=memory_store, mailer=outbox, clock=clock)


@pytest.fixture(scope="function")
def make_user(ctx) -> Callable[..., UserRecord]:
    """
    向用户目录写入一个用户

    用法:
        def test_something(make_user):
            user = make_user("alice@example.com", "longpass1")
    """
    directory = UserDirectory(ctx.store)

    def _make_user(email: str, password: str, role: str = "client", **fields) -> UserRecord:
        collection = directory.load()
        fields.setdefault("created_at", ctx.clock.isoformat())
        user = UserRecord(
            id=fields.pop("id", f"user-{len(collection.users) + 1}"),
            email=email,
            role=role,
            password_hash=fields.pop("password_hash", None) or hash_password(password),
            **fields
        )
        collection.users.append(user)
        directory.save(collection.users)
        return user

    return _make_user


# =============================================================================
# FastAPI 测试客户端 fixtures (用于集成测试)
# =============================================================================

@pytest.fixture(scope="function")
def client(ctx) -> Generator[TestClient, None, None]:
    """
    HTTP 测试客户端

    用于集成测试，Cookie 会在请求之间自动保留
    """
    from app.main import create_app

    with TestClient(create_app(ctx)) as test_client:
        yield test_client
